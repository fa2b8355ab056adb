"""Print the persisted user snapshot, optionally re-printing changes as they land.

Token material is never printed; only the expiry derived from it.

Example usages::

    python -m scripts.show_users
    python -m scripts.show_users --db data/users.db --watch 5
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

from nestmon.clients.sqlite_store import SQLiteUserSnapshotStore
from nestmon.core.config import get_settings


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _expiry(document: Dict[str, Any]) -> str:
    credential = document.get("credential") or {}
    try:
        issued_at = datetime.fromisoformat(credential["issued_at"])
        expires_at = issued_at + timedelta(seconds=int(credential["expires_in"]))
    except (KeyError, TypeError, ValueError):
        return "unknown"
    return expires_at.isoformat()


def summarize(documents: Dict[str, Dict[str, Any]]) -> List[str]:
    """Render one line per stored user."""
    lines = []
    for user_id, document in documents.items():
        devices = document.get("device_ids") or []
        project = document.get("project_id") or "-"
        lines.append(
            f"{user_id} | project={project} | devices={len(devices)}"
            f" [{', '.join(devices)}] | token_expires={_expiry(document)}"
        )
    return lines


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Show monitored users from the snapshot.")
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Snapshot database (default: USER_STORE_PATH from settings).",
    )
    parser.add_argument(
        "--watch",
        type=float,
        default=0.0,
        help="Re-read every N seconds and print when the snapshot changes.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    db_path: Path = args.db or Path(get_settings().monitor.user_store_path)
    if not db_path.expanduser().exists():
        print(f"Snapshot {db_path} does not exist yet.", file=sys.stderr)
        return 1

    snapshots = SQLiteUserSnapshotStore(str(db_path.expanduser()))
    previous: List[str] | None = None
    while True:
        try:
            lines = summarize(snapshots.load_all())
        except sqlite3.Error as exc:
            print(f"[{_timestamp()}] SQLite error: {exc}", file=sys.stderr)
            lines = previous or []
        if lines != previous:
            _print_header(f"[{_timestamp()}] {len(lines)} monitored user(s)")
            for line in lines:
                print(line)
            previous = lines
        if args.watch <= 0:
            return 0
        time.sleep(args.watch)


if __name__ == "__main__":  # pragma: no cover - script entry point
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nStopped watching.")
