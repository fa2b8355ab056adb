"""SQLite-backed snapshot storage for monitored user records."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)


class SQLiteUserSnapshotStore:
    """Persist one JSON document per user, replaced as a whole on each save."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS monitored_users (
                    user_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
                """
            )

    def load_all(self) -> Dict[str, Dict[str, Any]]:
        """Return every stored document; rows that are not valid JSON are skipped."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT user_id, data FROM monitored_users ORDER BY user_id"
            ).fetchall()
        documents: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            try:
                documents[row["user_id"]] = json.loads(row["data"])
            except json.JSONDecodeError as exc:
                logger.warning(
                    "Skipping corrupt snapshot row for user %s: %s", row["user_id"], exc
                )
        return documents

    def replace_all(self, documents: Mapping[str, Dict[str, Any]]) -> None:
        """Make the table mirror ``documents`` in a single transaction."""
        saved_at = datetime.now(timezone.utc).isoformat()
        rows = [
            (user_id, json.dumps(document), saved_at)
            for user_id, document in documents.items()
        ]
        with self._connect() as conn:
            conn.execute("DELETE FROM monitored_users")
            conn.executemany(
                "INSERT INTO monitored_users (user_id, data, saved_at) VALUES (?, ?, ?)",
                rows,
            )


__all__ = ["SQLiteUserSnapshotStore"]
