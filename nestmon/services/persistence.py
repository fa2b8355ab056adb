"""
Snapshot/restore of the shared user store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from nestmon.clients.sqlite_store import SQLiteUserSnapshotStore
from nestmon.models.user import UserRecord
from nestmon.services.token_cipher import TokenCipherService
from nestmon.services.user_store import SharedUserStore

logger = logging.getLogger(__name__)


class UserPersistenceService:
    """Mirror user records to SQLite with tokens encrypted at rest."""

    def __init__(
        self, snapshot_store: SQLiteUserSnapshotStore, token_cipher: TokenCipherService
    ) -> None:
        self._snapshots = snapshot_store
        self._cipher = token_cipher

    def load(self) -> Dict[str, UserRecord]:
        """Restore every readable record; unreadable rows are skipped."""
        records: Dict[str, UserRecord] = {}
        for user_id, document in self._snapshots.load_all().items():
            try:
                records[user_id] = self._decode(document)
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                logger.warning("Skipping stored user %s: %s", user_id, exc)
        logger.info("Restored %d monitored user(s)", len(records))
        return records

    def save(self, records: Mapping[str, UserRecord]) -> None:
        documents = {
            user_id: self._encode(record) for user_id, record in records.items()
        }
        self._snapshots.replace_all(documents)

    async def save_store(self, store: SharedUserStore) -> int:
        snapshot = await store.snapshot()
        await asyncio.to_thread(self.save, snapshot)
        return len(snapshot)

    async def run_periodic_save(
        self, store: SharedUserStore, interval_seconds: float
    ) -> None:
        """Save the store every ``interval_seconds`` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                count = await self.save_store(store)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Failed to save user data")
                continue
            logger.debug("Saved %d user record(s)", count)

    def _encode(self, record: UserRecord) -> Dict[str, Any]:
        return {
            "user_id": record.user_id,
            "project_id": record.project_id,
            "device_ids": list(record.device_ids),
            "credential": self._cipher.seal_credential(record.credential),
        }

    def _decode(self, document: Dict[str, Any]) -> UserRecord:
        return UserRecord(
            user_id=document["user_id"],
            project_id=document.get("project_id") or "",
            device_ids=document.get("device_ids") or [],
            credential=self._cipher.open_credential(document["credential"]),
        )


__all__ = ["UserPersistenceService"]
