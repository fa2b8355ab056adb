"""
Process-wide, lock-guarded mapping of user identifiers to their records.

Records are immutable, so reads hand out the stored instance without copying.
Every method holds the lock only for the dictionary operation itself; callers
must never await network I/O while holding it, which the API makes impossible
by not exposing the lock.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Mapping, Optional

from nestmon.models.credential import Credential
from nestmon.models.user import UserRecord


class SharedUserStore:
    """Single source of truth for monitored users."""

    def __init__(self, records: Optional[Mapping[str, UserRecord]] = None) -> None:
        self._records: Dict[str, UserRecord] = dict(records or {})
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, user_id: str) -> Optional[UserRecord]:
        async with self._lock:
            return self._records.get(user_id)

    async def contains(self, user_id: str) -> bool:
        async with self._lock:
            return user_id in self._records

    async def put(self, record: UserRecord) -> None:
        """Insert or replace the whole record for ``record.user_id``."""
        async with self._lock:
            self._records[record.user_id] = record

    async def delete(self, user_id: str) -> Optional[UserRecord]:
        async with self._lock:
            return self._records.pop(user_id, None)

    async def replace_credential(
        self, user_id: str, credential: Credential
    ) -> Optional[UserRecord]:
        """Swap in a new credential; returns None if the user is gone."""
        async with self._lock:
            current = self._records.get(user_id)
            if current is None:
                return None
            updated = current.with_credential(credential)
            self._records[user_id] = updated
            return updated

    async def upsert_credential(
        self,
        user_id: str,
        credential: Credential,
        *,
        project_id: Optional[str] = None,
        default_project_id: str = "",
    ) -> UserRecord:
        """Store a credential from a new authorization in one critical section.

        An existing user keeps their device selection; a missing user gets a
        fresh record with no devices.
        """
        async with self._lock:
            current = self._records.get(user_id)
            if current is None:
                updated = UserRecord(
                    user_id=user_id,
                    credential=credential,
                    project_id=project_id or default_project_id,
                )
            else:
                updated = current.with_credential(credential)
                if project_id:
                    updated = updated.model_copy(update={"project_id": project_id})
            self._records[user_id] = updated
            return updated

    async def update_devices(
        self,
        user_id: str,
        device_ids: Iterable[str],
        project_id: Optional[str] = None,
    ) -> Optional[UserRecord]:
        async with self._lock:
            current = self._records.get(user_id)
            if current is None:
                return None
            updated = current.with_devices(device_ids, project_id)
            self._records[user_id] = updated
            return updated

    async def snapshot(self) -> Dict[str, UserRecord]:
        async with self._lock:
            return dict(self._records)

    async def user_ids(self) -> List[str]:
        async with self._lock:
            return list(self._records)


__all__ = ["SharedUserStore"]
