"""
Registration glue between the web surface, the user store and the supervisor.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from nestmon.models.credential import Credential
from nestmon.models.user import UserRecord
from nestmon.services.event_dispatcher import EventDispatcher
from nestmon.services.user_store import SharedUserStore

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from nestmon.monitoring.supervisor import MonitorSupervisor

logger = logging.getLogger(__name__)


class UserNotFoundError(Exception):
    """Raised when an operation targets a user that is not registered."""


class UserRegistrationService:
    """Creates, updates and removes monitored users."""

    def __init__(
        self,
        store: SharedUserStore,
        supervisor: "MonitorSupervisor",
        dispatcher: Optional[EventDispatcher] = None,
        default_project_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self._supervisor = supervisor
        self._dispatcher = dispatcher
        self._default_project_id = default_project_id

    async def complete_authorization(
        self,
        *,
        user_id: str,
        credential: Credential,
        project_id: Optional[str] = None,
    ) -> UserRecord:
        """Store the credential from a finished OAuth exchange.

        A returning user keeps their device selection; only the credential (and
        the project, when one is given) is replaced. If the user is already
        being monitored, the running worker picks the new credential up on its
        next cycle.
        """
        record = await self._store.upsert_credential(
            user_id,
            credential,
            project_id=project_id,
            default_project_id=self._default_project_id or "",
        )
        logger.info("Stored credential for user %s", user_id)
        return record

    async def register_devices(
        self,
        *,
        user_id: str,
        device_ids: Iterable[str],
        project_id: Optional[str] = None,
    ) -> UserRecord:
        """Select the devices to monitor and make sure a worker is running."""
        record = await self._store.update_devices(
            user_id, device_ids, project_id or None
        )
        if record is None:
            raise UserNotFoundError(f"User {user_id} has not completed authorization.")
        if not record.project_id:
            logger.warning(
                "User %s has no Device Access project; polling stays idle", user_id
            )

        spawned = self._supervisor.on_user_registered(user_id)
        logger.info(
            "Registered %d device(s) for user %s (new worker: %s)",
            len(record.device_ids),
            user_id,
            spawned,
        )
        return record

    async def unregister(self, user_id: str) -> UserRecord:
        """Delete the user; their worker stops on its next cycle."""
        removed = await self._store.delete(user_id)
        if removed is None:
            raise UserNotFoundError(f"User {user_id} is not registered.")
        self._supervisor.on_user_removed(user_id)
        if self._dispatcher is not None:
            self._dispatcher.forget(user_id)
        return removed


__all__ = ["UserNotFoundError", "UserRegistrationService"]
