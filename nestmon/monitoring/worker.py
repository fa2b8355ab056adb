"""Long-lived background worker that monitors the cameras of one user."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from nestmon.models.credential import Credential
from nestmon.models.device import CameraEvent
from nestmon.models.user import UserRecord
from nestmon.services.event_dispatcher import EventDispatcher
from nestmon.services.event_poller import EventPoller, PollResult
from nestmon.services.token_lifecycle import TokenLifecycleService
from nestmon.services.user_store import SharedUserStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 15.0


class WorkerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True)
class CycleReport:
    """What happened during one pass of the monitoring loop."""

    user_present: bool = True
    refreshed: bool = False
    refresh_failed: bool = False
    reactive_refresh: Optional[bool] = None
    events_dispatched: int = 0
    events_dropped: int = 0
    failed_devices: List[str] = field(default_factory=list)


class UserMonitorWorker:
    """Poll, refresh and dispatch for a single user until their record is deleted.

    Only this worker writes its user's credential, so refreshes never race.
    Deleting the record from the store is the only way to stop it short of
    cancelling the task.
    """

    def __init__(
        self,
        user_id: str,
        *,
        store: SharedUserStore,
        token_lifecycle: TokenLifecycleService,
        poller: EventPoller,
        dispatcher: EventDispatcher,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.user_id = user_id
        self._store = store
        self._tokens = token_lifecycle
        self._poller = poller
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval_seconds
        self._sleep = sleep
        self._state = WorkerState.RUNNING
        self.cycles = 0

    @property
    def state(self) -> WorkerState:
        return self._state

    async def run_forever(self) -> None:
        logger.info("Starting camera monitor for user %s", self.user_id)
        while self._state is WorkerState.RUNNING:
            try:
                await self.run_cycle()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Unexpected error monitoring user %s", self.user_id)
            if self._state is not WorkerState.RUNNING:
                break
            await self._sleep(self._poll_interval)
        logger.info("Camera monitor for user %s stopped", self.user_id)

    async def run_cycle(self) -> CycleReport:
        """Run one read/refresh/poll/dispatch pass."""
        self.cycles += 1
        report = CycleReport()

        record = await self._store.get(self.user_id)
        if record is None:
            self._stop("User %s was removed, stopping monitoring")
            report.user_present = False
            return report

        credential = await self._ensure_fresh(record, report)
        if credential is not record.credential:
            record = record.with_credential(credential)
            if not await self._still_registered(report):
                return report

        poll = await self._poll(record)
        report.failed_devices = list(poll.failed_devices)
        if not (poll.unauthorized or poll.events):
            return report
        if not await self._still_registered(report):
            return report

        if poll.unauthorized:
            report.reactive_refresh = await self._reactive_refresh(record)
        for event in poll.events:
            if await self._dispatch(event):
                report.events_dispatched += 1
            else:
                report.events_dropped += 1
        return report

    async def _still_registered(self, report: CycleReport) -> bool:
        if await self._store.contains(self.user_id):
            return True
        self._stop("User %s was removed mid-cycle, stopping monitoring")
        report.user_present = False
        return False

    async def _ensure_fresh(self, record: UserRecord, report: CycleReport) -> Credential:
        try:
            credential = await self._tokens.ensure_fresh(record)
        except Exception as exc:  # pylint: disable=broad-except
            report.refresh_failed = True
            logger.error("Failed to refresh token for user %s: %s", self.user_id, exc)
            return record.credential

        if credential is not record.credential:
            report.refreshed = True
            await self._store_credential(credential)
        return credential

    async def _reactive_refresh(self, record: UserRecord) -> bool:
        logger.info("Token rejected for user %s, attempting refresh", self.user_id)
        try:
            credential = await self._tokens.refresh(record)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Failed to refresh token for user %s: %s", self.user_id, exc)
            return False
        await self._store_credential(credential)
        return True

    async def _store_credential(self, credential: Credential) -> None:
        updated = await self._store.replace_credential(self.user_id, credential)
        if updated is None:
            logger.info("User %s was removed before the new token was stored", self.user_id)
        else:
            logger.info("Refreshed token for user %s", self.user_id)

    async def _poll(self, record: UserRecord) -> PollResult:
        try:
            return await self._poller.poll(record)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error polling events for user %s: %s", self.user_id, exc)
            return PollResult(failed_devices=list(record.device_ids))

    async def _dispatch(self, event: CameraEvent) -> bool:
        try:
            return await self._dispatcher.dispatch(self.user_id, event)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to process event %s", event.event_id)
            return False

    def _stop(self, message: str) -> None:
        logger.info(message, self.user_id)
        self._state = WorkerState.STOPPED


__all__ = [
    "CycleReport",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "UserMonitorWorker",
    "WorkerState",
]
