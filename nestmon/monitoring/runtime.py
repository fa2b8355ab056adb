"""
Process-level wiring of the user store, monitors and persistence.

The runtime is constructed once by the application entry point and handed to
the web layer through ``app.state``; nothing here is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import Optional

from nestmon.clients import NestOAuthClient, SmartDeviceClient, SQLiteUserSnapshotStore
from nestmon.core.config import AppSettings
from nestmon.monitoring.supervisor import MonitorSupervisor
from nestmon.monitoring.worker import UserMonitorWorker
from nestmon.services import (
    EventDispatcher,
    EventPoller,
    SharedUserStore,
    TokenCipherService,
    TokenLifecycleService,
    UserPersistenceService,
    UserRegistrationService,
)

logger = logging.getLogger(__name__)


@dataclass
class MonitorRuntime:
    settings: AppSettings
    store: SharedUserStore
    supervisor: MonitorSupervisor
    dispatcher: EventDispatcher
    registration: UserRegistrationService
    persistence: UserPersistenceService
    _saver: Optional[asyncio.Task] = field(default=None, repr=False)

    async def start(self) -> int:
        """Restore saved users, resume their monitors and start periodic saves."""
        records = await asyncio.to_thread(self.persistence.load)
        for record in records.values():
            await self.store.put(record)
        resumed = await self.supervisor.start()
        self._saver = asyncio.create_task(
            self.persistence.run_periodic_save(
                self.store, self.settings.monitor.save_interval_seconds
            ),
            name="user-store-saver",
        )
        return resumed

    async def stop(self) -> None:
        if self._saver is not None:
            self._saver.cancel()
            await asyncio.gather(self._saver, return_exceptions=True)
            self._saver = None
        await self.supervisor.shutdown()
        count = await self.persistence.save_store(self.store)
        logger.info("Saved %d user record(s) on shutdown", count)


def build_runtime(settings: AppSettings) -> MonitorRuntime:
    monitor = settings.monitor
    oauth_client = NestOAuthClient(
        settings.google, settings.oauth, timeout=monitor.http_timeout_seconds
    )
    device_client = SmartDeviceClient(
        monitor.api_base_url, timeout=monitor.http_timeout_seconds
    )

    store = SharedUserStore()
    dispatcher = EventDispatcher(history_size=monitor.recent_event_limit)
    worker_factory = partial(
        UserMonitorWorker,
        store=store,
        token_lifecycle=TokenLifecycleService(
            oauth_client, timedelta(seconds=monitor.refresh_skew_seconds)
        ),
        poller=EventPoller(device_client),
        dispatcher=dispatcher,
        poll_interval_seconds=monitor.poll_interval_seconds,
    )
    supervisor = MonitorSupervisor(store, worker_factory)
    persistence = UserPersistenceService(
        SQLiteUserSnapshotStore(monitor.user_store_path),
        TokenCipherService(secret=settings.token_secret),
    )
    registration = UserRegistrationService(
        store,
        supervisor,
        dispatcher=dispatcher,
        default_project_id=monitor.default_project_id,
    )
    return MonitorRuntime(
        settings=settings,
        store=store,
        supervisor=supervisor,
        dispatcher=dispatcher,
        registration=registration,
        persistence=persistence,
    )


__all__ = ["MonitorRuntime", "build_runtime"]
