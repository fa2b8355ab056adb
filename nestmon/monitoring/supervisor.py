"""Spawns one camera monitor task per registered user."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Callable, Dict, List

from nestmon.monitoring.worker import UserMonitorWorker
from nestmon.services.user_store import SharedUserStore

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[str], UserMonitorWorker]


class MonitorSupervisor:
    """Keeps at most one running worker per user identifier.

    Workers end on their own once their record disappears from the store;
    the supervisor only starts them and forgets them when they finish.
    """

    def __init__(self, store: SharedUserStore, worker_factory: WorkerFactory) -> None:
        self._store = store
        self._worker_factory = worker_factory
        self._tasks: Dict[str, asyncio.Task] = {}

    async def start(self) -> int:
        """Spawn a worker for every user already in the store."""
        spawned = 0
        for user_id in await self._store.user_ids():
            if self.on_user_registered(user_id):
                spawned += 1
        logger.info("Monitoring resumed for %d existing user(s)", spawned)
        return spawned

    def on_user_registered(self, user_id: str) -> bool:
        """Start a worker unless one is already running; returns True if spawned."""
        if self.is_monitoring(user_id):
            logger.debug("Worker for user %s already running", user_id)
            return False

        worker = self._worker_factory(user_id)
        task = asyncio.create_task(
            worker.run_forever(), name=f"camera-monitor-{user_id}"
        )
        self._tasks[user_id] = task
        task.add_done_callback(partial(self._forget, user_id))
        logger.info("Spawned camera monitor for user %s", user_id)
        return True

    def on_user_removed(self, user_id: str) -> None:
        # Deleting the record is the stop signal; the worker notices on its next cycle.
        logger.info("User %s removed; monitor will stop on its next cycle", user_id)

    def is_monitoring(self, user_id: str) -> bool:
        task = self._tasks.get(user_id)
        return task is not None and not task.done()

    def active_user_ids(self) -> List[str]:
        return [user_id for user_id, task in self._tasks.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel every worker; used only when the process is stopping."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _forget(self, user_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(user_id) is task:
            del self._tasks[user_id]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Camera monitor for user %s crashed",
                user_id,
                exc_info=(type(exc), exc, exc.__traceback__),
            )


__all__ = ["MonitorSupervisor", "WorkerFactory"]
