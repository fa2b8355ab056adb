from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
from datetime import timedelta

import pytest

from nestmon.models.credential import Credential
from nestmon.models.user import UserRecord
from nestmon.monitoring.supervisor import MonitorSupervisor
from nestmon.monitoring.worker import UserMonitorWorker, WorkerState
from nestmon.services.event_dispatcher import EventDispatcher
from nestmon.services.event_poller import EventPoller
from nestmon.services.token_lifecycle import TokenLifecycleService
from nestmon.services.user_store import SharedUserStore


class IdleDeviceClient:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def list_events(self, project_id: str, device_id: str, access_token: str):
        self.calls.append(device_id)
        return []


class UnusedOAuthClient:
    async def refresh_token(self, refresh_token: str) -> Credential:  # pragma: no cover
        raise AssertionError("refresh should not be needed")


class BlockingWorker:
    """Stands in for a worker; runs until released."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self.release = asyncio.Event()

    async def run_forever(self) -> None:
        await self.release.wait()


def _record(user_id: str) -> UserRecord:
    return UserRecord(
        user_id=user_id,
        credential=Credential(access_token="a", refresh_token="r", expires_in=3600),
        device_ids=["d1"],
        project_id="proj",
    )


def _blocking_supervisor(store: SharedUserStore):
    workers: dict[str, list[BlockingWorker]] = {}

    def factory(user_id: str) -> BlockingWorker:
        worker = BlockingWorker(user_id)
        workers.setdefault(user_id, []).append(worker)
        return worker

    return MonitorSupervisor(store, factory), workers


@pytest.mark.asyncio
async def test_start_spawns_one_worker_per_stored_user() -> None:
    store = SharedUserStore({"u1": _record("u1"), "u2": _record("u2")})
    supervisor, workers = _blocking_supervisor(store)

    spawned = await supervisor.start()

    assert spawned == 2
    assert sorted(supervisor.active_user_ids()) == ["u1", "u2"]
    await supervisor.shutdown()
    assert supervisor.active_user_ids() == []


@pytest.mark.asyncio
async def test_duplicate_registration_keeps_single_worker() -> None:
    supervisor, workers = _blocking_supervisor(SharedUserStore())

    assert supervisor.on_user_registered("u1")
    assert not supervisor.on_user_registered("u1")
    assert len(workers["u1"]) == 1

    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_finished_worker_is_forgotten_and_can_be_respawned() -> None:
    supervisor, workers = _blocking_supervisor(SharedUserStore())
    supervisor.on_user_registered("u1")

    workers["u1"][0].release.set()
    for _ in range(3):
        await asyncio.sleep(0)

    assert not supervisor.is_monitoring("u1")
    assert supervisor.on_user_registered("u1")
    assert len(workers["u1"]) == 2

    await supervisor.shutdown()


@pytest.mark.asyncio
async def test_deleting_user_stops_real_worker_within_one_interval() -> None:
    store = SharedUserStore({"u1": _record("u1")})
    devices = IdleDeviceClient()
    spawned: list[UserMonitorWorker] = []

    def factory(user_id: str) -> UserMonitorWorker:
        worker = UserMonitorWorker(
            user_id,
            store=store,
            token_lifecycle=TokenLifecycleService(
                UnusedOAuthClient(), refresh_skew=timedelta(seconds=300)
            ),
            poller=EventPoller(devices),
            dispatcher=EventDispatcher(),
            poll_interval_seconds=0.01,
        )
        spawned.append(worker)
        return worker

    supervisor = MonitorSupervisor(store, factory)
    await supervisor.start()
    await asyncio.sleep(0.03)
    assert supervisor.is_monitoring("u1")

    await store.delete("u1")
    supervisor.on_user_removed("u1")
    await asyncio.sleep(0.05)

    assert not supervisor.is_monitoring("u1")
    assert spawned[0].state is WorkerState.STOPPED
    calls_after_stop = len(devices.calls)
    await asyncio.sleep(0.03)
    assert len(devices.calls) == calls_after_stop

    await supervisor.shutdown()
