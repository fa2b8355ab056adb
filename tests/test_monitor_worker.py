from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from nestmon.clients.nest_oauth import OAuthTokenExchangeError
from nestmon.clients.smart_device import DeviceApiError, DeviceApiUnauthorizedError
from nestmon.models.credential import Credential
from nestmon.models.device import CameraEvent
from nestmon.models.user import UserRecord
from nestmon.monitoring.worker import UserMonitorWorker, WorkerState
from nestmon.services.event_dispatcher import EventDispatcher
from nestmon.services.event_poller import EventPoller
from nestmon.services.token_lifecycle import TokenLifecycleService
from nestmon.services.user_store import SharedUserStore


class RotatingOAuthClient:
    """Issues a new access and refresh token on every call."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> Credential:
        self.calls.append(refresh_token)
        if self.fail:
            raise OAuthTokenExchangeError("token endpoint down")
        n = len(self.calls)
        return Credential(
            access_token=f"access-{n}", refresh_token=f"refresh-{n}", expires_in=3600
        )


class FakeDeviceClient:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.rejected_tokens: set[str] = set()
        self.failing_devices: set[str] = set()
        self.events: dict[str, list[CameraEvent]] = {}

    async def list_events(self, project_id: str, device_id: str, access_token: str):
        self.calls.append((device_id, access_token))
        if access_token in self.rejected_tokens:
            raise DeviceApiUnauthorizedError("rejected", status_code=401)
        if device_id in self.failing_devices:
            raise DeviceApiError("timeout")
        return list(self.events.get(device_id, []))


class RecordingDispatcher(EventDispatcher):
    def __init__(self) -> None:
        super().__init__()
        self.seen: list[tuple[str, str]] = []

    async def dispatch(self, user_id: str, event: CameraEvent) -> bool:
        self.seen.append((user_id, event.event_id))
        return await super().dispatch(user_id, event)


def _event(event_id: str, device_id: str, event_type: str = "motion") -> CameraEvent:
    return CameraEvent(
        event_id=event_id,
        event_type=event_type,
        timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
        device_id=device_id,
    )


def _record(*, seconds_left: int = 3000, devices=("d1", "d2")) -> UserRecord:
    issued_at = datetime.now(timezone.utc) - timedelta(seconds=3600 - seconds_left)
    return UserRecord(
        user_id="u1",
        credential=Credential(
            access_token="access-0",
            refresh_token="refresh-0",
            expires_in=3600,
            issued_at=issued_at,
        ),
        device_ids=list(devices),
        project_id="proj",
    )


def _worker(store, oauth, devices, dispatcher=None, sleep=None) -> UserMonitorWorker:
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return UserMonitorWorker(
        "u1",
        store=store,
        token_lifecycle=TokenLifecycleService(oauth, refresh_skew=timedelta(seconds=300)),
        poller=EventPoller(devices),
        dispatcher=dispatcher or RecordingDispatcher(),
        poll_interval_seconds=15,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_before_polling() -> None:
    store = SharedUserStore({"u1": _record(seconds_left=60)})
    oauth = RotatingOAuthClient()
    devices = FakeDeviceClient()

    report = await _worker(store, oauth, devices).run_cycle()

    assert report.refreshed
    assert oauth.calls == ["refresh-0"]
    assert [token for _, token in devices.calls] == ["access-1", "access-1"]
    stored = await store.get("u1")
    assert stored.credential.access_token == "access-1"
    assert stored.credential.refresh_token == "refresh-1"


@pytest.mark.asyncio
async def test_refresh_failure_still_polls_with_stale_token() -> None:
    store = SharedUserStore({"u1": _record(seconds_left=10)})
    oauth = RotatingOAuthClient(fail=True)
    devices = FakeDeviceClient()
    devices.events["d2"] = [_event("e1", "d2")]
    dispatcher = RecordingDispatcher()
    worker = _worker(store, oauth, devices, dispatcher)

    report = await worker.run_cycle()

    assert report.refresh_failed
    assert [token for _, token in devices.calls] == ["access-0", "access-0"]
    assert dispatcher.seen == [("u1", "e1")]
    assert worker.state is WorkerState.RUNNING
    assert (await store.get("u1")).credential.access_token == "access-0"


@pytest.mark.asyncio
async def test_unauthorized_poll_triggers_reactive_refresh() -> None:
    store = SharedUserStore({"u1": _record()})
    oauth = RotatingOAuthClient()
    devices = FakeDeviceClient()
    devices.rejected_tokens.add("access-0")

    report = await _worker(store, oauth, devices).run_cycle()

    assert report.reactive_refresh is True
    assert oauth.calls == ["refresh-0"]
    assert (await store.get("u1")).credential.access_token == "access-1"


@pytest.mark.asyncio
async def test_refreshed_refresh_token_is_used_for_next_refresh() -> None:
    store = SharedUserStore({"u1": _record()})
    oauth = RotatingOAuthClient()
    devices = FakeDeviceClient()
    devices.rejected_tokens.update({"access-0", "access-1"})
    worker = _worker(store, oauth, devices)

    await worker.run_cycle()
    await worker.run_cycle()

    assert oauth.calls == ["refresh-0", "refresh-1"]
    assert (await store.get("u1")).credential.refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_failed_reactive_refresh_keeps_worker_running() -> None:
    store = SharedUserStore({"u1": _record()})
    oauth = RotatingOAuthClient(fail=True)
    devices = FakeDeviceClient()
    devices.rejected_tokens.add("access-0")
    worker = _worker(store, oauth, devices)

    report = await worker.run_cycle()

    assert report.reactive_refresh is False
    assert worker.state is WorkerState.RUNNING
    assert (await store.get("u1")).credential.access_token == "access-0"


@pytest.mark.asyncio
async def test_partial_failure_dispatches_remaining_events() -> None:
    store = SharedUserStore({"u1": _record()})
    devices = FakeDeviceClient()
    devices.failing_devices.add("d1")
    devices.events["d2"] = [_event("e1", "d2"), _event("e2", "d2", "doorbell-ring")]
    dispatcher = RecordingDispatcher()

    report = await _worker(store, RotatingOAuthClient(), devices, dispatcher).run_cycle()

    assert report.failed_devices == ["d1"]
    assert report.events_dispatched == 1
    assert report.events_dropped == 1
    assert [event.event_id for event in dispatcher.recent_events("u1")] == ["e1"]


@pytest.mark.asyncio
async def test_missing_record_stops_worker_without_network_calls() -> None:
    store = SharedUserStore()
    oauth = RotatingOAuthClient()
    devices = FakeDeviceClient()
    worker = _worker(store, oauth, devices)

    report = await worker.run_cycle()

    assert not report.user_present
    assert worker.state is WorkerState.STOPPED
    assert oauth.calls == []
    assert devices.calls == []


@pytest.mark.asyncio
async def test_deleting_record_mid_loop_stops_run_forever() -> None:
    store = SharedUserStore({"u1": _record()})
    oauth = RotatingOAuthClient()
    devices = FakeDeviceClient()
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await store.delete("u1")

    worker = _worker(store, oauth, devices, sleep=fake_sleep)
    await worker.run_forever()

    assert worker.state is WorkerState.STOPPED
    assert worker.cycles == 2
    assert sleeps == [15]
    assert len(devices.calls) == 2


@pytest.mark.asyncio
async def test_record_deleted_during_poll_suppresses_dispatch() -> None:
    store = SharedUserStore({"u1": _record(devices=("d1",))})
    dispatcher = RecordingDispatcher()

    class DeletingDeviceClient(FakeDeviceClient):
        async def list_events(self, project_id, device_id, access_token):
            await store.delete("u1")
            return [_event("late", device_id)]

    worker = _worker(store, RotatingOAuthClient(), DeletingDeviceClient(), dispatcher)
    report = await worker.run_cycle()

    assert not report.user_present
    assert worker.state is WorkerState.STOPPED
    assert dispatcher.seen == []


@pytest.mark.asyncio
async def test_unexpected_errors_do_not_escape_the_loop() -> None:
    store = SharedUserStore({"u1": _record()})

    class ExplodingDeviceClient(FakeDeviceClient):
        async def list_events(self, project_id, device_id, access_token):
            raise RuntimeError("unexpected")

    async def fake_sleep(seconds: float) -> None:
        await store.delete("u1")

    worker = _worker(store, RotatingOAuthClient(), ExplodingDeviceClient(), sleep=fake_sleep)
    await worker.run_forever()

    assert worker.state is WorkerState.STOPPED
