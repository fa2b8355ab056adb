from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging

import pytest

from nestmon.clients.smart_device import DeviceApiError, DeviceApiUnauthorizedError
from nestmon.models.credential import Credential
from nestmon.models.device import CameraEvent
from nestmon.models.user import UserRecord
from nestmon.services.event_poller import EventPoller


def _event(event_id: str, device_id: str, event_type: str = "motion") -> CameraEvent:
    return CameraEvent(
        event_id=event_id,
        event_type=event_type,
        timestamp="2025-01-01T12:00:00+00:00",
        device_id=device_id,
    )


class ScriptedDeviceClient:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.calls: list[tuple[str, str, str]] = []

    async def list_events(self, project_id: str, device_id: str, access_token: str):
        self.calls.append((project_id, device_id, access_token))
        response = self.responses[device_id]
        if isinstance(response, Exception):
            raise response
        return response


def _record(device_ids: list[str], project_id: str = "proj") -> UserRecord:
    return UserRecord(
        user_id="u1",
        credential=Credential(access_token="token", refresh_token="r", expires_in=3600),
        device_ids=device_ids,
        project_id=project_id,
    )


@pytest.mark.asyncio
async def test_failed_device_does_not_hide_other_devices(caplog) -> None:
    client = ScriptedDeviceClient(
        {"d1": DeviceApiError("boom", status_code=500), "d2": [_event("e1", "d2")]}
    )
    poller = EventPoller(client)

    with caplog.at_level(logging.ERROR, logger="nestmon.services.event_poller"):
        result = await poller.poll(_record(["d1", "d2"]))

    assert [event.event_id for event in result.events] == ["e1"]
    assert result.events[0].device_id == "d2"
    assert result.failed_devices == ["d1"]
    assert not result.unauthorized
    assert "d1" in caplog.text


@pytest.mark.asyncio
async def test_events_keep_device_then_provider_order() -> None:
    client = ScriptedDeviceClient(
        {
            "d1": [_event("a", "d1"), _event("b", "d1", "person")],
            "d2": [_event("c", "d2")],
        }
    )
    result = await EventPoller(client).poll(_record(["d1", "d2"]))

    assert [event.event_id for event in result.events] == ["a", "b", "c"]
    assert result.complete
    assert [call[2] for call in client.calls] == ["token", "token"]


@pytest.mark.asyncio
async def test_unauthorized_is_flagged_and_polling_continues() -> None:
    client = ScriptedDeviceClient(
        {
            "d1": DeviceApiUnauthorizedError("rejected", status_code=401),
            "d2": [_event("e2", "d2")],
        }
    )
    result = await EventPoller(client).poll(_record(["d1", "d2"]))

    assert result.unauthorized
    assert result.failed_devices == ["d1"]
    assert [event.event_id for event in result.events] == ["e2"]


@pytest.mark.asyncio
async def test_record_without_project_is_not_polled() -> None:
    client = ScriptedDeviceClient({})
    result = await EventPoller(client).poll(_record(["d1"], project_id=""))

    assert result.events == []
    assert client.calls == []
