"""Fetch pending camera events for every device a user monitors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from nestmon.clients.smart_device import (
    DeviceApiError,
    DeviceApiUnauthorizedError,
    SmartDeviceClient,
)
from nestmon.models.device import CameraEvent
from nestmon.models.user import UserRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollResult:
    """Outcome of one poll over all of a user's devices."""

    events: List[CameraEvent] = field(default_factory=list)
    failed_devices: List[str] = field(default_factory=list)
    unauthorized: bool = False

    @property
    def complete(self) -> bool:
        return not self.failed_devices


class EventPoller:
    """Polls devices one by one, isolating per-device failures."""

    def __init__(self, device_client: SmartDeviceClient) -> None:
        self._devices = device_client

    async def poll(self, record: UserRecord) -> PollResult:
        result = PollResult()
        if not record.is_pollable:
            return result

        access_token = record.credential.access_token
        for device_id in record.device_ids:
            try:
                events = await self._devices.list_events(
                    record.project_id, device_id, access_token
                )
            except DeviceApiUnauthorizedError:
                logger.warning(
                    "Access token rejected while polling device %s for user %s",
                    device_id,
                    record.user_id,
                )
                result.unauthorized = True
                result.failed_devices.append(device_id)
                continue
            except DeviceApiError as exc:
                logger.error(
                    "Error polling device %s for user %s: %s",
                    device_id,
                    record.user_id,
                    exc,
                )
                result.failed_devices.append(device_id)
                continue
            result.events.extend(events)

        return result


__all__ = ["EventPoller", "PollResult"]
