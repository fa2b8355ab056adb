"""Smart Device Management API client for device discovery and camera events."""

from __future__ import annotations

from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from nestmon.models.device import CameraEvent, Device


class DeviceApiError(Exception):
    """Raised when a Smart Device Management request fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeviceApiUnauthorizedError(DeviceApiError):
    """Raised when the API rejects the access token (HTTP 401)."""


class SmartDeviceClient:
    """Typed wrapper around the enterprise device endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def list_devices(self, project_id: str, access_token: str) -> List[Device]:
        """Return every device registered under the Device Access project."""
        url = f"{self._base_url}/enterprises/{project_id}/devices"
        payload = await self._get_json(url, access_token)
        if not isinstance(payload, dict):
            raise DeviceApiError("Unexpected device list payload.")
        try:
            return [Device.from_api(item) for item in payload.get("devices") or []]
        except (KeyError, TypeError, ValidationError) as exc:
            raise DeviceApiError(f"Malformed device payload: {exc}") from exc

    async def list_events(
        self, project_id: str, device_id: str, access_token: str
    ) -> List[CameraEvent]:
        """Return pending events for one device in provider order."""
        url = f"{self._base_url}/enterprises/{project_id}/devices/{device_id}/events"
        payload = await self._get_json(url, access_token)
        # An empty event list is omitted from the response body.
        items = (payload.get("events") or []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise DeviceApiError(f"Unexpected event payload for device {device_id}.")

        events: List[CameraEvent] = []
        try:
            for item in items:
                event = CameraEvent.model_validate(item)
                if not event.device_id:
                    event = event.model_copy(update={"device_id": device_id})
                events.append(event)
        except ValidationError as exc:
            raise DeviceApiError(
                f"Malformed event payload for device {device_id}: {exc.error_count()} error(s)"
            ) from exc
        return events

    async def _get_json(self, url: str, access_token: str) -> Any:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise DeviceApiError(f"Request to {url} timed out.") from exc
        except httpx.HTTPError as exc:
            raise DeviceApiError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise DeviceApiUnauthorizedError(
                "Access token rejected by Smart Device Management API.",
                status_code=response.status_code,
            )
        if response.is_error:
            raise DeviceApiError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise DeviceApiError("API returned invalid JSON.") from exc


__all__ = ["DeviceApiError", "DeviceApiUnauthorizedError", "SmartDeviceClient"]
