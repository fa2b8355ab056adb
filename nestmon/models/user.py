"""
Domain model for a monitored user.
"""

from __future__ import annotations

from typing import Any, Iterable, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nestmon.models.credential import Credential


def dedupe_device_ids(device_ids: Iterable[str]) -> Tuple[str, ...]:
    """Drop blanks and duplicates while keeping first-seen order."""
    seen: dict[str, None] = {}
    for device_id in device_ids:
        cleaned = device_id.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


class UserRecord(BaseModel):
    """A user's monitored devices, Device Access project and OAuth credential."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    credential: Credential
    device_ids: Tuple[str, ...] = ()
    project_id: str = ""

    @field_validator("device_ids", mode="before")
    @classmethod
    def _dedupe(cls, value: Any) -> Tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return dedupe_device_ids(value)

    @property
    def is_pollable(self) -> bool:
        return bool(self.project_id) and bool(self.device_ids)

    def with_credential(self, credential: Credential) -> "UserRecord":
        return self.model_copy(update={"credential": credential})

    def with_devices(
        self, device_ids: Iterable[str], project_id: str | None = None
    ) -> "UserRecord":
        update: dict[str, Any] = {"device_ids": dedupe_device_ids(device_ids)}
        if project_id is not None:
            update["project_id"] = project_id
        return self.model_copy(update=update)


__all__ = ["UserRecord", "dedupe_device_ids"]
