"""Request and response schemas for registration, status and discovery."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from nestmon.models.device import CameraEvent, Device
from nestmon.models.user import UserRecord


class RegisterUserRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    project_id: Optional[str] = Field(
        None, description="Device Access project; keeps the stored one when omitted."
    )
    device_ids: List[str] = Field(default_factory=list)


class UserStatusResponse(BaseModel):
    user_id: str
    project_id: str
    device_ids: List[str]
    token_expires_at: datetime
    monitoring: bool

    @classmethod
    def from_record(cls, record: UserRecord, *, monitoring: bool) -> "UserStatusResponse":
        return cls(
            user_id=record.user_id,
            project_id=record.project_id,
            device_ids=list(record.device_ids),
            token_expires_at=record.credential.expires_at,
            monitoring=monitoring,
        )


class DeviceListResponse(BaseModel):
    devices: List[Device]


class EventListResponse(BaseModel):
    user_id: str
    events: List[CameraEvent]


__all__ = [
    "DeviceListResponse",
    "EventListResponse",
    "RegisterUserRequest",
    "UserStatusResponse",
]
