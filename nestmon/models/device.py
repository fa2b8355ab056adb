"""
Typed views over Smart Device Management payloads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

_INFO_TRAIT = "sdm.devices.traits.Info"


class CameraEvent(BaseModel):
    """A single event reported for a camera device."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_id: str = Field(..., validation_alias=AliasChoices("event_id", "eventId"))
    event_type: str = Field(
        ..., validation_alias=AliasChoices("event_type", "eventType")
    )
    timestamp: datetime
    device_id: str = Field("", validation_alias=AliasChoices("device_id", "deviceId"))


class Device(BaseModel):
    """A device discovered under a Device Access project."""

    name: str
    device_id: str
    type_name: str
    traits: List[str] = Field(default_factory=list)
    room_name: Optional[str] = None
    display_name: str

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Device":
        """Flatten an SDM device resource (``enterprises/<p>/devices/<id>``)."""
        name = payload["name"]
        device_id = name.rsplit("/", 1)[-1] or name
        traits: Dict[str, Any] = payload.get("traits") or {}

        info = traits.get(_INFO_TRAIT) or traits.get("info") or {}
        display_name = info.get("customName") or device_id

        room_name = None
        for relation in payload.get("parentRelations") or []:
            if relation.get("relationshipType") == "ROOM":
                room_name = relation.get("displayName")
                break

        return cls(
            name=name,
            device_id=device_id,
            type_name=payload.get("type", ""),
            traits=list(traits.keys()),
            room_name=room_name,
            display_name=display_name,
        )

    @property
    def is_camera(self) -> bool:
        if "camera" in self.type_name.lower():
            return True
        return any("camera" in trait.lower() for trait in self.traits)


def filter_cameras(devices: List[Device]) -> List[Device]:
    """Keep only devices whose type or traits mark them as cameras."""
    return [device for device in devices if device.is_camera]


__all__ = ["CameraEvent", "Device", "filter_cameras"]
