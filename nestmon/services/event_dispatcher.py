"""
Routing of camera events to per-kind handlers.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from nestmon.models.device import CameraEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, CameraEvent], Awaitable[None]]

KNOWN_EVENT_KINDS = ("motion", "person", "sound", "chime")

# SDM resource names, e.g. "sdm.devices.events.CameraMotion.Motion".
_SDM_EVENT_KINDS = {
    "cameramotion": "motion",
    "cameraperson": "person",
    "camerasound": "sound",
    "doorbellchime": "chime",
}


def normalize_event_kind(event_type: str) -> Optional[str]:
    """Map a raw event type to one of ``KNOWN_EVENT_KINDS`` or None."""
    lowered = event_type.strip().lower()
    if lowered in KNOWN_EVENT_KINDS:
        return lowered
    for segment in lowered.split("."):
        if segment in _SDM_EVENT_KINDS:
            return _SDM_EVENT_KINDS[segment]
    return None


class EventDispatcher:
    """Categorizes events by kind, runs handlers and keeps a short history."""

    def __init__(self, history_size: int = 50) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._history: Dict[str, Deque[CameraEvent]] = {}
        self._history_size = history_size

    def register(self, kind: str, handler: EventHandler) -> None:
        if kind not in KNOWN_EVENT_KINDS:
            raise ValueError(f"Unsupported event kind {kind!r}.")
        self._handlers[kind].append(handler)

    async def dispatch(self, user_id: str, event: CameraEvent) -> bool:
        """Handle one event; returns False when the kind is not recognized."""
        kind = normalize_event_kind(event.event_type)
        if kind is None:
            logger.info(
                "Unhandled event type %s from camera %s for user %s",
                event.event_type,
                event.device_id,
                user_id,
            )
            return False

        logger.info(
            "%s detected on camera %s for user %s at %s",
            kind.capitalize(),
            event.device_id,
            user_id,
            event.timestamp.isoformat(),
        )
        self._remember(user_id, event)

        for handler in self._handlers.get(kind, ()):
            try:
                await handler(user_id, event)
            except Exception:  # pylint: disable=broad-except
                logger.exception(
                    "Event handler failed for %s event %s", kind, event.event_id
                )
        return True

    def recent_events(self, user_id: str) -> List[CameraEvent]:
        return list(self._history.get(user_id, ()))

    def forget(self, user_id: str) -> None:
        self._history.pop(user_id, None)

    def _remember(self, user_id: str, event: CameraEvent) -> None:
        history = self._history.get(user_id)
        if history is None:
            history = deque(maxlen=self._history_size)
            self._history[user_id] = history
        history.append(event)


__all__ = [
    "EventDispatcher",
    "EventHandler",
    "KNOWN_EVENT_KINDS",
    "normalize_event_kind",
]
