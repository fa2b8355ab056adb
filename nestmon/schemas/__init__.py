"""Public schema exports."""

from .auth import AuthorizationResult, AuthorizationStartResponse
from .monitoring import (
    DeviceListResponse,
    EventListResponse,
    RegisterUserRequest,
    UserStatusResponse,
)

__all__ = [
    "AuthorizationResult",
    "AuthorizationStartResponse",
    "DeviceListResponse",
    "EventListResponse",
    "RegisterUserRequest",
    "UserStatusResponse",
]
