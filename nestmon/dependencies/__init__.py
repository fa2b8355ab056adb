"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_event_dispatcher,
    get_nest_oauth_client,
    get_oauth_state_encoder,
    get_registration_service,
    get_runtime,
    get_smart_device_client,
    get_supervisor,
    get_user_store,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_event_dispatcher",
    "get_nest_oauth_client",
    "get_oauth_state_encoder",
    "get_registration_service",
    "get_runtime",
    "get_smart_device_client",
    "get_supervisor",
    "get_user_store",
]
