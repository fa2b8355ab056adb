"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Stateless clients are cached per process. Stateful monitoring objects live on
the runtime that the application lifespan stores in ``app.state``.
"""

from functools import lru_cache

from fastapi import HTTPException, Request, status

from nestmon.clients import NestOAuthClient, OAuthStateEncoder, SmartDeviceClient
from nestmon.core.config import get_settings
from nestmon.monitoring import MonitorRuntime, MonitorSupervisor
from nestmon.services import EventDispatcher, SharedUserStore, UserRegistrationService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_nest_oauth_client() -> NestOAuthClient:
    """Create a singleton OAuth client."""
    settings = _settings()
    return NestOAuthClient(
        settings.google,
        settings.oauth,
        timeout=settings.monitor.http_timeout_seconds,
    )


@lru_cache()
def get_smart_device_client() -> SmartDeviceClient:
    """Provide the Smart Device Management client."""
    settings = _settings()
    return SmartDeviceClient(
        settings.monitor.api_base_url,
        timeout=settings.monitor.http_timeout_seconds,
    )


def get_runtime(request: Request) -> MonitorRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Monitoring runtime is not running.",
        )
    return runtime


def get_user_store(request: Request) -> SharedUserStore:
    return get_runtime(request).store


def get_supervisor(request: Request) -> MonitorSupervisor:
    return get_runtime(request).supervisor


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return get_runtime(request).dispatcher


def get_registration_service(request: Request) -> UserRegistrationService:
    return get_runtime(request).registration


__all__ = [
    "get_event_dispatcher",
    "get_nest_oauth_client",
    "get_oauth_state_encoder",
    "get_registration_service",
    "get_runtime",
    "get_smart_device_client",
    "get_supervisor",
    "get_user_store",
]
