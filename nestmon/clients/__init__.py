"""Expose constructed client wrappers."""

from .nest_oauth import NestOAuthClient, OAuthStateEncoder
from .smart_device import SmartDeviceClient
from .sqlite_store import SQLiteUserSnapshotStore

__all__ = [
    "NestOAuthClient",
    "OAuthStateEncoder",
    "SQLiteUserSnapshotStore",
    "SmartDeviceClient",
]
