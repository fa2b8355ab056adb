"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from nestmon.models.credential import Credential


@pytest.fixture
def anyio_backend() -> str:
    """Route and HTTP tests run on the asyncio loop the monitors use."""
    return "asyncio"


@pytest.fixture
def valid_credential() -> Credential:
    """A credential issued just now that will not need refreshing for an hour."""
    return Credential(access_token="a", refresh_token="r", expires_in=3600)
