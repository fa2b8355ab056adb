from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from nestmon.clients.sqlite_store import SQLiteUserSnapshotStore
from nestmon.core.config import get_settings
from nestmon.models.credential import Credential
from nestmon.models.user import UserRecord
from nestmon.monitoring import build_runtime
from nestmon.services.persistence import UserPersistenceService
from nestmon.services.token_cipher import TokenCipherService


def _settings(tmp_path):
    settings = get_settings().model_copy(deep=True)
    settings.monitor.user_store_path = str(tmp_path / "users.db")
    settings.monitor.save_interval_seconds = 3600
    return settings


@pytest.mark.asyncio
async def test_runtime_resumes_saved_users_and_saves_on_stop(tmp_path) -> None:
    settings = _settings(tmp_path)
    saved = UserRecord(
        user_id="u1",
        credential=Credential(access_token="a", refresh_token="r", expires_in=3600),
        device_ids=["cam-1"],
    )
    UserPersistenceService(
        SQLiteUserSnapshotStore(settings.monitor.user_store_path),
        TokenCipherService(secret=settings.token_secret),
    ).save({"u1": saved})

    runtime = build_runtime(settings)
    resumed = await runtime.start()

    assert resumed == 1
    assert runtime.supervisor.is_monitoring("u1")
    assert (await runtime.store.get("u1")) == saved

    await runtime.registration.complete_authorization(
        user_id="u2",
        credential=Credential(access_token="b", refresh_token="s", expires_in=3600),
    )
    await runtime.stop()

    assert runtime.supervisor.active_user_ids() == []
    restored = build_runtime(settings).persistence.load()
    assert set(restored) == {"u1", "u2"}


@pytest.mark.asyncio
async def test_runtime_starts_empty_without_snapshot(tmp_path) -> None:
    runtime = build_runtime(_settings(tmp_path))

    assert await runtime.start() == 0
    assert len(runtime.store) == 0

    await runtime.stop()
