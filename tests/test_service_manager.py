"""Тесты запуска и остановки ServiceManager."""

import json

import pytest

from conftest import FakeRemote
from config import PortalConfig
from core.storage import MemoryStorage
from services import ServiceManager


@pytest.fixture
def portal_config(monkeypatch, tmp_path):
    for name in ("PORTAL_API_URL", "PORTAL_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("LOG_TO_FILE", "false")
    return PortalConfig()


class TestServiceManager:

    @pytest.mark.asyncio
    async def test_offline_start(self, portal_config, clock):
        manager = ServiceManager(portal_config, storage=MemoryStorage(), clock=clock)
        assert await manager.start()
        try:
            assert manager.initialized
            assert manager.store.progress.source == "default"
            assert manager.health_check()["status"] == "healthy"

            await manager.portal.mark_day_complete("standard", 1)
            info = manager.get_services_info()
            assert info["services"]["progress_store"]["completed_days"] == 1
        finally:
            await manager.stop()
        assert not manager.initialized

    @pytest.mark.asyncio
    async def test_start_loads_from_remote_without_extra_sync(self, portal_config, clock):
        remote = FakeRemote(entries=[{"track_id": "standard", "day_number": 2, "completed": True,
                                      "updated_at": "2024-01-05T00:00:00Z"}])
        manager = ServiceManager(portal_config, storage=MemoryStorage(), remote=remote, clock=clock)
        assert await manager.start()
        try:
            assert manager.store.progress.source == "database"
            assert manager.store.progress.completed_days == {"standard-2": True}
            assert remote.progress_requests == 1
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_configured_timezone_drives_clock(self, portal_config):
        portal_config.timezone = "Pacific/Kiritimati"
        manager = ServiceManager(portal_config, storage=MemoryStorage())
        assert await manager.start()
        try:
            assert manager.store.clock().tzinfo.zone == "Pacific/Kiritimati"
            assert manager.reconciler.clock is manager.store.clock
            assert manager.event_bus.clock is manager.store.clock
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_empty_remote_uploads_local_progress_on_start(self, portal_config, clock):
        storage = MemoryStorage()
        storage.set("practicePortalProgress", json.dumps({
            "completedDays": {"standard-4": True}, "tasks": {}, "lastSynced": "2024-01-09T08:00:00Z"
        }))
        remote = FakeRemote()
        manager = ServiceManager(portal_config, storage=storage, remote=remote, clock=clock)
        assert await manager.start()
        try:
            assert manager.store.progress.completed_days == {"standard-4": True}
            assert manager.reconciler.last_result.action.value == "push"
            assert [(e.track_id, e.day_number) for e in remote.updates] == [("standard", 4)]
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_start_syncs_local_data_when_remote_fetch_fails(self, portal_config, clock):
        remote = FakeRemote()
        remote.fail_progress = True
        manager = ServiceManager(portal_config, storage=MemoryStorage(), remote=remote, clock=clock)
        assert await manager.start()
        try:
            assert manager.store.progress.source == "default"
            assert remote.progress_requests == 2
            assert manager.health_check()["status"] == "warning"
        finally:
            await manager.stop()
