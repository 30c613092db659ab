"""Тесты локальных хранилищ ключ/значение."""

import pytest

from core.storage import MemoryStorage, JsonFileStorage, QuotaExceededError, StorageError


class TestMemoryStorage:

    def test_set_get_remove(self):
        storage = MemoryStorage()
        storage.set("dashboardData", '{"a": 1}')
        assert storage.get("dashboardData") == '{"a": 1}'
        assert storage.remove("dashboardData")
        assert storage.get("dashboardData") is None
        assert not storage.remove("dashboardData")

    def test_quota_exceeded(self):
        storage = MemoryStorage(quota_bytes=10)
        with pytest.raises(QuotaExceededError) as exc_info:
            storage.set("key", "x" * 11)
        assert exc_info.value.kind == "QuotaExceeded"
        assert storage.get("key") is None

    def test_overwrite_does_not_count_previous_value(self):
        storage = MemoryStorage(quota_bytes=10)
        storage.set("key", "x" * 8)
        storage.set("key", "y" * 9)
        assert storage.usage_bytes() == 9


class TestJsonFileStorage:

    def test_values_persist_between_instances(self, tmp_path):
        JsonFileStorage(tmp_path / "data").set("practicePortalProgress", '{"tasks": {}}')
        reopened = JsonFileStorage(tmp_path / "data")
        assert reopened.get("practicePortalProgress") == '{"tasks": {}}'
        assert (tmp_path / "data" / "practicePortalProgress.json").exists()

    def test_missing_key_returns_none(self, tmp_path):
        assert JsonFileStorage(tmp_path).get("userSettings") is None

    def test_invalid_key_rejected(self, tmp_path):
        with pytest.raises(StorageError):
            JsonFileStorage(tmp_path).set("../escape", "{}")

    def test_quota_counts_other_files(self, tmp_path):
        storage = JsonFileStorage(tmp_path, quota_bytes=20)
        storage.set("first", "x" * 15)
        with pytest.raises(QuotaExceededError):
            storage.set("second", "y" * 10)
        storage.set("first", "z" * 20)
        assert storage.get("first") == "z" * 20

    def test_no_temp_files_left_behind(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.set("dashboardData", "{}")
        assert [p.name for p in tmp_path.iterdir()] == ["dashboardData.json"]
