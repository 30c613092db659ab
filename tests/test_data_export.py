"""Тесты файлов резервных копий."""

import json
from datetime import date

import pytest

from core.models import DayKey
from core.progress_store import ProgressStore
from core.storage import MemoryStorage
from services.data_export import export_to_file, read_import_file


class TestDataExport:

    def test_file_name_contains_date(self, tmp_path):
        path = export_to_file({"version": "2.0.0"}, tmp_path / "exports", date(2024, 3, 7))
        assert path.name == "interview-prep-backup-2024-03-07.json"
        assert json.loads(path.read_text(encoding="utf-8")) == {"version": "2.0.0"}

    @pytest.mark.asyncio
    async def test_backup_restores_into_new_store(self, store, clock, tmp_path):
        store.progress.source = "local"
        store.progress.mark_day(DayKey("standard", 4))
        store.dashboard.questions.mark_studied("q-1", "java", 6)

        path = export_to_file(store.export_document(), tmp_path, store.today())

        restored = ProgressStore(MemoryStorage(), clock=clock)
        assert await restored.import_document(read_import_file(path))
        assert restored.progress.completed_days == {"standard-4": True}
        assert restored.dashboard.questions.time_spent == {"q-1": 6}

    def test_unreadable_file_raises(self, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{", encoding="utf-8")
        with pytest.raises(ValueError):
            read_import_file(broken)
