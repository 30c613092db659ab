"""Тесты моделей прогресса, панели и составных ключей."""

import pytest

from core.models import (
    DayKey, TaskKey, KeyFormatError, ShapeValidationError, ProgressRecord,
    DashboardRecord, QuestionStats, UserSettings, ACHIEVEMENT_IDS,
    is_legacy_key, migrate_legacy_key, validate_progress_data
)


class TestCompositeKeys:

    def test_day_key_encoding(self):
        assert DayKey("standard", 5).encode() == "standard-5"
        assert DayKey("standard", 5).task_prefix == "standard-5-task-"

    def test_decode_track_with_dashes(self):
        key = DayKey.decode("api-testing-12")
        assert key.track_id == "api-testing"
        assert key.day_number == 12

    @pytest.mark.parametrize("raw", ["standard", "standard-", "-3", "0-5", "standard-x"])
    def test_decode_rejects_malformed_keys(self, raw):
        with pytest.raises(KeyFormatError):
            DayKey.decode(raw)

    def test_task_key_round_trip(self):
        key = TaskKey.decode("api-testing-3-task-2")
        assert key.day == DayKey("api-testing", 3)
        assert key.index == 2
        assert key.encode() == "api-testing-3-task-2"

    def test_negative_day_rejected(self):
        with pytest.raises(KeyFormatError):
            DayKey("standard", -1)

    def test_legacy_keys_migrate_to_track(self):
        assert is_legacy_key("0-5")
        assert is_legacy_key("1-5-task-2")
        assert not is_legacy_key("standard-5")
        assert migrate_legacy_key("0-5", "standard") == "standard-5"
        assert migrate_legacy_key("1-5-task-2", "standard") == "standard-5-task-2"
        assert migrate_legacy_key("standard-5", "standard") == "standard-5"


class TestProgressRecord:

    def test_default_record_is_valid(self):
        record = ProgressRecord.create_default()
        assert validate_progress_data(record.to_dict())
        assert record.source == "default"
        assert record.completed_count == 0

    def test_from_dict_rejects_missing_maps(self):
        with pytest.raises(ShapeValidationError):
            ProgressRecord.from_dict({"completedDays": {}})
        with pytest.raises(ShapeValidationError):
            ProgressRecord.from_dict({"completedDays": [], "tasks": {}})

    def test_from_dict_coerces_values_and_unknown_source(self):
        record = ProgressRecord.from_dict({
            "completedDays": {"standard-1": 1, "standard-2": 0},
            "tasks": {"standard-1-task-0": "yes"},
            "source": "cloud",
        })
        assert record.completed_days == {"standard-1": True, "standard-2": False}
        assert record.tasks == {"standard-1-task-0": True}
        assert record.source == "default"
        assert record.completed_count == 1

    def test_tasks_for_day_uses_exact_prefix(self):
        record = ProgressRecord(tasks={
            "standard-1-task-0": True,
            "standard-1-task-1": False,
            "standard-10-task-0": True,
        })
        assert record.tasks_for_day(DayKey("standard", 1)) == {
            "standard-1-task-0": True,
            "standard-1-task-1": False,
        }

    def test_toggle_task(self):
        record = ProgressRecord()
        key = TaskKey(DayKey("standard", 1), 0)
        assert record.toggle_task(key) is True
        assert record.toggle_task(key) is False

    def test_migration_prefers_existing_canonical_key(self):
        record = ProgressRecord(
            completed_days={"0-1": False, "standard-1": True, "0-2": True},
            tasks={"0-2-task-1": True},
        )
        migrated = record.migrate_legacy_keys("standard")
        assert migrated == 3
        assert record.completed_days == {"standard-1": True, "standard-2": True}
        assert record.tasks == {"standard-2-task-1": True}

    def test_analytics_only_serialised_when_present(self):
        assert "analytics" not in ProgressRecord().to_dict()
        record = ProgressRecord(analytics={"totalStudyTime": 5})
        assert record.to_dict()["analytics"] == {"totalStudyTime": 5}


class TestDashboardRecord:

    def test_defaults_have_all_achievements_locked(self):
        dashboard = DashboardRecord.create_default()
        assert set(dashboard.achievements) == set(ACHIEVEMENT_IDS)
        assert not any(dashboard.achievements.values())

    def test_round_trip_through_dict(self):
        dashboard = DashboardRecord()
        dashboard.streak.add_study_date("2024-01-10")
        dashboard.study_time.add_session("2024-01-10", 30)
        dashboard.questions.mark_studied("q1", "java", 7)
        dashboard.unlock("first-day")

        restored = DashboardRecord.from_dict(dashboard.to_dict())
        assert restored == dashboard
        assert restored.to_dict()["studyTime"]["averageSession"] == 30

    def test_from_dict_requires_sections(self):
        data = DashboardRecord().to_dict()
        del data["streak"]
        with pytest.raises(ShapeValidationError):
            DashboardRecord.from_dict(data)

    def test_unlock_is_idempotent(self):
        dashboard = DashboardRecord()
        assert dashboard.unlock("first-day") is True
        assert dashboard.unlock("first-day") is False
        assert dashboard.has_achievement("first-day")


class TestQuestionStats:

    def test_mark_studied_ignores_duplicates(self):
        stats = QuestionStats()
        assert stats.mark_studied("q1", "java", 10)
        assert not stats.mark_studied("q1", "java", 10)
        assert stats.studied == ["q1"]
        assert stats.categories["java"] == 1
        assert stats.time_spent == {"q1": 10}

    def test_legacy_time_spent_list_is_migrated(self):
        stats = QuestionStats.from_dict({
            "studied": ["q1", "q2"],
            "timeSpent": [5, 12],
            "categories": {"java": 2},
        })
        assert stats.time_spent == {"q1": 5, "q2": 12}
        assert stats.categories_explored == 1


class TestUserSettings:

    def test_defaults_enable_achievement_notifications(self):
        assert UserSettings.create_default().achievement_notifications

    def test_invalid_settings_rejected(self):
        with pytest.raises(ShapeValidationError):
            UserSettings.from_dict({"theme": "dark"})
