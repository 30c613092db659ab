"""Тесты серии занятий и достижений."""

from datetime import date, timedelta

import pytest

from core.achievements import (
    ACHIEVEMENTS, calculate_streak, update_streak, check_and_unlock, get_achievements_overview
)
from core.models import ProgressRecord, DashboardRecord

TODAY = date(2024, 1, 10)


def days_ago(*offsets):
    return [(TODAY - timedelta(days=offset)).isoformat() for offset in offsets]


def progress_with_days(count):
    return ProgressRecord(completed_days={f"standard-{i}": True for i in range(1, count + 1)})


class TestStreak:

    def test_empty_today_does_not_break_streak(self):
        assert calculate_streak(TODAY, days_ago(1, 2)) == (2, 2)

    def test_gap_after_today_stops_walk(self):
        assert calculate_streak(TODAY, days_ago(0, 1, 3, 4)) == (2, 2)

    def test_no_recent_study_gives_zero(self):
        assert calculate_streak(TODAY, days_ago(2, 3)) == (0, 0)

    def test_longest_never_decreases(self):
        assert calculate_streak(TODAY, days_ago(0), longest=10) == (1, 10)

    def test_lookback_is_limited(self):
        current, longest = calculate_streak(TODAY, days_ago(*range(40)))
        assert current == 30
        assert longest == 30

    def test_full_timestamps_are_accepted(self):
        assert calculate_streak(TODAY, ["2024-01-10T08:00:00Z", "bad-date"]) == (1, 1)

    def test_update_streak_reports_changes(self):
        dashboard = DashboardRecord()
        dashboard.streak.study_dates = days_ago(0, 1)
        assert update_streak(dashboard, TODAY)
        assert (dashboard.streak.current, dashboard.streak.longest) == (2, 2)
        assert not update_streak(dashboard, TODAY)


class TestAchievements:

    @pytest.mark.parametrize("days,unlocked", [(6, False), (7, True)])
    def test_week_warrior_threshold(self, days, unlocked):
        dashboard = DashboardRecord()
        check_and_unlock(progress_with_days(days), dashboard)
        assert dashboard.has_achievement("week-warrior") is unlocked
        assert dashboard.has_achievement("first-day")

    @pytest.mark.parametrize("studied,solver,seeker", [
        (24, False, False),
        (25, True, False),
        (99, True, False),
        (100, True, True),
    ])
    def test_question_thresholds(self, studied, solver, seeker):
        dashboard = DashboardRecord()
        for index in range(studied):
            dashboard.questions.mark_studied(f"q{index}")
        check_and_unlock(ProgressRecord(), dashboard)
        assert dashboard.has_achievement("question-solver") is solver
        assert dashboard.has_achievement("knowledge-seeker") is seeker

    def test_time_keeper_threshold(self):
        dashboard = DashboardRecord()
        dashboard.study_time.total = 599
        assert "time-keeper" not in check_and_unlock(ProgressRecord(), dashboard)
        dashboard.study_time.total = 600
        assert "time-keeper" in check_and_unlock(ProgressRecord(), dashboard)

    def test_category_explorer_needs_four_categories(self):
        dashboard = DashboardRecord()
        for index, category in enumerate(["java", "selenium", "testng"]):
            dashboard.questions.mark_studied(f"q{index}", category)
        assert not dashboard.has_achievement("category-explorer")
        check_and_unlock(ProgressRecord(), dashboard)
        assert not dashboard.has_achievement("category-explorer")

        dashboard.questions.mark_studied("q9", "framework")
        assert check_and_unlock(ProgressRecord(), dashboard) == ["category-explorer"]

    def test_streak_achievements(self):
        dashboard = DashboardRecord()
        dashboard.streak.current = 14
        unlocked = check_and_unlock(ProgressRecord(), dashboard)
        assert "streak-master" in unlocked
        assert "consistency-king" in unlocked

    def test_unlocked_achievements_are_never_revoked(self):
        dashboard = DashboardRecord()
        check_and_unlock(progress_with_days(7), dashboard)
        assert check_and_unlock(ProgressRecord(), dashboard) == []
        assert dashboard.has_achievement("week-warrior")
        assert dashboard.has_achievement("first-day")

    def test_overview_reports_progress(self):
        dashboard = DashboardRecord()
        overview = {item["achievement_id"]: item for item in get_achievements_overview(progress_with_days(3), dashboard)}
        assert len(overview) == len(ACHIEVEMENTS)
        assert overview["week-warrior"]["current"] == 3
        assert overview["week-warrior"]["target"] == 7
        assert overview["week-warrior"]["unlocked"] is False
