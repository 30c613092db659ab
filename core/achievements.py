#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Gamification
Расчет серии занятий и разблокировка достижений

Версия: 2.0.0
"""

from datetime import date, timedelta
from typing import Dict, List, Callable, Iterable, Tuple, Any
from dataclasses import dataclass
from enum import Enum
from abc import ABC, abstractmethod
import logging

from core.models import ProgressRecord, DashboardRecord
from utils.datetime_utils import parse_date

logger = logging.getLogger(__name__)

STREAK_LOOKBACK_DAYS = 30

# ===== STREAKS =====

def calculate_streak(today: date, study_dates: Iterable[str], longest: int = 0,
                     max_days: int = STREAK_LOOKBACK_DAYS) -> Tuple[int, int]:
    """
    Серия занятий: идем назад от сегодняшнего дня (включительно).

    Пустой "сегодня" серию не прерывает, любой более ранний пропуск -
    прерывает. Возвращает (current, longest), longest не уменьшается.
    """
    dates = set()
    for value in study_dates:
        parsed = parse_date(value)
        if parsed is not None:
            dates.add(parsed)

    current = 0
    check_date = today
    for i in range(max_days):
        if check_date in dates:
            current += 1
        elif i > 0:
            break
        check_date -= timedelta(days=1)

    return current, max(longest, current)

def update_streak(dashboard: DashboardRecord, today: date) -> bool:
    """Пересчитать серию в данных панели; True если значения изменились"""
    streak = dashboard.streak
    current, longest = calculate_streak(today, streak.study_dates, streak.longest)
    changed = (current, longest) != (streak.current, streak.longest)
    streak.current = current
    streak.longest = longest
    return changed

# ===== ENUMS =====

class AchievementCategory(Enum):
    """Категории достижений"""
    PROGRESS = "progress"
    STREAKS = "streaks"
    QUESTIONS = "questions"
    TIME = "time"

# ===== ACHIEVEMENT CHECKERS =====

class AchievementChecker(ABC):
    """Базовый класс для проверки достижений"""

    @abstractmethod
    def check(self, progress: ProgressRecord, dashboard: DashboardRecord) -> bool:
        """Проверить условие достижения"""
        pass

    @abstractmethod
    def get_progress(self, progress: ProgressRecord, dashboard: DashboardRecord) -> Tuple[int, int]:
        """Получить прогресс (текущий, максимальный)"""
        pass

class SimpleCountChecker(AchievementChecker):
    """Проверка простого подсчета"""

    def __init__(self, target_count: int,
                 value_getter: Callable[[ProgressRecord, DashboardRecord], int]):
        self.target_count = target_count
        self.value_getter = value_getter

    def check(self, progress: ProgressRecord, dashboard: DashboardRecord) -> bool:
        return self.value_getter(progress, dashboard) >= self.target_count

    def get_progress(self, progress: ProgressRecord, dashboard: DashboardRecord) -> Tuple[int, int]:
        current = min(self.target_count, self.value_getter(progress, dashboard))
        return current, self.target_count

class StreakChecker(SimpleCountChecker):
    """Проверка текущей серии"""

    def __init__(self, target_streak: int):
        super().__init__(target_streak, lambda progress, dashboard: dashboard.streak.current)

# ===== DEFINITIONS =====

@dataclass
class AchievementDefinition:
    """Определение достижения"""
    achievement_id: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    checker: AchievementChecker

    def to_dict(self) -> Dict[str, Any]:
        return {
            'achievement_id': self.achievement_id,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
            'category': self.category.value
        }

def _completed_days(progress: ProgressRecord, dashboard: DashboardRecord) -> int:
    return progress.completed_count

def _studied_questions(progress: ProgressRecord, dashboard: DashboardRecord) -> int:
    return dashboard.questions.studied_count

def _categories_explored(progress: ProgressRecord, dashboard: DashboardRecord) -> int:
    return dashboard.questions.categories_explored

def _study_minutes(progress: ProgressRecord, dashboard: DashboardRecord) -> int:
    return dashboard.study_time.total

ACHIEVEMENTS: List[AchievementDefinition] = [
    AchievementDefinition(
        'first-day', "First Steps", "Complete your first day", "🎯",
        AchievementCategory.PROGRESS, SimpleCountChecker(1, _completed_days)
    ),
    AchievementDefinition(
        'week-warrior', "Week Warrior", "Complete 7 days", "⚔️",
        AchievementCategory.PROGRESS, SimpleCountChecker(7, _completed_days)
    ),
    AchievementDefinition(
        'streak-master', "Streak Master", "Maintain a 7-day study streak", "🔥",
        AchievementCategory.STREAKS, StreakChecker(7)
    ),
    AchievementDefinition(
        'question-solver', "Question Solver", "Study 25 interview questions", "🧩",
        AchievementCategory.QUESTIONS, SimpleCountChecker(25, _studied_questions)
    ),
    AchievementDefinition(
        'category-explorer', "Category Explorer", "Study questions from 4 categories", "🗺️",
        AchievementCategory.QUESTIONS, SimpleCountChecker(4, _categories_explored)
    ),
    AchievementDefinition(
        'time-keeper', "Time Keeper", "Study for 10 hours in total", "⏰",
        AchievementCategory.TIME, SimpleCountChecker(600, _study_minutes)
    ),
    AchievementDefinition(
        'consistency-king', "Consistency King", "Maintain a 14-day study streak", "👑",
        AchievementCategory.STREAKS, StreakChecker(14)
    ),
    AchievementDefinition(
        'knowledge-seeker', "Knowledge Seeker", "Study 100 interview questions", "📚",
        AchievementCategory.QUESTIONS, SimpleCountChecker(100, _studied_questions)
    ),
]

ACHIEVEMENTS_BY_ID: Dict[str, AchievementDefinition] = {a.achievement_id: a for a in ACHIEVEMENTS}

# ===== UNLOCKING =====

def check_and_unlock(progress: ProgressRecord, dashboard: DashboardRecord) -> List[str]:
    """
    Проверить пороги и открыть достижения.

    Проверяются только еще не открытые достижения; открытые никогда не
    пересматриваются. Возвращает список только что открытых id.
    """
    unlocked = []
    for definition in ACHIEVEMENTS:
        if dashboard.has_achievement(definition.achievement_id):
            continue
        if definition.checker.check(progress, dashboard):
            dashboard.unlock(definition.achievement_id)
            unlocked.append(definition.achievement_id)
            logger.info(f"Achievement unlocked: {definition.achievement_id}")
    return unlocked

def get_achievements_overview(progress: ProgressRecord, dashboard: DashboardRecord) -> List[Dict[str, Any]]:
    """Список достижений с прогрессом для отображения"""
    overview = []
    for definition in ACHIEVEMENTS:
        unlocked = dashboard.has_achievement(definition.achievement_id)
        current, target = definition.checker.get_progress(progress, dashboard)
        item = definition.to_dict()
        item.update({
            'unlocked': unlocked,
            'current': target if unlocked else current,
            'target': target
        })
        overview.append(item)
    return overview

__all__ = [
    'STREAK_LOOKBACK_DAYS',
    'calculate_streak',
    'update_streak',
    'AchievementCategory',
    'AchievementChecker',
    'SimpleCountChecker',
    'StreakChecker',
    'AchievementDefinition',
    'ACHIEVEMENTS',
    'ACHIEVEMENTS_BY_ID',
    'check_and_unlock',
    'get_achievements_overview'
]
