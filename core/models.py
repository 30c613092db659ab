#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Core Data Models
Модели прогресса, панели мотивации и настроек с валидацией структуры

Версия: 2.0.0
"""

import re
import copy
from datetime import date
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class ProgressSource(Enum):
    """Происхождение текущей записи прогресса"""
    DEFAULT = "default"
    LOCAL = "local"
    DATABASE = "database"
    MERGED = "merged"

# ===== EXCEPTIONS =====

class PortalError(Exception):
    """Базовое исключение ядра прогресса"""
    kind = "PortalError"

class ShapeValidationError(PortalError):
    """Запись не прошла структурную проверку"""
    kind = "ShapeValidationError"

class KeyFormatError(PortalError, ValueError):
    """Составной ключ дня или задачи имеет неверный формат"""
    kind = "KeyFormatError"

class RemoteUnavailableError(PortalError):
    """Удаленное хранилище недоступно или вернуло ошибку"""
    kind = "RemoteUnavailable"

# ===== CONSTANTS =====

DEFAULT_TRACK = "standard"

ACHIEVEMENT_IDS = [
    'first-day',
    'week-warrior',
    'streak-master',
    'question-solver',
    'category-explorer',
    'time-keeper',
    'consistency-king',
    'knowledge-seeker'
]

DEFAULT_CATEGORIES = ['java', 'selenium', 'api-testing', 'testng', 'framework', 'leadership']

DEFAULT_GOALS = {
    'dailyStreak': 1,
    'weeklyDays': 5,
    'dailyQuestions': 5,
    'weeklyQuestions': 25
}

# ===== COMPOSITE KEYS =====

_TRACK_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_-]*$')
_TASK_RE = re.compile(r'^(?P<day>.+)-task-(?P<index>\d+)$')
_LEGACY_DAY_RE = re.compile(r'^(?P<week>\d+)-(?P<day>\d+)$')
_LEGACY_TASK_RE = re.compile(r'^(?P<week>\d+)-(?P<day>\d+)-task-(?P<index>\d+)$')

@dataclass(frozen=True)
class DayKey:
    """Ключ дня: трек + номер дня в программе"""
    track_id: str
    day_number: int

    def __post_init__(self):
        if not isinstance(self.track_id, str) or not _TRACK_RE.match(self.track_id):
            raise KeyFormatError(f"Неверный идентификатор трека: {self.track_id!r}")
        if isinstance(self.day_number, bool) or not isinstance(self.day_number, int) or self.day_number < 0:
            raise KeyFormatError(f"Неверный номер дня: {self.day_number!r}")

    def encode(self) -> str:
        return f"{self.track_id}-{self.day_number}"

    @property
    def task_prefix(self) -> str:
        return f"{self.encode()}-task-"

    @classmethod
    def decode(cls, key: str) -> "DayKey":
        # Трек может содержать дефисы ("api-testing"), номер дня всегда последний
        track_id, sep, day = str(key).rpartition('-')
        if not sep or not day.isdigit():
            raise KeyFormatError(f"Неверный ключ дня: {key!r}")
        return cls(track_id, int(day))

    def __str__(self) -> str:
        return self.encode()

@dataclass(frozen=True)
class TaskKey:
    """Ключ задачи внутри дня"""
    day: DayKey
    index: int

    def __post_init__(self):
        if isinstance(self.index, bool) or not isinstance(self.index, int) or self.index < 0:
            raise KeyFormatError(f"Неверный индекс задачи: {self.index!r}")

    def encode(self) -> str:
        return f"{self.day.task_prefix}{self.index}"

    @classmethod
    def decode(cls, key: str) -> "TaskKey":
        match = _TASK_RE.match(str(key))
        if not match:
            raise KeyFormatError(f"Неверный ключ задачи: {key!r}")
        return cls(DayKey.decode(match.group('day')), int(match.group('index')))

    def __str__(self) -> str:
        return self.encode()

def is_legacy_key(key: str) -> bool:
    """Ключ старого формата "{weekIndex}-{dayId}" (или его задача)"""
    return bool(_LEGACY_DAY_RE.match(key) or _LEGACY_TASK_RE.match(key))

def migrate_legacy_key(key: str, track_id: str) -> str:
    """Перевести ключ старого формата в "{track}-{dayId}"; прочие ключи не меняются"""
    match = _LEGACY_TASK_RE.match(key)
    if match:
        return TaskKey(DayKey(track_id, int(match.group('day'))), int(match.group('index'))).encode()
    match = _LEGACY_DAY_RE.match(key)
    if match:
        return DayKey(track_id, int(match.group('day'))).encode()
    return key

# ===== VALIDATION HELPERS =====

def validate_progress_data(data: Any) -> bool:
    """Структурная проверка записи прогресса (без проверки значений)"""
    return (isinstance(data, dict) and
            isinstance(data.get('completedDays'), dict) and
            isinstance(data.get('tasks'), dict))

def validate_dashboard_data(data: Any) -> bool:
    """Структурная проверка данных панели"""
    return (isinstance(data, dict) and
            isinstance(data.get('streak'), dict) and
            isinstance(data.get('studyTime'), dict) and
            isinstance(data.get('questions'), dict) and
            isinstance(data.get('achievements'), dict))

def validate_settings_data(data: Any) -> bool:
    """Структурная проверка настроек"""
    return (isinstance(data, dict) and
            isinstance(data.get('notifications'), dict) and
            isinstance(data.get('display'), dict) and
            isinstance(data.get('study'), dict))

def validate_enum_value(value: str, enum_class: type, field_name: str = "value") -> str:
    """Валидация значений enum"""
    try:
        enum_class(value)
        return value
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ShapeValidationError(f"{field_name} должен быть одним из: {valid_values}")

def _bool_map(data: Dict[Any, Any]) -> Dict[str, bool]:
    return {str(key): bool(value) for key, value in data.items()}

def _non_negative_int(value: Any, default: int = 0) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default

# ===== PROGRESS =====

@dataclass
class ProgressRecord:
    """Каноническая запись прогресса по программе"""
    completed_days: Dict[str, bool] = field(default_factory=dict)
    tasks: Dict[str, bool] = field(default_factory=dict)
    last_synced: Optional[str] = None
    source: str = ProgressSource.DEFAULT.value
    analytics: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.source = validate_enum_value(self.source, ProgressSource, "source")

    @property
    def completed_count(self) -> int:
        """Количество завершенных дней"""
        return sum(1 for completed in self.completed_days.values() if completed)

    def is_day_completed(self, day_key: DayKey) -> bool:
        return self.completed_days.get(day_key.encode(), False)

    def mark_day(self, day_key: DayKey, completed: bool = True) -> None:
        self.completed_days[day_key.encode()] = completed

    def toggle_task(self, task_key: TaskKey) -> bool:
        """Переключить задачу, вернуть новое состояние"""
        key = task_key.encode()
        self.tasks[key] = not self.tasks.get(key, False)
        return self.tasks[key]

    def tasks_for_day(self, day_key: DayKey) -> Dict[str, bool]:
        prefix = day_key.task_prefix
        return {key: value for key, value in self.tasks.items() if key.startswith(prefix)}

    def migrate_legacy_keys(self, track_id: str) -> int:
        """Перевести ключи старого формата в канонический вид"""
        migrated = 0
        for attr in ('completed_days', 'tasks'):
            current = getattr(self, attr)
            converted = {}
            for key, value in current.items():
                new_key = migrate_legacy_key(key, track_id)
                if new_key != key:
                    migrated += 1
                # Канонический ключ имеет приоритет над мигрированным
                if new_key in current and new_key != key:
                    continue
                converted[new_key] = value
            setattr(self, attr, converted)

        if migrated:
            logger.info(f"Migrated {migrated} legacy progress keys to track '{track_id}'")
        return migrated

    def copy(self) -> "ProgressRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'completedDays': self.completed_days,
            'tasks': self.tasks,
            'lastSynced': self.last_synced,
            'source': self.source
        }
        if self.analytics is not None:
            data['analytics'] = self.analytics
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        if not validate_progress_data(data):
            raise ShapeValidationError("Запись прогресса не содержит completedDays/tasks")

        source = data.get('source')
        if source not in {s.value for s in ProgressSource}:
            source = ProgressSource.DEFAULT.value

        analytics = data.get('analytics')
        return cls(
            completed_days=_bool_map(data['completedDays']),
            tasks=_bool_map(data['tasks']),
            last_synced=data.get('lastSynced') if isinstance(data.get('lastSynced'), str) else None,
            source=source,
            analytics=dict(analytics) if isinstance(analytics, dict) else None
        )

    @classmethod
    def create_default(cls) -> "ProgressRecord":
        return cls()

# ===== DASHBOARD =====

@dataclass
class StudySession:
    """Учебная сессия"""
    date: str  # YYYY-MM-DD
    duration: int  # в минутах

    def __post_init__(self):
        try:
            date.fromisoformat(self.date)
        except (TypeError, ValueError):
            raise ShapeValidationError(f"Неверный формат даты: {self.date}")

        if isinstance(self.duration, bool) or not isinstance(self.duration, int) or self.duration < 0:
            raise ShapeValidationError("duration должен быть неотрицательным числом")

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'duration': self.duration}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudySession":
        return cls(date=data['date'], duration=data['duration'])

@dataclass
class StreakData:
    """Серия занятий"""
    current: int = 0
    longest: int = 0
    last_study_date: Optional[str] = None
    study_dates: List[str] = field(default_factory=list)

    def add_study_date(self, day: str) -> bool:
        """Добавить дату занятий (без дубликатов)"""
        self.last_study_date = day
        if day in self.study_dates:
            return False
        self.study_dates.append(day)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current': self.current,
            'longest': self.longest,
            'lastStudyDate': self.last_study_date,
            'studyDates': list(self.study_dates)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreakData":
        study_dates = []
        for value in data.get('studyDates') or []:
            if isinstance(value, str) and value not in study_dates:
                study_dates.append(value)
        return cls(
            current=_non_negative_int(data.get('current')),
            longest=_non_negative_int(data.get('longest')),
            last_study_date=data.get('lastStudyDate'),
            study_dates=study_dates
        )

@dataclass
class StudyTimeData:
    """Учет времени занятий"""
    total: int = 0  # в минутах
    sessions: List[StudySession] = field(default_factory=list)

    @property
    def average_session(self) -> int:
        if not self.sessions:
            return 0
        return round(sum(s.duration for s in self.sessions) / len(self.sessions))

    def add_session(self, day: str, minutes: int) -> StudySession:
        session = StudySession(date=day, duration=minutes)
        self.sessions.append(session)
        self.total += minutes
        return session

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'sessions': [s.to_dict() for s in self.sessions],
            'averageSession': self.average_session
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyTimeData":
        sessions = []
        for raw in data.get('sessions') or []:
            try:
                sessions.append(StudySession.from_dict(raw))
            except (KeyError, TypeError, ShapeValidationError) as e:
                logger.warning(f"Skipping invalid study session {raw!r}: {e}")
        return cls(total=_non_negative_int(data.get('total')), sessions=sessions)

@dataclass
class QuestionStats:
    """Статистика изученных вопросов"""
    studied: List[str] = field(default_factory=list)
    time_spent: Dict[str, int] = field(default_factory=dict)  # вопрос -> минуты
    categories: Dict[str, int] = field(default_factory=lambda: {c: 0 for c in DEFAULT_CATEGORIES})

    @property
    def studied_count(self) -> int:
        return len(self.studied)

    @property
    def categories_explored(self) -> int:
        return sum(1 for count in self.categories.values() if count > 0)

    def mark_studied(self, question_id: str, category_id: Optional[str] = None, minutes: int = 5) -> bool:
        """Отметить вопрос изученным; повторная отметка ничего не меняет"""
        if question_id in self.studied:
            return False
        self.studied.append(question_id)
        self.time_spent[question_id] = max(0, int(minutes))
        if category_id:
            self.categories[category_id] = self.categories.get(category_id, 0) + 1
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'studied': list(self.studied),
            'timeSpent': dict(self.time_spent),
            'categories': dict(self.categories)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionStats":
        studied = []
        for value in data.get('studied') or []:
            value = str(value)
            if value not in studied:
                studied.append(value)

        raw_time = data.get('timeSpent') or {}
        if isinstance(raw_time, list):
            # Старый формат: список минут, параллельный studied
            time_spent = {qid: _non_negative_int(minutes) for qid, minutes in zip(studied, raw_time)}
        elif isinstance(raw_time, dict):
            time_spent = {str(qid): _non_negative_int(minutes) for qid, minutes in raw_time.items()}
        else:
            time_spent = {}

        categories = {c: 0 for c in DEFAULT_CATEGORIES}
        raw_categories = data.get('categories')
        if isinstance(raw_categories, dict):
            categories.update({str(k): _non_negative_int(v) for k, v in raw_categories.items()})

        return cls(studied=studied, time_spent=time_spent, categories=categories)

@dataclass
class DashboardRecord:
    """Данные панели мотивации: серия, время, вопросы, достижения, цели"""
    streak: StreakData = field(default_factory=StreakData)
    study_time: StudyTimeData = field(default_factory=StudyTimeData)
    questions: QuestionStats = field(default_factory=QuestionStats)
    achievements: Dict[str, bool] = field(default_factory=lambda: {a: False for a in ACHIEVEMENT_IDS})
    goals: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_GOALS))

    def has_achievement(self, achievement_id: str) -> bool:
        return self.achievements.get(achievement_id, False)

    def unlock(self, achievement_id: str) -> bool:
        """Открыть достижение; флаг никогда не сбрасывается"""
        if self.achievements.get(achievement_id):
            return False
        self.achievements[achievement_id] = True
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'streak': self.streak.to_dict(),
            'studyTime': self.study_time.to_dict(),
            'questions': self.questions.to_dict(),
            'achievements': dict(self.achievements),
            'goals': dict(self.goals)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardRecord":
        if not validate_dashboard_data(data):
            raise ShapeValidationError("Данные панели не содержат streak/studyTime/questions/achievements")

        achievements = {a: False for a in ACHIEVEMENT_IDS}
        achievements.update({str(k): bool(v) for k, v in data['achievements'].items()})

        goals = dict(DEFAULT_GOALS)
        if isinstance(data.get('goals'), dict):
            goals.update({str(k): _non_negative_int(v) for k, v in data['goals'].items()})

        return cls(
            streak=StreakData.from_dict(data['streak']),
            study_time=StudyTimeData.from_dict(data['studyTime']),
            questions=QuestionStats.from_dict(data['questions']),
            achievements=achievements,
            goals=goals
        )

    @classmethod
    def create_default(cls) -> "DashboardRecord":
        return cls()

# ===== SETTINGS =====

def _default_settings() -> Dict[str, Any]:
    return {
        'theme': 'auto',
        'notifications': {
            'enabled': True,
            'sound': False,
            'achievements': True,
            'streakReminders': True
        },
        'display': {
            'compactMode': False,
            'showProgress': True,
            'animationsEnabled': True,
            'fontSize': 'medium'
        },
        'study': {
            'dailyGoal': 1,
            'weeklyGoal': 5,
            'autoMarkComplete': False,
            'showDifficulty': True
        },
        'privacy': {
            'analytics': True,
            'crashReporting': True
        },
        'keyboard': {
            'enabled': True,
            'shortcuts': {
                'dashboard': 'KeyD',
                'schedule': 'KeyS',
                'questions': 'KeyQ',
                'practice': 'KeyP',
                'search': 'Slash',
                'darkMode': 'KeyT'
            }
        }
    }

@dataclass
class UserSettings:
    """Пользовательские настройки (хранятся рядом с прогрессом)"""
    data: Dict[str, Any] = field(default_factory=_default_settings)

    def __post_init__(self):
        if not validate_settings_data(self.data):
            raise ShapeValidationError("Настройки не содержат notifications/display/study")

    @property
    def achievement_notifications(self) -> bool:
        notifications = self.data['notifications']
        return bool(notifications.get('enabled', True) and notifications.get('achievements', True))

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserSettings":
        return cls(data=copy.deepcopy(data))

    @classmethod
    def create_default(cls) -> "UserSettings":
        return cls()

# ===== EXPORT =====

__all__ = [
    'ProgressSource',
    'PortalError',
    'ShapeValidationError',
    'KeyFormatError',
    'RemoteUnavailableError',
    'DEFAULT_TRACK',
    'ACHIEVEMENT_IDS',
    'DEFAULT_CATEGORIES',
    'DEFAULT_GOALS',
    'DayKey',
    'TaskKey',
    'is_legacy_key',
    'migrate_legacy_key',
    'validate_progress_data',
    'validate_dashboard_data',
    'validate_settings_data',
    'ProgressRecord',
    'StudySession',
    'StreakData',
    'StudyTimeData',
    'QuestionStats',
    'DashboardRecord',
    'UserSettings'
]
