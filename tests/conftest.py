"""Общие фикстуры тестов ядра прогресса."""

from datetime import datetime, timedelta

import pytest

from core.progress_store import ProgressStore
from core.storage import MemoryStorage
from services.notifications import NotificationCenter
from utils.datetime_utils import UTC


class FixedClock:
    """Часы, которые двигаются только вручную"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment += timedelta(**kwargs)


class FakeRemote:
    """Удаленное хранилище в памяти с управляемыми сбоями"""

    def __init__(self, entries=None, stats=None, authenticated=True):
        self.entries = list(entries or [])
        self.stats = stats if stats is not None else {
            "total_study_time": 120,
            "questions_studied": 10,
            "current_streak": 2,
            "longest_streak": 5,
            "last_activity": "2024-01-09T10:00:00Z",
        }
        self.api_token = "token" if authenticated else None
        self.available = True
        self.fail_progress = False
        self.raise_on_progress = False
        self.fail_updates = False
        self.progress_requests = 0
        self.updates = []
        self.questions = []

    @property
    def is_authenticated(self):
        return bool(self.api_token)

    async def get_progress(self, track_id=None):
        self.progress_requests += 1
        if self.raise_on_progress:
            raise ConnectionError("connection refused")
        if self.fail_progress:
            return {"success": False, "error": "Internal server error"}
        return {"success": True, "data": list(self.entries)}

    async def get_stats(self):
        return {"success": True, "data": self.stats}

    async def update_progress(self, entry):
        self.updates.append(entry)
        if self.fail_updates:
            return {"success": False, "error": "Service unavailable"}
        return {"success": True, "data": entry.model_dump()}

    async def track_question_progress(self, entry):
        self.questions.append(entry)
        return {"success": True, "data": entry.model_dump()}

    async def is_available(self):
        return self.available


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return NotificationCenter()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def store(storage, notifier, clock):
    return ProgressStore(storage, notifier=notifier, clock=clock)


@pytest.fixture
def remote_store(storage, notifier, clock, remote):
    return ProgressStore(storage, remote=remote, notifier=notifier, clock=clock)
