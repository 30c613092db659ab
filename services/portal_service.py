# services/portal_service.py

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set

from core.models import DayKey, TaskKey, ProgressSource, StudySession
from core.achievements import ACHIEVEMENTS, ACHIEVEMENTS_BY_ID, check_and_unlock, get_achievements_overview
from core.events import EventBus, ProgressChanged, ProgressEventType
from core.progress_store import ProgressStore
from core.sync import SyncReconciler
from shared.models import QuestionProgressRequest, parse_envelope
from utils.datetime_utils import parse_date, to_iso

logger = logging.getLogger(__name__)

class PortalService:
    """
    Сервис действий пользователя

    Каждое действие: изменение -> сохранение -> событие ProgressChanged.
    Подписчики реагируют независимо:
    - проверка достижений на любое изменение
    - фоновая синхронизация после завершения дня
    """

    def __init__(self, store: ProgressStore, reconciler: Optional[SyncReconciler] = None,
                 event_bus: Optional[EventBus] = None, notifier=None, retry_queue=None,
                 total_days: int = 60):
        self.store = store
        self.reconciler = reconciler
        self.event_bus = event_bus or EventBus(clock=store.clock)
        self.notifier = notifier
        self.retry_queue = retry_queue
        self.total_days = total_days
        self._background: Set[asyncio.Task] = set()

        self.event_bus.subscribe(self._achievements_listener)
        self.event_bus.subscribe(self._day_completed_listener, {ProgressEventType.DAY_COMPLETED})
        logger.info("✅ PortalService инициализирован")

    # ===== ДЕЙСТВИЯ ПОЛЬЗОВАТЕЛЯ =====

    async def mark_day_complete(self, track_id: str, day_number: int,
                                duration_minutes: Optional[int] = None) -> bool:
        """Отметить день программы завершенным"""
        day_key = DayKey(track_id, day_number)
        self._touch_progress()
        self.store.progress.mark_day(day_key, True)

        today = self.store.today().isoformat()
        dashboard = self.store.dashboard
        dashboard.streak.add_study_date(today)
        if duration_minutes:
            dashboard.study_time.add_session(today, int(duration_minutes))
        self.store.refresh_streak()

        saved = await self.store.save()
        saved = self.store.save_dashboard() and saved

        logger.info(f"✅ День {day_key} завершен (streak: {dashboard.streak.current})")
        await self.event_bus.publish(ProgressChanged(
            ProgressEventType.DAY_COMPLETED,
            key=day_key.encode(),
            payload={'duration_minutes': duration_minutes}
        ))
        return saved

    async def toggle_task(self, track_id: str, day_number: int, index: int) -> bool:
        """Переключить задачу дня, вернуть новое состояние"""
        task_key = TaskKey(DayKey(track_id, day_number), index)
        self._touch_progress()
        state = self.store.progress.toggle_task(task_key)
        await self.store.save()

        logger.info(f"📝 Задача {task_key} -> {'выполнена' if state else 'не выполнена'}")
        await self.event_bus.publish(ProgressChanged(
            ProgressEventType.TASK_TOGGLED,
            key=task_key.encode(),
            payload={'completed': state}
        ))
        return state

    async def mark_question_studied(self, question_id: str, category_id: Optional[str] = None,
                                    minutes: int = 5) -> bool:
        """Отметить вопрос изученным; False если вопрос уже был изучен"""
        dashboard = self.store.dashboard
        if not dashboard.questions.mark_studied(question_id, category_id, minutes):
            return False

        dashboard.streak.add_study_date(self.store.today().isoformat())
        self.store.refresh_streak()
        self.store.save_dashboard()

        await self._track_question_remote(question_id, minutes)

        await self.event_bus.publish(ProgressChanged(
            ProgressEventType.QUESTION_STUDIED,
            key=question_id,
            payload={'category_id': category_id, 'minutes': minutes}
        ))
        return True

    async def record_study_session(self, minutes: int) -> StudySession:
        """Записать учебную сессию фактической длительности"""
        today = self.store.today().isoformat()
        dashboard = self.store.dashboard
        session = dashboard.study_time.add_session(today, int(minutes))
        dashboard.streak.add_study_date(today)
        self.store.refresh_streak()
        self.store.save_dashboard()

        await self.event_bus.publish(ProgressChanged(
            ProgressEventType.SESSION_RECORDED,
            payload=session.to_dict()
        ))
        return session

    async def import_backup(self, document: Any) -> bool:
        """Импорт резервной копии с пересчетом достижений"""
        if not await self.store.import_document(document):
            return False

        await self.event_bus.publish(ProgressChanged(
            ProgressEventType.IMPORTED,
            payload={'completed_days': self.store.progress.completed_count}
        ))
        return True

    async def reset_progress(self) -> bool:
        """Сбросить прогресс и панель"""
        saved = self.store.reset()
        await self.event_bus.publish(ProgressChanged(ProgressEventType.RESET))
        return saved

    def _touch_progress(self) -> None:
        # Первое изменение пользователя переводит запись по умолчанию в локальную
        if self.store.progress.source == ProgressSource.DEFAULT.value:
            self.store.progress.source = ProgressSource.LOCAL.value

    async def _track_question_remote(self, question_id: str, minutes: int) -> None:
        remote = self.store.remote
        if remote is None or not remote.is_authenticated:
            return

        request = QuestionProgressRequest(
            question_id=question_id,
            time_spent=max(0, int(minutes)),
            studied_at=to_iso(self.store.clock())
        )
        try:
            response = await remote.track_question_progress(request)
        except Exception as e:
            logger.warning(f"⚠️ Не удалось отправить прогресс вопроса {question_id}: {e}")
            return

        if not parse_envelope(response).success:
            logger.warning(f"⚠️ Удаленное хранилище отклонило прогресс вопроса {question_id}")

    # ===== ДОСТИЖЕНИЯ =====

    def check_achievements(self) -> List[str]:
        """Пересчитать серию, открыть достижения, сохранить и уведомить"""
        self.store.refresh_streak()
        unlocked = check_and_unlock(self.store.progress, self.store.dashboard)
        if not unlocked:
            return []

        self.store.save_dashboard()
        if self.notifier is not None and self.store.settings.achievement_notifications:
            for achievement_id in unlocked:
                definition = ACHIEVEMENTS_BY_ID[achievement_id]
                self.notifier.notify(f"{definition.icon} Achievement unlocked: {definition.title}", "success")
        return unlocked

    def achievements_overview(self) -> List[Dict[str, Any]]:
        return get_achievements_overview(self.store.progress, self.store.dashboard)

    # ===== ПРОИЗВОДНЫЕ ПОКАЗАТЕЛИ =====

    def completion_percentage(self, track_id: Optional[str] = None) -> float:
        """Процент завершенных дней программы"""
        if self.total_days <= 0:
            return 0.0

        completed = 0
        for key, done in self.store.progress.completed_days.items():
            if not done:
                continue
            if track_id is not None:
                try:
                    if DayKey.decode(key).track_id != track_id:
                        continue
                except ValueError:
                    continue
            completed += 1

        return round(min(100.0, completed / self.total_days * 100), 1)

    def goals_progress(self) -> Dict[str, Dict[str, Any]]:
        """Серия против дневной цели, дни занятий за 7 дней против недельной"""
        dashboard = self.store.dashboard
        goals = dashboard.goals
        today = self.store.today()
        week_start = today - timedelta(days=6)

        study_days = set()
        for value in dashboard.streak.study_dates:
            parsed = parse_date(value)
            if parsed is not None and week_start <= parsed <= today:
                study_days.add(parsed)

        def _goal(current: int, target: int) -> Dict[str, Any]:
            return {'current': current, 'target': target, 'achieved': current >= target}

        return {
            'daily_streak': _goal(dashboard.streak.current, goals.get('dailyStreak', 1)),
            'weekly_days': _goal(len(study_days), goals.get('weeklyDays', 5))
        }

    def summary(self) -> Dict[str, Any]:
        progress = self.store.progress
        dashboard = self.store.dashboard
        return {
            'completed_days': progress.completed_count,
            'completion_percentage': self.completion_percentage(),
            'tasks_completed': sum(1 for done in progress.tasks.values() if done),
            'current_streak': dashboard.streak.current,
            'longest_streak': dashboard.streak.longest,
            'total_study_minutes': dashboard.study_time.total,
            'average_session': dashboard.study_time.average_session,
            'questions_studied': dashboard.questions.studied_count,
            'categories_explored': dashboard.questions.categories_explored,
            'achievements_unlocked': sum(1 for a in ACHIEVEMENTS if dashboard.has_achievement(a.achievement_id)),
            'achievements_total': len(ACHIEVEMENTS),
            'last_synced': progress.last_synced,
            'source': progress.source,
            'analytics': progress.analytics
        }

    # ===== ПОДПИСЧИКИ =====

    def _achievements_listener(self, event: ProgressChanged) -> None:
        self.check_achievements()

    def _day_completed_listener(self, event: ProgressChanged) -> None:
        if self.reconciler is None or self.store.remote is None:
            return
        self._spawn(self._background_sync())

    async def _background_sync(self) -> None:
        result = await self.reconciler.sync()
        if result.success:
            return

        logger.warning(f"⚠️ Фоновая синхронизация не удалась: {result.message}")
        if self.notifier is not None:
            self.notifier.notify("Progress saved locally, sync will be retried", "warning")
        if self.retry_queue is not None:
            self.retry_queue.enqueue("Progress sync", self._retry_sync)
            self._spawn(self.retry_queue.process())

    async def _retry_sync(self) -> bool:
        result = await self.reconciler.sync()
        return result.success

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Дождаться фоновых задач"""
        while self._background:
            pending = list(self._background)
            await asyncio.gather(*pending, return_exceptions=True)
            self._background.difference_update(pending)

__all__ = ['PortalService']
