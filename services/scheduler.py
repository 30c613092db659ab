# services/scheduler.py

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

class SyncScheduler:
    """Периодические триггеры: автосинхронизация и проверка соединения"""

    def __init__(self, reconciler, remote=None, retry_queue=None, notifier=None,
                 auto_sync_minutes: int = 5, connection_check_seconds: int = 30,
                 scheduler: Optional[AsyncIOScheduler] = None):
        self.reconciler = reconciler
        self.remote = remote
        self.retry_queue = retry_queue
        self.notifier = notifier
        self.auto_sync_minutes = auto_sync_minutes
        self.connection_check_seconds = connection_check_seconds
        self.scheduler = scheduler or AsyncIOScheduler()
        self.online: Optional[bool] = None

    def setup_jobs(self):
        """Регистрация периодических задач"""
        self.scheduler.add_job(
            self.auto_sync,
            'interval',
            minutes=self.auto_sync_minutes,
            id='auto_sync',
            replace_existing=True
        )

        if self.remote is not None:
            self.scheduler.add_job(
                self.check_connection,
                'interval',
                seconds=self.connection_check_seconds,
                id='connection_monitor',
                replace_existing=True
            )

    def start(self):
        self.setup_jobs()
        self.scheduler.start()
        logger.info(f"📅 Планировщик синхронизации запущен (каждые {self.auto_sync_minutes} мин)")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("🛑 Планировщик синхронизации остановлен")

    async def auto_sync(self):
        """Синхронизация, если с последней прошло больше интервала"""
        try:
            result = await self.reconciler.on_visible()
            if result is not None and not result.success:
                logger.warning(f"⚠️ Автосинхронизация не удалась: {result.message}")
        except Exception as e:
            logger.error(f"❌ Ошибка автосинхронизации: {e}")

    async def check_connection(self) -> bool:
        """Проверить доступность удаленного хранилища и обработать переходы"""
        available = await self.remote.is_available()
        previous, self.online = self.online, available

        if previous is None or previous == available:
            return available

        if available:
            logger.info("🌐 Соединение с удаленным хранилищем восстановлено")
            if self.notifier is not None:
                self.notifier.notify("Connection restored, syncing progress", "success")
            await self.handle_connection_restored()
        else:
            logger.warning("📴 Соединение с удаленным хранилищем потеряно")
            if self.notifier is not None:
                self.notifier.notify("Connection lost: working offline", "warning")

        return available

    async def handle_connection_restored(self):
        await self.reconciler.sync()
        if self.retry_queue is not None and len(self.retry_queue):
            await self.retry_queue.process()

__all__ = ['SyncScheduler']
