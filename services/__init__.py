# services/__init__.py

"""
Модуль сервисов Interview Prep Portal

Сервисы связывают ядро прогресса с внешним миром: удаленное хранилище,
уведомления, очередь повторов, планировщик и действия пользователя.
"""

import logging
from typing import Optional

from core.events import EventBus
from core.models import ProgressSource
from core.progress_store import ProgressStore
from core.storage import JsonFileStorage, KeyValueStorage
from core.sync import SyncReconciler
from utils.datetime_utils import make_clock

from .notifications import NotificationCenter
from .portal_service import PortalService
from .remote_client import RemoteProgressClient
from .retry_queue import RetryQueue
from .scheduler import SyncScheduler

logger = logging.getLogger(__name__)

class ServiceManager:
    """
    Менеджер для управления всеми сервисами портала

    Обеспечивает:
    - Инициализацию компонентов в нужном порядке
    - Загрузку прогресса и стартовую синхронизацию
    - Корректную остановку фоновых задач и HTTP-сессии
    """

    def __init__(self, portal_config=None, storage: Optional[KeyValueStorage] = None,
                 remote=None, clock=None):
        if portal_config is None:
            from config import config as portal_config
        self.config = portal_config
        self.storage = storage
        self.remote = remote
        self.clock = clock

        self.notifier: Optional[NotificationCenter] = None
        self.event_bus: Optional[EventBus] = None
        self.store: Optional[ProgressStore] = None
        self.reconciler: Optional[SyncReconciler] = None
        self.retry_queue: Optional[RetryQueue] = None
        self.portal: Optional[PortalService] = None
        self.scheduler: Optional[SyncScheduler] = None
        self.initialized = False

    async def start(self, run_scheduler: bool = False) -> bool:
        """Инициализация всех сервисов"""
        try:
            logger.info("🔧 Инициализация сервисов портала...")
            cfg = self.config

            if self.clock is None:
                self.clock = make_clock(cfg.timezone)

            self.notifier = NotificationCenter()
            self.event_bus = EventBus(clock=self.clock)

            if self.storage is None:
                self.storage = JsonFileStorage(cfg.storage.data_dir, cfg.storage.quota_bytes)

            if self.remote is None and cfg.remote.enabled:
                self.remote = RemoteProgressClient(
                    cfg.remote.base_url,
                    cfg.remote.api_token,
                    cfg.remote.request_timeout
                )

            self.store = ProgressStore(
                self.storage,
                remote=self.remote,
                notifier=self.notifier,
                clock=self.clock,
                track_id=cfg.curriculum.default_track,
                progress_key=cfg.storage.progress_key,
                dashboard_key=cfg.storage.dashboard_key,
                settings_key=cfg.storage.settings_key,
                progress_warn_bytes=cfg.storage.progress_warn_bytes,
                dashboard_warn_bytes=cfg.storage.dashboard_warn_bytes
            )
            self.reconciler = SyncReconciler(
                self.store,
                event_bus=self.event_bus,
                notifier=self.notifier,
                auto_sync_minutes=cfg.sync.auto_sync_minutes
            )
            self.retry_queue = RetryQueue(
                self.notifier,
                max_attempts=cfg.sync.retry_attempts,
                base_delay=cfg.sync.retry_delay_seconds
            )
            self.portal = PortalService(
                self.store,
                reconciler=self.reconciler,
                event_bus=self.event_bus,
                notifier=self.notifier,
                retry_queue=self.retry_queue,
                total_days=cfg.curriculum.total_days
            )

            logger.info("📂 Загрузка прогресса...")
            self.store.load_settings()
            await self.store.load()
            self.store.load_dashboard()

            # Данные из базы уже свежие, иначе согласуем локальные с удаленными
            if (self.remote is not None and self.remote.is_authenticated and
                    self.store.progress.source != ProgressSource.DATABASE.value):
                result = await self.reconciler.sync()
                logger.info(f"🔄 Стартовая синхронизация: {result.action.value} ({result.message})")

            if run_scheduler:
                self.scheduler = SyncScheduler(
                    self.reconciler,
                    remote=self.remote,
                    retry_queue=self.retry_queue,
                    notifier=self.notifier,
                    auto_sync_minutes=cfg.sync.auto_sync_minutes,
                    connection_check_seconds=cfg.sync.connection_check_seconds
                )
                self.scheduler.start()

            self.initialized = True
            logger.info("✅ Все сервисы инициализированы успешно!")
            return True

        except Exception as e:
            logger.error(f"❌ Ошибка инициализации сервисов: {e}")
            await self.stop()
            return False

    def get_services_info(self) -> dict:
        """Получить информацию о состоянии сервисов"""
        info = {
            "initialized": self.initialized,
            "services": {}
        }

        if self.store:
            info["services"]["progress_store"] = {
                "status": "active",
                "source": self.store.progress.source,
                "completed_days": self.store.progress.completed_count,
                "last_synced": self.store.progress.last_synced
            }

        if self.reconciler:
            info["services"]["sync"] = self.reconciler.get_status()

        if self.retry_queue:
            info["services"]["retry_queue"] = {"pending": len(self.retry_queue)}

        if self.scheduler:
            info["services"]["scheduler"] = {
                "running": self.scheduler.scheduler.running,
                "online": self.scheduler.online
            }

        return info

    def health_check(self) -> dict:
        """Проверка состояния всех сервисов"""
        health = {
            "status": "healthy",
            "services": {}
        }

        if self.store:
            health["services"]["progress_store"] = {
                "status": "error" if self.store.last_error else "healthy",
                "last_error": self.store.last_error
            }

        if self.reconciler:
            last = self.reconciler.last_result
            health["services"]["sync"] = {
                "status": "warning" if last is not None and not last.success else "healthy",
                "failed_syncs": self.reconciler.failed_syncs
            }

        if self.scheduler and self.scheduler.online is False:
            health["services"]["remote"] = {"status": "warning", "online": False}

        # Определяем общий статус
        service_statuses = [s.get("status", "unknown") for s in health["services"].values()]
        if "error" in service_statuses:
            health["status"] = "error"
        elif "warning" in service_statuses:
            health["status"] = "warning"

        return health

    async def stop(self):
        """Остановка всех сервисов"""
        logger.info("🛑 Остановка сервисов...")

        if self.scheduler:
            self.scheduler.shutdown()
            self.scheduler = None

        if self.portal:
            await self.portal.drain()

        if isinstance(self.remote, RemoteProgressClient):
            await self.remote.close()

        self.initialized = False
        logger.info("✅ Все сервисы остановлены")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

# Экспорты для удобства
__all__ = [
    'ServiceManager',
    'NotificationCenter',
    'PortalService',
    'RemoteProgressClient',
    'RetryQueue',
    'SyncScheduler'
]
