#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Configuration
Централизованная конфигурация ядра прогресса с валидацией

Версия: 2.0.0
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

import pytz

class Environment(Enum):
    """Среды выполнения"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

@dataclass
class StorageConfig:
    """Конфигурация локального хранилища"""
    data_dir: Path
    progress_key: str = "practicePortalProgress"
    dashboard_key: str = "dashboardData"
    settings_key: str = "userSettings"
    quota_bytes: Optional[int] = 5 * 1024 * 1024
    progress_warn_bytes: int = 4 * 1024 * 1024
    dashboard_warn_bytes: int = 2 * 1024 * 1024

@dataclass
class RemoteConfig:
    """Конфигурация удаленного хранилища прогресса"""
    base_url: Optional[str] = None
    api_token: Optional[str] = None
    request_timeout: int = 30

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

@dataclass
class SyncConfig:
    """Конфигурация синхронизации"""
    auto_sync_minutes: int = 5
    connection_check_seconds: int = 30
    retry_attempts: int = 3
    retry_delay_seconds: float = 2.0

@dataclass
class CurriculumConfig:
    """Конфигурация учебной программы"""
    default_track: str = "standard"
    total_days: int = 60

class PortalConfig:
    """Главный класс конфигурации"""

    def __init__(self):
        self.environment = Environment(os.getenv('ENVIRONMENT', 'development'))
        self._load_config()
        self._validate_config()

    def _load_config(self):
        """Загрузка конфигурации из переменных окружения"""

        # Директории
        self.data_dir = Path(os.getenv('DATA_DIR', 'data'))
        self.export_dir = Path(os.getenv('EXPORT_DIR', 'exports'))
        self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))

        # Локальное хранилище
        quota = os.getenv('STORAGE_QUOTA_BYTES', str(5 * 1024 * 1024))
        self.storage = StorageConfig(
            data_dir=self.data_dir,
            quota_bytes=int(quota) if int(quota) > 0 else None,
            progress_warn_bytes=int(os.getenv('PROGRESS_WARN_BYTES', 4 * 1024 * 1024)),
            dashboard_warn_bytes=int(os.getenv('DASHBOARD_WARN_BYTES', 2 * 1024 * 1024))
        )

        # Удаленное хранилище
        self.remote = RemoteConfig(
            base_url=os.getenv('PORTAL_API_URL') or None,
            api_token=os.getenv('PORTAL_API_TOKEN') or None,
            request_timeout=int(os.getenv('PORTAL_API_TIMEOUT', 30))
        )

        # Синхронизация
        self.sync = SyncConfig(
            auto_sync_minutes=int(os.getenv('AUTO_SYNC_MINUTES', 5)),
            connection_check_seconds=int(os.getenv('CONNECTION_CHECK_SECONDS', 30)),
            retry_attempts=int(os.getenv('RETRY_ATTEMPTS', 3)),
            retry_delay_seconds=float(os.getenv('RETRY_DELAY_SECONDS', 2.0))
        )

        # Учебная программа
        self.curriculum = CurriculumConfig(
            default_track=os.getenv('DEFAULT_TRACK', 'standard'),
            total_days=int(os.getenv('CURRICULUM_TOTAL_DAYS', 60))
        )

        self.timezone = os.getenv('PORTAL_TIMEZONE', 'UTC')

        # Логирование
        self.log_level = LogLevel(os.getenv('LOG_LEVEL', 'INFO'))
        self.log_to_file = os.getenv('LOG_TO_FILE', 'true').lower() == 'true'
        self.log_format = os.getenv(
            'LOG_FORMAT',
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )

    def _validate_config(self):
        """Валидация конфигурации"""
        errors = []

        if self.remote.base_url and not self.remote.base_url.startswith(('http://', 'https://')):
            errors.append("PORTAL_API_URL должен начинаться с http:// или https://")

        if self.remote.base_url and not self.remote.api_token:
            logging.warning("⚠️ PORTAL_API_TOKEN не задан - загрузка из базы данных будет пропущена")

        if self.sync.auto_sync_minutes < 1:
            errors.append("AUTO_SYNC_MINUTES должен быть не меньше 1")

        if self.sync.retry_attempts < 1:
            errors.append("RETRY_ATTEMPTS должен быть не меньше 1")

        if self.curriculum.total_days <= 0:
            errors.append("CURRICULUM_TOTAL_DAYS должен быть положительным числом")

        if not self.curriculum.default_track[:1].isalpha():
            errors.append("DEFAULT_TRACK должен начинаться с буквы")

        if self.timezone not in pytz.all_timezones_set:
            errors.append(f"PORTAL_TIMEZONE: неизвестный часовой пояс {self.timezone!r}")

        if errors:
            raise ValueError("Ошибки конфигурации:\n" + "\n".join(f"• {error}" for error in errors))

    def ensure_directories(self):
        """Создание необходимых директорий"""
        directories = [
            self.data_dir,
            self.export_dir,
            self.log_dir
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def get_logging_config(self) -> Dict[str, Any]:
        """Получение конфигурации логирования"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        logging_config = {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'level': self.log_level.value,
                    'formatter': 'default',
                    'stream': sys.stderr
                }
            },
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
                'aiohttp': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                },
                'apscheduler': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                }
            }
        }

        if self.log_to_file:
            logging_config['handlers']['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"portal_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        return logging_config

    def is_development(self) -> bool:
        """Проверка режима разработки"""
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        """Проверка продакшн режима"""
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфигурации в словарь"""
        token = self.remote.api_token
        return {
            'environment': self.environment.value,
            'remote': {
                'base_url': self.remote.base_url,
                'api_token': (token[:6] + "...") if token else None,  # Скрываем токен
                'enabled': self.remote.enabled
            },
            'sync': {
                'auto_sync_minutes': self.sync.auto_sync_minutes,
                'connection_check_seconds': self.sync.connection_check_seconds,
                'retry_attempts': self.sync.retry_attempts
            },
            'curriculum': {
                'default_track': self.curriculum.default_track,
                'total_days': self.curriculum.total_days
            },
            'data_dir': str(self.data_dir),
            'timezone': self.timezone,
            'log_level': self.log_level.value
        }

# Глобальный экземпляр конфигурации
config = PortalConfig()

# Экспорт для использования в других модулях
__all__ = [
    'config',
    'PortalConfig',
    'Environment',
    'LogLevel',
    'StorageConfig',
    'RemoteConfig',
    'SyncConfig',
    'CurriculumConfig'
]
