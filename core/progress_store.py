#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Progress Store
Загрузка, валидация и сохранение прогресса, панели и настроек

Версия: 2.0.0
"""

import json
import copy
import asyncio
from datetime import date
from typing import Dict, Optional, Any, Union
import logging

from pydantic import ValidationError

from core.models import (
    ProgressRecord, DashboardRecord, UserSettings, ProgressSource,
    ShapeValidationError, RemoteUnavailableError, DEFAULT_TRACK,
    validate_progress_data, validate_dashboard_data, validate_settings_data
)
from core.storage import KeyValueStorage, StorageError, QuotaExceededError
from core.achievements import update_streak
from core.conversion import remote_entries_to_record, record_to_remote_entries, merge_stats_into_record
from shared.models import ExportDocument, parse_envelope
from utils.datetime_utils import Clock, make_clock, to_iso

logger = logging.getLogger(__name__)

PROGRESS_KEY = "practicePortalProgress"
DASHBOARD_KEY = "dashboardData"
SETTINGS_KEY = "userSettings"

EXPORT_VERSION = "2.0.0"

class ProgressStore:
    """
    Хранилище прогресса пользователя.

    Держит в памяти текущие ProgressRecord, DashboardRecord и UserSettings.
    Локальная запись выполняется всегда; отправка в удаленное хранилище -
    по возможности, ее ошибки не отменяют локальное сохранение.
    """

    def __init__(self, storage: KeyValueStorage, remote=None, notifier=None,
                 clock: Optional[Clock] = None, track_id: str = DEFAULT_TRACK,
                 progress_key: str = PROGRESS_KEY, dashboard_key: str = DASHBOARD_KEY,
                 settings_key: str = SETTINGS_KEY,
                 progress_warn_bytes: int = 4 * 1024 * 1024,
                 dashboard_warn_bytes: int = 2 * 1024 * 1024):
        self.storage = storage
        self.remote = remote
        self.notifier = notifier
        self.clock = clock or make_clock()
        self.track_id = track_id

        self.progress_key = progress_key
        self.dashboard_key = dashboard_key
        self.settings_key = settings_key
        self.progress_warn_bytes = progress_warn_bytes
        self.dashboard_warn_bytes = dashboard_warn_bytes

        self.progress = ProgressRecord.create_default()
        self.dashboard = DashboardRecord.create_default()
        self.settings = UserSettings.create_default()
        self.last_error: Optional[str] = None

    def _notify(self, message: str, level: str = "info") -> None:
        if self.notifier is not None:
            self.notifier.notify(message, level)

    def today(self) -> date:
        return self.clock().date()

    # ===== PROGRESS =====

    def validate(self, record: Union[ProgressRecord, Dict[str, Any]]) -> bool:
        """Только структурная проверка"""
        data = record.to_dict() if isinstance(record, ProgressRecord) else record
        return validate_progress_data(data)

    async def load(self) -> ProgressRecord:
        """Загрузить прогресс: сначала удаленное хранилище, затем локальное"""
        if self.remote is not None and self.remote.is_authenticated:
            try:
                remote = await self.fetch_remote()
            except RemoteUnavailableError as e:
                logger.warning(f"Remote load failed, falling back to local storage: {e}")
            else:
                if remote.completed_days or remote.tasks:
                    self.progress = remote
                    logger.info(f"Loaded progress from remote store: {remote.completed_count} days completed")
                    return self.progress

                # Пустой снимок не затирает локальный прогресс, он будет выгружен при синхронизации
                local = self.load_local()
                if local.completed_days or local.tasks:
                    logger.warning(f"Remote store has no progress, keeping {local.completed_count} "
                                   f"locally completed days")
                    self._notify("Remote progress is empty, local progress kept and will be uploaded", "warning")
                    self.progress = local
                    return self.progress

                self.progress = remote
                return self.progress

        self.progress = self.load_local()
        return self.progress

    async def fetch_remote(self) -> ProgressRecord:
        """Получить снимок прогресса и статистику из удаленного хранилища"""
        if self.remote is None:
            raise RemoteUnavailableError("Remote store is not configured")

        progress_response, stats_response = await asyncio.gather(
            self.remote.get_progress(),
            self.remote.get_stats(),
            return_exceptions=True
        )

        if isinstance(progress_response, Exception):
            raise RemoteUnavailableError(f"Progress request failed: {progress_response}") from progress_response

        envelope = parse_envelope(progress_response)
        if not envelope.success:
            raise RemoteUnavailableError(f"Progress request failed: {envelope.error or 'unknown error'}")

        record = remote_entries_to_record(envelope.data or [])

        if isinstance(stats_response, Exception):
            logger.warning(f"Stats request failed: {stats_response}")
        else:
            stats = parse_envelope(stats_response)
            if stats.success:
                merge_stats_into_record(record, stats.data)
            else:
                logger.warning(f"Stats request failed: {stats.error}")

        return record

    def load_local(self) -> ProgressRecord:
        """Прочитать прогресс из локального хранилища (или запись по умолчанию)"""
        try:
            raw = self._read_json(self.progress_key)
            if raw is None:
                logger.info("No saved progress found, starting fresh")
                return ProgressRecord.create_default()
            record = ProgressRecord.from_dict(raw)
        except ShapeValidationError as e:
            logger.warning(f"Saved progress is invalid, resetting to defaults: {e}")
            self._notify("Saved progress data was corrupted and has been reset", "warning")
            return ProgressRecord.create_default()

        record.source = ProgressSource.LOCAL.value
        record.migrate_legacy_keys(self.track_id)
        return record

    async def save(self, record: Optional[ProgressRecord] = None) -> bool:
        """
        Сохранить прогресс.

        Неверная структура отклоняется без записи. lastSynced выставляется
        текущим временем; запись с source != default дополнительно
        отправляется в удаленное хранилище. Возвращает результат локальной
        записи.
        """
        record = record if record is not None else self.progress
        if not self.validate(record):
            logger.error("Refusing to save progress record with invalid shape")
            return False

        record.last_synced = to_iso(self.clock())
        self.progress = record
        saved = self.write_local(record)

        if record.source != ProgressSource.DEFAULT.value and self.remote is not None:
            await self.push(record)

        return saved

    async def push(self, record: ProgressRecord) -> bool:
        """Построчный upsert всех дней; ошибки не прерывают остальные запросы"""
        entries = record_to_remote_entries(record, to_iso(self.clock()))
        if not entries:
            return True

        results = await asyncio.gather(
            *(self.remote.update_progress(entry) for entry in entries),
            return_exceptions=True
        )

        failed = 0
        for result in results:
            if isinstance(result, Exception) or not parse_envelope(result).success:
                failed += 1

        if failed:
            logger.warning(f"Failed to push {failed} of {len(entries)} progress entries")
            self._notify("Working offline: progress is saved locally and will sync later", "warning")
            return False

        logger.debug(f"Pushed {len(entries)} progress entries")
        return True

    def write_local(self, record: ProgressRecord) -> bool:
        """Только локальная запись"""
        return self._write(self.progress_key, record.to_dict(), self.progress_warn_bytes, "Progress")

    # ===== DASHBOARD =====

    def load_dashboard(self) -> DashboardRecord:
        """Загрузить панель, пересчитать серию и сохранить результат"""
        try:
            raw = self._read_json(self.dashboard_key)
            dashboard = DashboardRecord.from_dict(raw) if raw is not None else DashboardRecord.create_default()
        except ShapeValidationError as e:
            logger.warning(f"Saved dashboard is invalid, resetting to defaults: {e}")
            self._notify("Dashboard data was corrupted and has been reset", "warning")
            dashboard = DashboardRecord.create_default()

        self.dashboard = dashboard
        update_streak(self.dashboard, self.today())
        self.save_dashboard()
        return self.dashboard

    def refresh_streak(self) -> bool:
        return update_streak(self.dashboard, self.today())

    def save_dashboard(self, dashboard: Optional[DashboardRecord] = None) -> bool:
        dashboard = dashboard if dashboard is not None else self.dashboard
        data = dashboard.to_dict()
        if not validate_dashboard_data(data):
            logger.error("Refusing to save dashboard with invalid shape")
            return False

        self.dashboard = dashboard
        return self._write(self.dashboard_key, data, self.dashboard_warn_bytes, "Dashboard")

    # ===== SETTINGS =====

    def load_settings(self) -> UserSettings:
        try:
            raw = self._read_json(self.settings_key)
            self.settings = UserSettings.from_dict(raw) if raw is not None else UserSettings.create_default()
        except ShapeValidationError as e:
            logger.warning(f"Saved settings are invalid, using defaults: {e}")
            self.settings = UserSettings.create_default()
        return self.settings

    def save_settings(self, settings: Optional[UserSettings] = None) -> bool:
        settings = settings if settings is not None else self.settings
        self.settings = settings
        return self._write(self.settings_key, settings.to_dict(), None, "Settings")

    # ===== EXPORT / IMPORT =====

    def export_document(self) -> Dict[str, Any]:
        """Документ резервной копии: прогресс, панель и настройки"""
        return copy.deepcopy({
            'progress': self.progress.to_dict(),
            'dashboardData': self.dashboard.to_dict(),
            'settings': self.settings.to_dict(),
            'exportedAt': to_iso(self.clock()),
            'version': EXPORT_VERSION
        })

    async def import_document(self, document: Any) -> bool:
        """
        Импорт резервной копии.

        Все три раздела проверяются до любых изменений: при ошибке в любом
        из них состояние не меняется.
        """
        try:
            parsed = ExportDocument.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Import rejected, invalid document: {e.error_count()} errors")
            self._notify("Import failed: the backup file is not valid", "error")
            return False

        if not (validate_progress_data(parsed.progress) and
                validate_dashboard_data(parsed.dashboardData) and
                validate_settings_data(parsed.settings)):
            logger.warning("Import rejected, one of the sections has an invalid shape")
            self._notify("Import failed: the backup file is not valid", "error")
            return False

        try:
            progress = ProgressRecord.from_dict(parsed.progress)
            dashboard = DashboardRecord.from_dict(parsed.dashboardData)
            settings = UserSettings.from_dict(parsed.settings)
        except ShapeValidationError as e:
            logger.warning(f"Import rejected: {e}")
            self._notify("Import failed: the backup file is not valid", "error")
            return False

        progress.source = ProgressSource.LOCAL.value
        progress.migrate_legacy_keys(self.track_id)

        self.dashboard = dashboard
        self.settings = settings
        saved = await self.save(progress)
        saved = self.save_dashboard() and saved
        saved = self.save_settings() and saved

        logger.info(f"Imported backup from {parsed.exportedAt or 'unknown date'} (version {parsed.version})")
        self._notify("Progress imported successfully", "success")
        return saved

    def reset(self) -> bool:
        """Сбросить прогресс и панель (включая достижения)"""
        self.progress = ProgressRecord.create_default()
        self.dashboard = DashboardRecord.create_default()
        saved = self.write_local(self.progress)
        saved = self.save_dashboard() and saved
        logger.info("Progress and dashboard reset to defaults")
        self._notify("All progress has been reset", "info")
        return saved

    # ===== STORAGE HELPERS =====

    def _read_json(self, key: str) -> Optional[Any]:
        try:
            raw = self.storage.get(key)
        except StorageError as e:
            logger.error(f"Failed to read '{key}': {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ShapeValidationError(f"'{key}' is not valid JSON: {e}")

    def _write(self, key: str, data: Dict[str, Any], warn_bytes: Optional[int], label: str) -> bool:
        payload = json.dumps(data, ensure_ascii=False)
        size = len(payload.encode('utf-8'))

        if warn_bytes is not None and size > warn_bytes:
            size_mb = size / (1024 * 1024)
            logger.warning(f"{label} data is large: {size} bytes")
            self._notify(
                f"{label} data is large ({size_mb:.1f} MB). Consider exporting your progress and resetting.",
                "warning"
            )

        try:
            self.storage.set(key, payload)
        except QuotaExceededError as e:
            self.last_error = e.kind
            logger.error(f"Storage quota exceeded while saving '{key}': {e}")
            self._notify("Storage is full. Export your progress and reset to free up space.", "error")
            return False
        except StorageError as e:
            self.last_error = e.kind
            logger.error(f"Failed to save '{key}': {e}")
            self._notify(f"Failed to save {label.lower()} data", "error")
            return False

        self.last_error = None
        return True

__all__ = [
    'PROGRESS_KEY',
    'DASHBOARD_KEY',
    'SETTINGS_KEY',
    'EXPORT_VERSION',
    'ProgressStore'
]
