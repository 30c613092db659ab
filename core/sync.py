#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Sync Reconciler
Согласование локального прогресса с удаленным хранилищем по меткам времени

Версия: 2.0.0
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional, Any
from dataclasses import dataclass
from enum import Enum
import logging

from core.models import ProgressRecord, PortalError, RemoteUnavailableError
from core.conversion import merge_records, merge_stats_into_record
from core.events import EventBus, ProgressChanged, ProgressEventType
from shared.models import parse_envelope
from utils.datetime_utils import Clock, parse_iso, timestamp_or_epoch

logger = logging.getLogger(__name__)

class SyncAction(Enum):
    """Выбранная стратегия синхронизации"""
    PUSH = "push"
    PULL = "pull"
    MERGE = "merge"
    NONE = "none"

class ReconciliationAbort(PortalError):
    """Синхронизация прервана, локальное состояние не изменено"""
    kind = "ReconciliationAbort"

@dataclass
class SyncResult:
    """Результат синхронизации"""
    success: bool
    action: SyncAction
    message: str
    backup: Optional[ProgressRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'action': self.action.value,
            'message': self.message,
            'has_backup': self.backup is not None
        }

def choose_strategy(local_timestamp: datetime, remote_timestamp: datetime) -> SyncAction:
    """Более новая сторона побеждает, равенство означает слияние"""
    if local_timestamp > remote_timestamp:
        return SyncAction.PUSH
    if remote_timestamp > local_timestamp:
        return SyncAction.PULL
    return SyncAction.MERGE

class SyncReconciler:
    """Синхронизация ProgressStore с удаленным хранилищем"""

    def __init__(self, store, event_bus: Optional[EventBus] = None, notifier=None,
                 auto_sync_minutes: int = 5, clock: Optional[Clock] = None):
        self.store = store
        self.event_bus = event_bus
        self.notifier = notifier
        self.auto_sync_interval = timedelta(minutes=auto_sync_minutes)
        self.clock = clock or store.clock

        self.last_result: Optional[SyncResult] = None
        self.failed_syncs = 0
        self._lock = asyncio.Lock()

    async def sync(self) -> SyncResult:
        """Одна синхронизация; параллельные вызовы выполняются по очереди"""
        async with self._lock:
            try:
                result = await self._reconcile()
            except (ReconciliationAbort, RemoteUnavailableError) as e:
                self.failed_syncs += 1
                logger.warning(f"Sync aborted: {e}")
                result = SyncResult(False, SyncAction.NONE, f"Sync failed: {e}")
            self.last_result = result

        if result.success and self.event_bus is not None:
            await self.event_bus.publish(ProgressChanged(
                ProgressEventType.SYNCED,
                payload={'action': result.action.value}
            ))
        return result

    async def _reconcile(self) -> SyncResult:
        remote_client = self.store.remote
        if remote_client is None:
            raise ReconciliationAbort("Remote store is not configured")
        if not remote_client.is_authenticated:
            raise ReconciliationAbort("Not authenticated with the remote store")

        remote = await self.store.fetch_remote()
        local = self.store.progress

        action = choose_strategy(
            timestamp_or_epoch(local.last_synced),
            timestamp_or_epoch(remote.last_synced)
        )
        logger.info(f"Sync strategy: {action.value} (local={local.last_synced}, remote={remote.last_synced})")

        if action is SyncAction.PUSH:
            saved = await self.store.save(local)
            return SyncResult(saved, action, "Local progress uploaded to the remote store")

        if action is SyncAction.PULL:
            backup = local.copy()
            self.store.progress = remote
            saved = self.store.write_local(remote)
            return SyncResult(saved, action, "Progress downloaded from the remote store", backup=backup)

        merged = merge_records(local, remote)
        saved = await self.store.save(merged)
        return SyncResult(saved, action, "Local and remote progress merged")

    async def on_visible(self, now: Optional[datetime] = None) -> Optional[SyncResult]:
        """Синхронизация при возврате пользователя, если с прошлой прошло больше интервала"""
        now = now or self.clock()
        last_synced = parse_iso(self.store.progress.last_synced)
        if last_synced is not None and now - last_synced <= self.auto_sync_interval:
            return None

        result = await self.sync()
        if result.success and result.action is not SyncAction.PUSH and self.notifier is not None:
            self.notifier.notify("Progress synced", "info")
        return result

    async def refresh_analytics(self) -> bool:
        """Обновить analytics свежей статистикой, не трогая дни и задачи"""
        remote_client = self.store.remote
        if remote_client is None:
            return False

        try:
            response = await remote_client.get_stats()
        except Exception as e:
            logger.warning(f"Stats request failed: {e}")
            return False

        envelope = parse_envelope(response)
        if not envelope.success:
            logger.warning(f"Stats request failed: {envelope.error}")
            return False

        if not merge_stats_into_record(self.store.progress, envelope.data):
            return False
        return self.store.write_local(self.store.progress)

    def get_status(self) -> Dict[str, Any]:
        return {
            'last_synced': self.store.progress.last_synced,
            'source': self.store.progress.source,
            'failed_syncs': self.failed_syncs,
            'last_result': self.last_result.to_dict() if self.last_result else None
        }

__all__ = [
    'SyncAction',
    'SyncResult',
    'ReconciliationAbort',
    'choose_strategy',
    'merge_records',
    'SyncReconciler'
]
