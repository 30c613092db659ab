#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Progress Conversion
Преобразование между форматом базы данных и каноническими записями

Версия: 2.0.0
"""

import json
from typing import Dict, List, Optional, Any
import logging

from pydantic import ValidationError

from core.models import ProgressRecord, ProgressSource, DayKey, TaskKey, KeyFormatError
from shared.models import RemoteProgressEntry, RemoteStats, ProgressUpdateRequest
from utils.datetime_utils import parse_iso, to_iso

logger = logging.getLogger(__name__)

def parse_tasks_blob(blob: Any) -> Dict[str, bool]:
    """tasks_completed приходит JSON-строкой или объектом"""
    if not blob:
        return {}
    if isinstance(blob, str):
        try:
            blob = json.loads(blob)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse tasks data: {e}")
            return {}
    if not isinstance(blob, dict):
        logger.warning(f"Unexpected tasks data type: {type(blob).__name__}")
        return {}
    return {str(key): bool(value) for key, value in blob.items()}

def _parse_entries(entries: Any) -> List[RemoteProgressEntry]:
    if not isinstance(entries, list):
        return []

    parsed = []
    for raw in entries:
        try:
            parsed.append(RemoteProgressEntry.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid remote progress entry: {e.error_count()} errors")
    return parsed

def remote_snapshot_timestamp(entries: Any) -> Optional[str]:
    """Самая поздняя метка updated_at/completion_date среди записей"""
    latest = None
    for entry in _parse_entries(entries):
        for value in (entry.updated_at, entry.completion_date):
            moment = parse_iso(value)
            if moment is not None and (latest is None or moment > latest):
                latest = moment
    return to_iso(latest) if latest else None

def remote_entries_to_record(entries: Any) -> ProgressRecord:
    """Записи базы данных -> ProgressRecord (source = database)"""
    record = ProgressRecord(source=ProgressSource.DATABASE.value)

    for entry in _parse_entries(entries):
        try:
            day_key = DayKey(entry.track_id, entry.day_number)
        except KeyFormatError as e:
            logger.warning(f"Skipping remote entry with bad key: {e}")
            continue

        record.completed_days[day_key.encode()] = entry.completed
        record.tasks.update(parse_tasks_blob(entry.tasks_completed))

    record.last_synced = remote_snapshot_timestamp(entries)
    return record

def _day_keys_to_push(record: ProgressRecord) -> Dict[str, bool]:
    """Дни из completedDays плюс дни, у которых есть только задачи"""
    days = {key: bool(completed) for key, completed in record.completed_days.items()}
    for task_key in record.tasks:
        try:
            day_key = TaskKey.decode(task_key).day.encode()
        except KeyFormatError:
            continue
        days.setdefault(day_key, False)
    return days

def record_to_remote_entries(record: ProgressRecord, completed_at: str) -> List[ProgressUpdateRequest]:
    """ProgressRecord -> записи для построчного upsert в базе данных"""
    entries = []
    for key, completed in _day_keys_to_push(record).items():
        try:
            day_key = DayKey.decode(key)
        except KeyFormatError as e:
            logger.warning(f"Not pushing day with unsupported key: {e}")
            continue

        entries.append(ProgressUpdateRequest(
            track_id=day_key.track_id,
            day_number=day_key.day_number,
            completed=completed,
            tasks_completed=json.dumps(record.tasks_for_day(day_key)),
            study_time=0,
            completion_date=completed_at if completed else None
        ))
    return entries

def merge_stats_into_record(record: ProgressRecord, stats: Any) -> bool:
    """Перезаписать analytics свежей статистикой"""
    if not isinstance(stats, dict):
        return False
    try:
        parsed = RemoteStats.model_validate(stats)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid stats payload: {e.error_count()} errors")
        return False

    record.analytics = parsed.to_analytics()
    return True

def merge_records(local: ProgressRecord, remote: ProgressRecord) -> ProgressRecord:
    """
    Объединение при равных метках времени.

    Правостороннее объединение: при совпадении ключей побеждает удаленная
    запись. lastSynced выставляется при сохранении.
    """
    merged = ProgressRecord(
        completed_days={**local.completed_days, **remote.completed_days},
        tasks={**local.tasks, **remote.tasks},
        last_synced=None,
        source=ProgressSource.MERGED.value
    )

    if local.analytics is not None or remote.analytics is not None:
        merged.analytics = {**(local.analytics or {}), **(remote.analytics or {})}

    return merged

__all__ = [
    'parse_tasks_blob',
    'remote_snapshot_timestamp',
    'remote_entries_to_record',
    'record_to_remote_entries',
    'merge_stats_into_record',
    'merge_records'
]
