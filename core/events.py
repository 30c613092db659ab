#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Domain Events
Шина событий: изменение прогресса -> независимые обработчики

Версия: 2.0.0
"""

import inspect
from typing import Dict, List, Optional, Any, Callable, Set
from dataclasses import dataclass, field
from enum import Enum
import logging

from utils.datetime_utils import Clock, make_clock, to_iso

logger = logging.getLogger(__name__)

class ProgressEventType(Enum):
    """Типы изменений прогресса"""
    DAY_COMPLETED = "day_completed"
    TASK_TOGGLED = "task_toggled"
    QUESTION_STUDIED = "question_studied"
    SESSION_RECORDED = "session_recorded"
    SYNCED = "synced"
    IMPORTED = "imported"
    RESET = "reset"

@dataclass
class ProgressChanged:
    """Событие изменения прогресса"""
    event_type: ProgressEventType
    key: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

Handler = Callable[[ProgressChanged], Any]

class EventBus:
    """Простая шина событий внутри одного event loop"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or make_clock()
        self._handlers: List[tuple] = []

    def subscribe(self, handler: Handler, event_types: Optional[Set[ProgressEventType]] = None) -> None:
        """Подписать обработчик (на все события или на указанные типы)"""
        self._handlers.append((handler, frozenset(event_types) if event_types else None))

    def unsubscribe(self, handler: Handler) -> bool:
        before = len(self._handlers)
        self._handlers = [(h, t) for h, t in self._handlers if h is not handler]
        return len(self._handlers) < before

    async def publish(self, event: ProgressChanged) -> int:
        """Доставить событие; ошибки обработчиков логируются и не прерывают доставку"""
        if event.timestamp is None:
            event.timestamp = to_iso(self.clock())

        delivered = 0
        for handler, event_types in list(self._handlers):
            if event_types is not None and event.event_type not in event_types:
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.warning(f"Event handler {getattr(handler, '__name__', handler)!r} failed "
                               f"for {event.event_type.value}: {e}")
        return delivered

__all__ = [
    'ProgressEventType',
    'ProgressChanged',
    'EventBus'
]
