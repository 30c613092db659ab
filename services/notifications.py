"""
Сервис уведомлений пользователя: всплывающие сообщения и постоянные баннеры
"""

import logging
import itertools
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Any

logger = logging.getLogger(__name__)

class NotificationLevel(Enum):
    """Уровни уведомлений"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}

@dataclass
class Notification:
    """Уведомление для пользователя"""
    notification_id: int
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    persistent: bool = False
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    dismissed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.notification_id,
            'message': self.message,
            'level': self.level.value,
            'persistent': self.persistent,
            'created_at': self.created_at,
            'dismissed': self.dismissed
        }

class NotificationCenter:
    """Сбор уведомлений и доставка подписчикам"""

    def __init__(self, history_limit: int = 100):
        self.history_limit = history_limit
        self.history: List[Notification] = []
        self._subscribers: List[Callable[[Notification], Any]] = []
        self._ids = itertools.count(1)

    def notify(self, message: str, level: str = "info", persistent: bool = False) -> Notification:
        """Показать уведомление (уровни: info, success, warning, error)"""
        notification = Notification(
            notification_id=next(self._ids),
            message=message,
            level=NotificationLevel(level),
            persistent=persistent
        )

        self.history.append(notification)
        if len(self.history) > self.history_limit:
            # Постоянные баннеры не вытесняются до закрытия
            for i, old in enumerate(self.history):
                if not old.persistent or old.dismissed:
                    del self.history[i]
                    break

        logger.log(_LOG_LEVELS[notification.level], f"🔔 [{notification.level.value}] {message}")

        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as e:
                logger.error(f"❌ Ошибка подписчика уведомлений: {e}")

        return notification

    def persistent_error(self, message: str) -> Notification:
        """Постоянный баннер об ошибке, который закрывает пользователь"""
        return self.notify(message, level="error", persistent=True)

    def dismiss(self, notification_id: int) -> bool:
        for notification in self.history:
            if notification.notification_id == notification_id and not notification.dismissed:
                notification.dismissed = True
                return True
        return False

    def active(self) -> List[Notification]:
        """Незакрытые постоянные баннеры"""
        return [n for n in self.history if n.persistent and not n.dismissed]

    def last(self, level: Optional[str] = None) -> Optional[Notification]:
        for notification in reversed(self.history):
            if level is None or notification.level.value == level:
                return notification
        return None

    def subscribe(self, callback: Callable[[Notification], Any]) -> None:
        self._subscribers.append(callback)

    def clear(self) -> None:
        self.history.clear()

__all__ = [
    'NotificationLevel',
    'Notification',
    'NotificationCenter'
]
