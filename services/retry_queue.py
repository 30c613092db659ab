"""
Очередь повторных попыток для неудавшихся операций синхронизации
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Dict

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[bool]]

@dataclass
class RetryItem:
    """Операция в очереди"""
    name: str
    operation: Operation
    attempts: int = 0

class RetryQueue:
    """FIFO-очередь: до max_attempts попыток с задержкой base_delay * номер попытки"""

    def __init__(self, notifier=None, max_attempts: int = 3, base_delay: float = 2.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.notifier = notifier
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._items: Deque[RetryItem] = deque()
        self._processing = False

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, name: str, operation: Operation) -> None:
        self._items.append(RetryItem(name=name, operation=operation))
        logger.info(f"🔁 Операция '{name}' добавлена в очередь повторов ({len(self._items)} в очереди)")

    async def process(self) -> Dict[str, int]:
        """Обработать всю очередь"""
        stats = {"succeeded": 0, "failed": 0}
        if self._processing:
            return stats

        self._processing = True
        try:
            while self._items:
                item = self._items.popleft()
                if await self._run(item):
                    stats["succeeded"] += 1
                    logger.info(f"✅ Операция '{item.name}' выполнена с попытки {item.attempts}")
                    if self.notifier is not None:
                        self.notifier.notify(f"{item.name} completed", "success")
                else:
                    stats["failed"] += 1
                    logger.error(f"❌ Операция '{item.name}' не выполнена после {item.attempts} попыток")
                    if self.notifier is not None:
                        self.notifier.persistent_error(
                            f"{item.name} failed after {item.attempts} attempts. "
                            f"Your progress is saved locally."
                        )
        finally:
            self._processing = False

        return stats

    async def _run(self, item: RetryItem) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            item.attempts = attempt
            try:
                if await item.operation():
                    return True
            except Exception as e:
                logger.warning(f"⚠️ Попытка {attempt} операции '{item.name}' завершилась ошибкой: {e}")

            if attempt < self.max_attempts:
                await self._sleep(self.base_delay * attempt)
        return False

__all__ = ['RetryItem', 'RetryQueue']
