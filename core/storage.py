#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Local Storage
Пространство имен ключ/значение для JSON-строк с контролем квоты

Версия: 2.0.0
"""

import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
import logging

from core.models import PortalError

logger = logging.getLogger(__name__)

# ===== EXCEPTIONS =====

class StorageError(PortalError):
    """Ошибка локального хранилища"""
    kind = "StorageError"

class QuotaExceededError(StorageError):
    """Превышен лимит хранилища"""
    kind = "QuotaExceeded"

# ===== INTERFACE =====

class KeyValueStorage(ABC):
    """Хранилище строк по ключам"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Получить значение или None"""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Записать значение; может выбросить QuotaExceededError"""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Удалить значение"""
        pass

    @abstractmethod
    def usage_bytes(self, exclude: Optional[str] = None) -> int:
        """Занятый объем (без указанного ключа)"""
        pass

    def _check_quota(self, quota_bytes: Optional[int], key: str, value: str) -> None:
        if quota_bytes is None:
            return
        required = self.usage_bytes(exclude=key) + len(value.encode('utf-8'))
        if required > quota_bytes:
            raise QuotaExceededError(
                f"Storage quota exceeded writing '{key}': {required} > {quota_bytes} bytes"
            )

# ===== IMPLEMENTATIONS =====

class MemoryStorage(KeyValueStorage):
    """Хранилище в памяти (один процесс, без долговременного сохранения)"""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_quota(self.quota_bytes, key, value)
        self._data[key] = value

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def usage_bytes(self, exclude: Optional[str] = None) -> int:
        return sum(len(v.encode('utf-8')) for k, v in self._data.items() if k != exclude)

class JsonFileStorage(KeyValueStorage):
    """Файловое хранилище: один JSON-файл на ключ, атомарная запись"""

    KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')

    def __init__(self, directory: Path, quota_bytes: Optional[int] = None):
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes
        self.file_lock = threading.RLock()

    def _path(self, key: str) -> Path:
        if not self.KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self.file_lock:
            if not path.exists():
                return None
            try:
                return path.read_text(encoding='utf-8')
            except OSError as e:
                logger.error(f"Failed to read {path}: {e}")
                raise StorageError(f"Failed to read '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        with self.file_lock:
            self._check_quota(self.quota_bytes, key, value)
            self.directory.mkdir(parents=True, exist_ok=True)

            # Атомарное сохранение через временный файл
            temp_file = path.with_suffix('.tmp')
            try:
                with open(temp_file, 'w', encoding='utf-8') as f:
                    f.write(value)
                temp_file.replace(path)
            except OSError as e:
                if temp_file.exists():
                    temp_file.unlink()
                logger.error(f"Failed to write {path}: {e}")
                raise StorageError(f"Failed to write '{key}': {e}")

    def remove(self, key: str) -> bool:
        path = self._path(key)
        with self.file_lock:
            if path.exists():
                path.unlink()
                return True
            return False

    def usage_bytes(self, exclude: Optional[str] = None) -> int:
        if not self.directory.exists():
            return 0
        excluded = f"{exclude}.json" if exclude else None
        return sum(
            p.stat().st_size for p in self.directory.glob("*.json")
            if p.name != excluded
        )

__all__ = [
    'StorageError',
    'QuotaExceededError',
    'KeyValueStorage',
    'MemoryStorage',
    'JsonFileStorage'
]
