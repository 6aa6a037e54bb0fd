"""
Кэши движка шаблонов.

Оба кэша создаются вызывающим кодом и передаются в конструкторы
(движок, постпроцессор); глобального состояния нет.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _sha1_text(text: str) -> str:
    """Хеш текста шаблона - ключ кэша разбора."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheSnapshot:
    entries: int
    capacity: int
    hits: int
    misses: int


class ParseCache(Generic[T]):
    """
    LRU-кэш результатов разбора по sha1 текста шаблона.

    capacity=0 отключает кэширование: каждый вызов разбирает заново.
    """

    def __init__(self, capacity: int = 128):
        self.capacity = max(0, int(capacity))
        self._entries: OrderedDict[str, T] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get_or_parse(self, text: str, parse: Callable[[str], T]) -> T:
        """
        Возвращает закэшированный результат или разбирает текст и запоминает.

        Args:
            text: Текст шаблона
            parse: Функция разбора

        Returns:
            Результат разбора
        """
        if self.capacity == 0:
            self._misses += 1
            return parse(text)

        key = _sha1_text(text)
        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            self._hits += 1
            return cached

        self._misses += 1
        result = parse(text)
        self._entries[key] = result
        if len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Parse cache evicted {evicted[:12]}")
        return result

    def invalidate(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(len(self._entries), self.capacity, self._hits, self._misses)


class ExpiringCache:
    """
    Кэш с ограниченным временем жизни записей.

    Используется для результатов внешних резолверов (селекторы), чтобы
    повторные плейсхолдеры в одном шаблоне не обращались к странице снова.
    """

    def __init__(self, ttl: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def __contains__(self, key: Hashable) -> bool:
        marker = object()
        return self.get(key, marker) is not marker

    def put(self, key: Hashable, value: Any) -> None:
        """Запоминает значение; попутно удаляет все просроченные записи."""
        if self.ttl <= 0:
            return
        now = self._clock()
        self._purge(now)
        self._entries[key] = (now + self.ttl, value)

    def _purge(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Expiring cache purged {len(expired)} entries")

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Удаляет одну запись или (без ключа) все."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)


__all__ = ["CacheSnapshot", "ParseCache", "ExpiringCache"]
