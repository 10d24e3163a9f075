"""In-process TTL cache (default backend, also used in tests)."""

from __future__ import annotations

import threading
import time
from typing import Any

from taxonomy_api.services.cache.base import BaseCache


class MemoryCache(BaseCache):
    def __init__(self, max_entries: int = 200_000):
        self._data: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries

    def _get_locked(self, key: str, now: float) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= now:
            del self._data[key]
            return None
        return value

    def _evict_locked(self, now: float) -> None:
        if len(self._data) < self._max_entries:
            return
        for key in [k for k, (exp, _) in self._data.items() if exp <= now]:
            del self._data[key]
        # Still full: drop the oldest insertions
        overflow = len(self._data) - self._max_entries + 1
        for key in list(self._data)[:max(overflow, 0)]:
            del self._data[key]

    async def get(self, key: str) -> Any | None:
        with self._lock:
            return self._get_locked(key, time.monotonic())

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = time.monotonic()
        with self._lock:
            self._evict_locked(now)
            self._data[key] = (now + ttl_seconds, value)

    async def mget(self, keys: list[str]) -> list[Any | None]:
        now = time.monotonic()
        with self._lock:
            return [self._get_locked(k, now) for k in keys]

    async def set_many_with_ttl(self, items: dict[str, Any], ttl_seconds: int) -> None:
        now = time.monotonic()
        with self._lock:
            for key, value in items.items():
                self._evict_locked(now)
                self._data[key] = (now + ttl_seconds, value)

    async def delete_many(self, keys: list[str]) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
            return removed

    async def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
