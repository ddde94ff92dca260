# stickroom/cache.py

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from stickroom.config import CACHE_DEFAULT_TTL, CACHE_SWEEP_INTERVAL

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: float


class MemoryCache:
    """Process-lifetime key/value cache with a TTL per entry (seconds)."""

    def __init__(self, default_ttl: float = CACHE_DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > entry.ttl

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._entries[key] = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            return None
        logger.debug("cache hit: %s", key)
        return entry.data

    def clear(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        data = await fetch()
        # None は「存在しない」扱いなのでキャッシュしない
        if data is not None:
            self.set(key, data, ttl)
        return data


async def run_sweeper(cache: MemoryCache, interval: float = CACHE_SWEEP_INTERVAL):
    """Evict expired entries every `interval` seconds until cancelled."""
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                removed = cache.clear_expired()
                if removed:
                    logger.debug("cache sweep removed %d entries", removed)
            except Exception as e:
                logger.error("cache sweep failed: %s", e)
    except asyncio.CancelledError:
        pass


# アプリ全体で共有するインスタンス
memory_cache = MemoryCache()


def get_cache() -> MemoryCache:
    return memory_cache
