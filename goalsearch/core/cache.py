"""Memoizing cache for search results."""

import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .models import SearchResult


class QueryCache:
    """LRU cache for ranked result lists, with optional expiry."""

    def __init__(self,
                 max_size: int = 100,
                 ttl_seconds: Optional[float] = 300,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize query cache.

        Args:
            max_size: Maximum cache entries
            ttl_seconds: Time to live for cache entries, None to keep entries
                for the whole session
            clock: Monotonic time source in seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[List[SearchResult], float]]" = OrderedDict()
        self._stats = {'hits': 0, 'misses': 0, 'evictions': 0, 'expired': 0}

    def get(self, key: str) -> Optional[List[SearchResult]]:
        """Return the stored list for key, or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats['misses'] += 1
            return None

        results, stored_at = entry
        if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            self._stats['expired'] += 1
            self._stats['misses'] += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        self._entries.move_to_end(key)
        self._stats['hits'] += 1
        return results

    def put(self, key: str, results: List[SearchResult]) -> None:
        """Store results, evicting the least recently used entry at capacity."""
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_size:
            oldest, _ = self._entries.popitem(last=False)
            self._stats['evictions'] += 1
            logger.debug(f"Cache evicted: {oldest}")

        self._entries[key] = (results, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, int]:
        return {
            'size': len(self._entries),
            'max_size': self.max_size,
            **self._stats,
        }
