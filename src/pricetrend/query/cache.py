"""In-memory memoization of range query results.

Keys are the exact (begin, end) pair as requested, with no rounding. Entries
are never invalidated by new live samples: a cached range whose end reaches
the current hour keeps returning the value computed at first request until
it is evicted. Set QUERY_CACHE_SKIP_OPEN_HOUR to keep such ranges out of the
cache instead.
"""

import asyncio
from collections import OrderedDict

from pricetrend.logging import get_logger
from pricetrend.models import RangeResult

logger = get_logger(__name__)


class QueryCache:
    """LRU-bounded cache of RangeResult keyed by (begin, end).

    Uses asyncio.Lock for safe concurrent access from request handlers.
    A max_entries of 0 disables caching entirely.
    """

    def __init__(self, max_entries: int = 4096) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self._max_entries = max_entries
        self._entries: OrderedDict[tuple[int, int], RangeResult] = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self._max_entries > 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, begin: int, end: int) -> RangeResult | None:
        """Return the cached result for exactly (begin, end), or None."""
        async with self._lock:
            result = self._entries.get((begin, end))
            if result is None:
                self.misses += 1
                return None
            self._entries.move_to_end((begin, end))
            self.hits += 1
            return result

    async def put(self, result: RangeResult) -> None:
        """Store a result under its own (begin, end), evicting the oldest entry if full."""
        if not self.enabled:
            return
        key = (result.begin, result.end)
        async with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("query_cache_evicted", begin=evicted[0], end=evicted[1])

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
