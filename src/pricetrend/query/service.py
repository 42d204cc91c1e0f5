"""The query interface consumed by the transport layer.

QueryService fronts the range query engine with the query cache. Only
successful results computed after the bulk import has finished are cached:
while history is still loading a range may be bridged across hours that are
about to arrive, and any store failure is recomputed on the next request.
"""

import time
from collections.abc import Callable

from pricetrend.exceptions import InvalidRangeError
from pricetrend.logging import get_logger
from pricetrend.models import RangeResult, floor_to_hour
from pricetrend.query.cache import QueryCache
from pricetrend.query.engine import RangeQueryEngine

logger = get_logger(__name__)


class QueryService:
    """Cached range queries.

    Args:
        engine: Computes results on cache misses.
        cache: Result cache (use QueryCache(0) to disable).
        skip_open_hour: Do not cache ranges whose end is at or after the
            start of the current hour, since the poller may still add a sample there.
        import_finished: Reports whether the bulk import has completed; no
            result is cached before it does.
        clock: Wall clock, injectable for tests.
    """

    def __init__(
        self,
        engine: RangeQueryEngine,
        cache: QueryCache,
        skip_open_hour: bool = False,
        import_finished: Callable[[], bool] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._engine = engine
        self._cache = cache
        self._skip_open_hour = skip_open_hour
        self._import_finished = import_finished
        self._clock = clock

    @property
    def cache(self) -> QueryCache:
        return self._cache

    async def query(self, begin: int, end: int) -> RangeResult:
        """Return points covering [begin, end], from cache when possible.

        Raises:
            InvalidRangeError: begin > end.
            StoreUnavailableError: the store failed (never cached).
        """
        if begin > end:
            raise InvalidRangeError(begin, end)

        cached = await self._cache.get(begin, end)
        if cached is not None:
            return cached

        result = await self._engine.query(begin, end)
        if result.has_data and self._cacheable(end):
            await self._cache.put(result)
        return result

    def _cacheable(self, end: int) -> bool:
        if self._import_finished is not None and not self._import_finished():
            return False
        if not self._skip_open_hour:
            return True
        return end < floor_to_hour(self._clock())
