"""Live poller -- records one sample per hour from the live price feed.

Runs as its own asyncio task. The first tick fires immediately on start,
later ticks are aligned to interval boundaries plus a small offset. Each
tick is independent: a failed fetch or store write is logged and the next
tick runs as scheduled.

Only the current hour is ever written. Hours missed while the feed or the
process was down stay as gaps; the query engine bridges them.
"""

import asyncio
import time
from collections.abc import Callable

import structlog

from pricetrend.data.store import SeriesStore
from pricetrend.exceptions import FeedError
from pricetrend.feed.client import PriceFeed
from pricetrend.logging import get_logger
from pricetrend.models import HOUR_SECONDS, PollerStats, floor_to_hour

logger = get_logger(__name__)


def seconds_until_next_tick(now: float, interval: int, offset: float) -> float:
    """Seconds from now until the next interval boundary plus offset."""
    next_boundary = (now // interval + 1) * interval + offset
    # offset may put this interval's tick still ahead of us
    this_boundary = next_boundary - interval
    if this_boundary > now:
        return this_boundary - now
    return next_boundary - now


class LivePoller:
    """Polls the live feed and upserts the sample for the current hour.

    Usage:
        poller = LivePoller(store, feed)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        store: SeriesStore,
        feed: PriceFeed,
        interval_seconds: int = HOUR_SECONDS,
        offset_seconds: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not 0 < interval_seconds <= HOUR_SECONDS:
            raise ValueError("interval_seconds must be in (0, 3600]")
        self._store = store
        self._feed = feed
        self._interval = interval_seconds
        self._offset = offset_seconds
        self._clock = clock
        self._stats = PollerStats()
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def stats(self) -> PollerStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin polling in the background."""
        if self._running:
            logger.warning("live_poller_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "live_poller_started",
            interval_seconds=self._interval,
            offset_seconds=self._offset,
        )

    async def stop(self) -> None:
        """Stop the poller gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("live_poller_stopped")

    async def _poll_loop(self) -> None:
        """Main loop: tick, then sleep until the next aligned boundary."""
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._stats.failures += 1
                self._stats.last_error = str(e)
                logger.warning("live_poller_tick_error", exc_info=True)
            if self._running:
                delay = seconds_until_next_tick(
                    self._clock(), self._interval, self._offset
                )
                await asyncio.sleep(delay)

    async def poll_once(self) -> bool:
        """Execute a single tick.

        Returns True if a new sample was stored for the current hour.
        Store errors propagate to the caller; feed errors are absorbed.
        """
        now = self._clock()
        hour = floor_to_hour(now)
        self._stats.ticks += 1
        self._stats.last_tick_at = now

        with structlog.contextvars.bound_contextvars(hour=hour):
            return await self._record_hour(hour)

    async def _record_hour(self, hour: int) -> bool:
        if await self._store.get(hour) is not None:
            self._stats.skipped_present += 1
            logger.debug("live_sample_already_present")
            return False

        try:
            price_cents = await self._feed.fetch_price()
        except FeedError as e:
            self._stats.failures += 1
            self._stats.last_error = str(e)
            logger.warning("live_feed_fetch_failed", error=str(e))
            return False

        inserted = await self._store.upsert_if_absent(hour, price_cents)
        if inserted:
            self._stats.inserted += 1
            logger.info("live_sample_inserted", price_cents=price_cents)
        else:
            self._stats.skipped_present += 1
            logger.debug("live_sample_already_present")
        return inserted
