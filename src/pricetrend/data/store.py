"""Typed SQLite read/write abstraction for the price series.

Provides SeriesStore with typed methods for inserting and querying hourly
samples. All SQL is isolated behind this interface.

Writes are insert-if-absent: the first price stored for a timestamp wins,
so the bulk importer and the live poller can race on the same hour.
They share one connection, so each write holds a lock from its first
statement to its commit or rollback; a rolled-back batch never takes
another writer's uncommitted row with it.
"""

import asyncio
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from pricetrend.data.database import SeriesDatabase
from pricetrend.exceptions import StoreUnavailableError
from pricetrend.logging import get_logger
from pricetrend.models import Sample, SeriesStatus

logger = get_logger(__name__)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate sqlite/aiosqlite failures into StoreUnavailableError.

    aiosqlite raises ValueError when the underlying connection has gone away.
    """
    try:
        yield
    except (sqlite3.Error, ValueError) as e:
        logger.warning("series_store_error", operation=operation, error=str(e))
        raise StoreUnavailableError(f"{operation} failed: {e}") from e


def _check_price(price_cents: int) -> None:
    if price_cents < 0:
        raise ValueError(f"price must be >= 0, got {price_cents}")


class SeriesStore:
    """Async SQLite store for the hourly price series.

    Wraps SeriesDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with SeriesDatabase("data/pricetrend.db") as database:
            store = SeriesStore(database)
            inserted = await store.upsert_if_absent(1_600_000_000 // 3600 * 3600, 1_050_000)
    """

    def __init__(self, database: SeriesDatabase) -> None:
        self._database = database
        self._write_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def upsert_if_absent(self, ts: int, price_cents: int) -> bool:
        """Insert one sample unless the timestamp is already stored.

        Returns True if the row was inserted, False if it already existed.
        """
        _check_price(price_cents)
        db = self._database.db
        async with self._write_lock:
            with _store_errors("upsert_if_absent"):
                try:
                    cursor = await db.execute(
                        "INSERT OR IGNORE INTO price_history (ts, price_cents) VALUES (?, ?)",
                        (ts, price_cents),
                    )
                    await db.commit()
                except sqlite3.Error:
                    await db.rollback()
                    raise
        return cursor.rowcount == 1

    async def insert_many_if_absent(self, samples: Iterable[Sample]) -> int:
        """Insert a batch of samples in one transaction, ignoring existing timestamps.

        Returns the number of actually inserted rows (excludes ignored duplicates).
        """
        data = []
        for sample in samples:
            _check_price(sample.price_cents)
            data.append((sample.ts, sample.price_cents))
        if not data:
            return 0

        db = self._database.db
        async with self._write_lock:
            with _store_errors("insert_many_if_absent"):
                try:
                    cursor = await db.executemany(
                        "INSERT OR IGNORE INTO price_history (ts, price_cents) VALUES (?, ?)",
                        data,
                    )
                    await db.commit()
                except sqlite3.Error:
                    await db.rollback()
                    raise

        inserted = cursor.rowcount
        logger.debug("inserted_samples", total=len(data), inserted=inserted)
        return inserted

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get(self, ts: int) -> Sample | None:
        """Return the sample stored at exactly ts, or None."""
        return await self._fetch_one(
            "SELECT ts, price_cents FROM price_history WHERE ts = ?",
            (ts,),
            "get",
        )

    async def scan(self, begin: int, end: int) -> list[Sample]:
        """Return samples with begin <= ts <= end, ordered by ts ASC."""
        db = self._database.db
        with _store_errors("scan"):
            cursor = await db.execute(
                "SELECT ts, price_cents FROM price_history "
                "WHERE ts >= ? AND ts <= ? ORDER BY ts ASC",
                (begin, end),
            )
            rows = await cursor.fetchall()
        return [Sample(ts=row[0], price_cents=row[1]) for row in rows]

    async def nearest_at_or_before(self, ts: int) -> Sample | None:
        """Return the latest sample with timestamp <= ts."""
        return await self._fetch_one(
            "SELECT ts, price_cents FROM price_history "
            "WHERE ts <= ? ORDER BY ts DESC LIMIT 1",
            (ts,),
            "nearest_at_or_before",
        )

    async def nearest_at_or_after(self, ts: int) -> Sample | None:
        """Return the earliest sample with timestamp >= ts."""
        return await self._fetch_one(
            "SELECT ts, price_cents FROM price_history "
            "WHERE ts >= ? ORDER BY ts ASC LIMIT 1",
            (ts,),
            "nearest_at_or_after",
        )

    async def latest(self) -> Sample | None:
        """Return the most recent stored sample."""
        return await self._fetch_one(
            "SELECT ts, price_cents FROM price_history ORDER BY ts DESC LIMIT 1",
            (),
            "latest",
        )

    async def status(self) -> SeriesStatus:
        """Get aggregate series status for the status endpoint."""
        db = self._database.db
        with _store_errors("status"):
            cursor = await db.execute(
                "SELECT COUNT(*), MIN(ts), MAX(ts) FROM price_history"
            )
            row = await cursor.fetchone()
        assert row is not None
        return SeriesStatus(count=row[0], earliest=row[1], latest=row[2])

    async def _fetch_one(
        self, query: str, params: tuple, operation: str
    ) -> Sample | None:
        db = self._database.db
        with _store_errors(operation):
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
        if row is None:
            return None
        return Sample(ts=row[0], price_cents=row[1])
