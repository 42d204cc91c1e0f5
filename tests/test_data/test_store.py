"""Tests for SeriesDatabase and SeriesStore.

All tests run against a real SQLite file under pytest's tmp_path.
"""

import asyncio
import sqlite3
from unittest.mock import patch

import pytest

from pricetrend.data.database import SeriesDatabase
from pricetrend.data.store import SeriesStore
from pricetrend.exceptions import StoreUnavailableError
from pricetrend.models import Sample, SeriesStatus

HOUR = 3600


class TestSeriesDatabase:
    """Connection lifecycle and schema creation."""

    @pytest.mark.asyncio
    async def test_connect_creates_parent_dir_and_schema(self, tmp_path) -> None:
        path = tmp_path / "nested" / "dir" / "series.db"
        async with SeriesDatabase(str(path)) as db:
            cursor = await db.db.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            )
            tables = [row[0] for row in await cursor.fetchall()]
        assert path.exists()
        assert "price_history" in tables
        assert "schema_version" in tables

    @pytest.mark.asyncio
    async def test_db_property_raises_when_not_connected(self, tmp_path) -> None:
        db = SeriesDatabase(str(tmp_path / "series.db"))
        with pytest.raises(StoreUnavailableError):
            _ = db.db

    @pytest.mark.asyncio
    async def test_reconnect_keeps_rows(self, tmp_path) -> None:
        path = str(tmp_path / "series.db")
        async with SeriesDatabase(path) as db:
            await SeriesStore(db).upsert_if_absent(HOUR, 100)
        async with SeriesDatabase(path) as db:
            assert await SeriesStore(db).get(HOUR) == Sample(HOUR, 100)


class TestUpsertIfAbsent:

    @pytest.mark.asyncio
    async def test_insert_new_returns_true(self, store: SeriesStore) -> None:
        assert await store.upsert_if_absent(HOUR, 1234) is True
        assert await store.get(HOUR) == Sample(ts=HOUR, price_cents=1234)

    @pytest.mark.asyncio
    async def test_first_write_wins(self, store: SeriesStore) -> None:
        assert await store.upsert_if_absent(HOUR, 1234) is True
        assert await store.upsert_if_absent(HOUR, 9999) is False
        assert (await store.get(HOUR)).price_cents == 1234
        assert (await store.status()).count == 1

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, store: SeriesStore) -> None:
        with pytest.raises(ValueError):
            await store.upsert_if_absent(HOUR, -1)
        assert await store.get(HOUR) is None

    @pytest.mark.asyncio
    async def test_concurrent_writers_same_hour(self, store: SeriesStore) -> None:
        results = await asyncio.gather(
            *(store.upsert_if_absent(HOUR, price) for price in range(100, 110))
        )
        assert results.count(True) == 1
        assert (await store.status()).count == 1


class TestInsertMany:

    @pytest.mark.asyncio
    async def test_counts_only_new_rows(self, store: SeriesStore) -> None:
        await store.upsert_if_absent(2 * HOUR, 500)
        inserted = await store.insert_many_if_absent(
            [Sample(HOUR, 100), Sample(2 * HOUR, 200), Sample(3 * HOUR, 300)]
        )
        assert inserted == 2
        assert (await store.get(2 * HOUR)).price_cents == 500

    @pytest.mark.asyncio
    async def test_empty_batch(self, store: SeriesStore) -> None:
        assert await store.insert_many_if_absent([]) == 0

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_interleave_with_single_write(
        self, database: SeriesDatabase, store: SeriesStore
    ) -> None:
        events: list[str] = []
        real_execute = database.db.execute

        async def failing_executemany(*args, **kwargs):
            events.append("batch_started")
            await asyncio.sleep(0.05)
            events.append("batch_failed")
            raise sqlite3.OperationalError("disk I/O error")

        async def recording_execute(*args, **kwargs):
            events.append("execute")
            return await real_execute(*args, **kwargs)

        with (
            patch.object(database.db, "executemany", new=failing_executemany),
            patch.object(database.db, "execute", new=recording_execute),
        ):
            batch = asyncio.create_task(store.insert_many_if_absent([Sample(HOUR, 100)]))
            await asyncio.sleep(0)
            single = asyncio.create_task(store.upsert_if_absent(2 * HOUR, 200))
            results = await asyncio.gather(batch, single, return_exceptions=True)

        assert isinstance(results[0], StoreUnavailableError)
        assert results[1] is True
        assert events == ["batch_started", "batch_failed", "execute"]
        assert (await store.get(2 * HOUR)).price_cents == 200
        assert await store.get(HOUR) is None

    @pytest.mark.asyncio
    async def test_interleaving_order_does_not_matter(self, tmp_path) -> None:
        """Importer rows and poller writes on disjoint hours commute."""
        history = [Sample(h * HOUR, h * 10) for h in range(1, 7)]
        live = [Sample(h * HOUR, h * 10) for h in range(7, 10)]

        async def final_series(path: str, order: str) -> list[Sample]:
            async with SeriesDatabase(path) as db:
                store = SeriesStore(db)
                if order == "import_first":
                    await store.insert_many_if_absent(history)
                    for s in live:
                        await store.upsert_if_absent(s.ts, s.price_cents)
                else:
                    for s in reversed(live):
                        await store.upsert_if_absent(s.ts, s.price_cents)
                    await store.insert_many_if_absent(reversed(history[3:]))
                    await store.insert_many_if_absent(history[:3])
                return await store.scan(0, 100 * HOUR)

        a = await final_series(str(tmp_path / "a.db"), "import_first")
        b = await final_series(str(tmp_path / "b.db"), "live_first")
        assert a == b == history + live


class TestReads:

    @pytest.mark.asyncio
    async def test_scan_is_inclusive_and_ordered(self, store: SeriesStore, seed) -> None:
        await seed([(3 * HOUR, 30), (HOUR, 10), (2 * HOUR, 20), (5 * HOUR, 50)])
        result = await store.scan(HOUR, 3 * HOUR)
        assert [s.ts for s in result] == [HOUR, 2 * HOUR, 3 * HOUR]

    @pytest.mark.asyncio
    async def test_scan_unaligned_bounds(self, store: SeriesStore, seed) -> None:
        await seed([(HOUR, 10), (2 * HOUR, 20)])
        assert await store.scan(HOUR + 1, 2 * HOUR - 1) == []

    @pytest.mark.asyncio
    async def test_nearest_neighbours(self, store: SeriesStore, seed) -> None:
        await seed([(HOUR, 10), (4 * HOUR, 40)])
        assert (await store.nearest_at_or_before(3 * HOUR)).ts == HOUR
        assert (await store.nearest_at_or_before(4 * HOUR)).ts == 4 * HOUR
        assert (await store.nearest_at_or_after(2 * HOUR)).ts == 4 * HOUR
        assert (await store.nearest_at_or_after(HOUR)).ts == HOUR
        assert await store.nearest_at_or_before(HOUR - 1) is None
        assert await store.nearest_at_or_after(4 * HOUR + 1) is None

    @pytest.mark.asyncio
    async def test_status_and_latest(self, store: SeriesStore, seed) -> None:
        assert await store.status() == SeriesStatus(count=0, earliest=None, latest=None)
        assert await store.latest() is None
        await seed([(HOUR, 10), (4 * HOUR, 40)])
        assert await store.status() == SeriesStatus(count=2, earliest=HOUR, latest=4 * HOUR)
        assert await store.latest() == Sample(4 * HOUR, 40)


class TestUnavailable:
    """Store failures surface as StoreUnavailableError."""

    @pytest.mark.asyncio
    async def test_closed_database(self, tmp_path) -> None:
        db = SeriesDatabase(str(tmp_path / "series.db"))
        await db.connect()
        store = SeriesStore(db)
        await db.close()

        with pytest.raises(StoreUnavailableError):
            await store.scan(0, HOUR)
        with pytest.raises(StoreUnavailableError):
            await store.upsert_if_absent(HOUR, 1)

    @pytest.mark.asyncio
    async def test_sqlite_error_is_translated(self, database: SeriesDatabase) -> None:
        await database.db.execute("DROP TABLE price_history")
        store = SeriesStore(database)
        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get(HOUR)
        assert exc_info.value.retryable is True
