"""Shared test fixtures for the price trend service."""

import pytest
import pytest_asyncio

from pricetrend.config import AppSettings, HistorySettings, PollerSettings, QuerySettings, StoreSettings
from pricetrend.data.database import SeriesDatabase
from pricetrend.data.store import SeriesStore
from pricetrend.models import Sample


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings pointing at temporary paths, poller disabled."""
    return AppSettings(
        log_level="DEBUG",
        store=StoreSettings(db_path=str(tmp_path / "db" / "series.db")),
        history=HistorySettings(csv_path=str(tmp_path / "history.csv"), batch_size=3),
        poller=PollerSettings(enabled=False),
        query=QuerySettings(max_points=100),
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    """Connected SeriesDatabase backed by a fresh file under tmp_path."""
    db = SeriesDatabase(str(tmp_path / "series.db"))
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def store(database: SeriesDatabase) -> SeriesStore:
    return SeriesStore(database)


@pytest.fixture
def seed(store: SeriesStore):
    """Async helper inserting (ts, price_cents) pairs into the store."""

    async def _seed(samples: list[tuple[int, int]]) -> None:
        await store.insert_many_if_absent(
            Sample(ts=ts, price_cents=price) for ts, price in samples
        )

    return _seed
