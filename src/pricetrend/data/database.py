"""Async SQLite database manager for the price series.

Uses aiosqlite for non-blocking database operations with WAL mode
so the HTTP readers are not blocked by the importer and poller writes.
"""

import os
from typing import Self

import aiosqlite

from pricetrend.exceptions import StoreUnavailableError
from pricetrend.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

# INTEGER PRIMARY KEY aliases the rowid, so range scans walk the table b-tree
# in timestamp order without a separate index.
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS price_history (
    ts INTEGER PRIMARY KEY,
    price_cents INTEGER NOT NULL CHECK (price_cents >= 0)
);
"""


class SeriesDatabase:
    """Async SQLite connection manager for the price series.

    Manages database lifecycle including schema creation, WAL mode
    configuration, and clean resource cleanup.

    Usage:
        # Context manager (recommended)
        async with SeriesDatabase("/path/to/db") as db:
            await db.db.execute("SELECT ...")

        # Manual lifecycle
        db = SeriesDatabase("/path/to/db")
        await db.connect()
        try:
            await db.db.execute("SELECT ...")
        finally:
            await db.close()
    """

    def __init__(self, db_path: str = "data/pricetrend.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises StoreUnavailableError if not connected.
        """
        if self._connection is None:
            raise StoreUnavailableError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        Raises StoreUnavailableError if the file cannot be opened.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        try:
            self._connection = await aiosqlite.connect(self._db_path)
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._create_tables()
            await self._ensure_schema_version()
        except aiosqlite.Error as e:
            await self.close()
            raise StoreUnavailableError(f"cannot open {self._db_path}: {e}") from e

        logger.info("series_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("series_db_closed", db_path=self._db_path)

    async def _create_tables(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()

    async def _ensure_schema_version(self) -> None:
        """Insert schema version if not already set."""
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
