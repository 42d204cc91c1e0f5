"""Entry point for the price trend service.

Wires all components together and serves the JSON API with uvicorn. The
bulk import, the live poller and the request handlers share a single
asyncio event loop; FastAPI's lifespan context manager owns startup and
shutdown.

Component wiring order (in _build_components):
1. SeriesDatabase (SQLite connection, opened in the lifespan)
2. SeriesStore (typed reads/writes)
3. BulkImporter (historical CSV backfill)
4. CcxtPriceFeed + LivePoller (hourly live samples)
5. RangeQueryEngine + QueryCache + QueryService (range queries)
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI

from pricetrend.api.app import create_app
from pricetrend.config import AppSettings
from pricetrend.data.database import SeriesDatabase
from pricetrend.data.importer import BulkImporter
from pricetrend.data.store import SeriesStore
from pricetrend.exceptions import HistoryFileError, StoreUnavailableError
from pricetrend.feed.ccxt_feed import CcxtPriceFeed
from pricetrend.logging import get_logger, setup_logging
from pricetrend.market_data.live_poller import LivePoller
from pricetrend.query.cache import QueryCache
from pricetrend.query.engine import RangeQueryEngine
from pricetrend.query.service import QueryService


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT open the database or start background tasks -- that
    happens in the lifespan.

    Returns:
        Dict mapping component names to instances.
    """
    database = SeriesDatabase(settings.store.db_path)
    store = SeriesStore(database)
    importer = BulkImporter(store, settings.history)

    feed = None
    poller = None
    if settings.poller.enabled:
        feed = CcxtPriceFeed(settings.feed)
        poller = LivePoller(
            store,
            feed,
            interval_seconds=settings.poller.interval_seconds,
            offset_seconds=settings.poller.offset_seconds,
        )

    engine = RangeQueryEngine(
        store,
        max_points=settings.query.max_points,
        import_finished=lambda: importer.is_finished,
    )
    query_service = QueryService(
        engine,
        QueryCache(settings.query.cache_max_entries),
        skip_open_hour=settings.query.cache_skip_open_hour,
        import_finished=lambda: importer.is_finished,
    )

    return {
        "database": database,
        "store": store,
        "importer": importer,
        "feed": feed,
        "poller": poller,
        "query_service": query_service,
    }


async def run_import(importer: BulkImporter) -> None:
    """Run the bulk import as a background task.

    Failures are logged rather than raised: the import is idempotent and
    re-runs on the next start, and queries keep working on what is stored.
    """
    logger = get_logger("pricetrend.main")
    try:
        await importer.run()
    except (HistoryFileError, StoreUnavailableError):
        logger.error("history_import_interrupted", exc_info=True)


async def _close_resources(components: dict[str, Any]) -> None:
    """Close the feed session and the database connection."""
    if components["feed"] is not None:
        await components["feed"].close()
    await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: opens the database, stores components on app.state, starts
    the bulk import and the live poller as background tasks. If startup
    fails the feed and the database are closed before the error propagates.

    On shutdown: stops the poller, cancels an unfinished import, closes the
    feed and the database.
    """
    logger = get_logger("pricetrend.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    database: SeriesDatabase = components["database"]
    importer: BulkImporter = components["importer"]
    poller: LivePoller | None = components["poller"]

    app.state.store = components["store"]
    app.state.importer = importer
    app.state.poller = poller
    app.state.query_service = components["query_service"]

    import_task = None
    try:
        await database.connect()

        if not settings.history.enabled:
            importer.mark_finished()
        elif not Path(settings.history.csv_path).is_file():
            # Without history and without stored samples there is nothing to serve
            status = await components["store"].status()
            if status.count == 0:
                raise HistoryFileError(
                    f"history file {settings.history.csv_path} not found and the series is empty"
                )
            logger.warning(
                "history_file_missing",
                path=settings.history.csv_path,
                existing_samples=status.count,
            )
            importer.mark_finished()
        else:
            import_task = asyncio.create_task(run_import(importer))

        if poller is not None:
            await poller.start()
    except Exception:
        await _close_resources(components)
        raise

    logger.info(
        "lifespan_started",
        db_path=database.db_path,
        history_enabled=settings.history.enabled,
        poller_enabled=poller is not None,
    )

    yield

    if poller is not None:
        await poller.stop()

    if import_task is not None:
        import_task.cancel()
        try:
            await import_task
        except asyncio.CancelledError:
            pass

    await _close_resources(components)
    logger.info("pricetrend_stopped")


async def run() -> None:
    """Run the price trend service."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("pricetrend.main")

    # 3. Build all components
    components = _build_components(settings)

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_pricetrend",
        host=settings.api.host,
        port=settings.api.port,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
