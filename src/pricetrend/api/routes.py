"""JSON API endpoints for the price chart: range queries and series status."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pricetrend.exceptions import InvalidRangeError, StoreUnavailableError
from pricetrend.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

RETRY_AFTER_SECONDS = 5


def _store_unavailable(e: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(
        content={"error": f"Database error: {e}", "retryable": True},
        status_code=503,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


@router.get("/prices/{begin}/{end}")
async def get_prices(request: Request, begin: int, end: int) -> JSONResponse:
    """Points covering [begin, end] as [[timestamp, price_cents], ...]."""
    query_service = request.app.state.query_service
    try:
        result = await query_service.query(begin, end)
    except InvalidRangeError as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)
    except StoreUnavailableError as e:
        logger.warning("prices_query_failed", begin=begin, end=end, error=str(e))
        return _store_unavailable(e)

    return JSONResponse(content=result.to_dict())


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Series coverage plus importer, poller and cache state."""
    store = request.app.state.store
    importer = request.app.state.importer
    poller = getattr(request.app.state, "poller", None)
    query_service = request.app.state.query_service

    try:
        series = await store.status()
    except StoreUnavailableError as e:
        return _store_unavailable(e)

    cache = query_service.cache
    result = {
        "series": asdict(series),
        "import": {
            "finished": importer.is_finished,
            **asdict(importer.stats),
        },
        "poller": asdict(poller.stats) if poller is not None else None,
        "cache": {
            "entries": len(cache),
            "hits": cache.hits,
            "misses": cache.misses,
        },
    }
    return JSONResponse(content=result)
