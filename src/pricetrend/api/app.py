"""FastAPI application factory for the price trend API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from pricetrend.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application. Route handlers expect `store`,
        `importer`, `query_service` and optionally `poller` on app.state.
    """
    app = FastAPI(
        title="Price Trend",
        lifespan=lifespan,
    )
    app.include_router(routes.router, prefix="/api")
    return app
