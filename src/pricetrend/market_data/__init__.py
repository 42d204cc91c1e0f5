"""Live market data ingestion."""

from pricetrend.market_data.live_poller import LivePoller

__all__ = ["LivePoller"]
