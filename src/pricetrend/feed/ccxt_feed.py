"""Live price feed backed by a ccxt exchange ticker.

Defaults to Bitstamp's BTC/USD ticker, using the volume-weighted average
price over the last 24h as the hourly sample value.
"""

from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async

from pricetrend.config import FeedSettings
from pricetrend.exceptions import FeedError
from pricetrend.feed.client import PriceFeed
from pricetrend.logging import get_logger
from pricetrend.models import to_cents

logger = get_logger(__name__)


class CcxtPriceFeed(PriceFeed):
    """Concrete price feed using ccxt async."""

    def __init__(self, settings: FeedSettings) -> None:
        self._settings = settings

        exchange_class = getattr(ccxt_async, settings.exchange_id, None)
        if exchange_class is None:
            raise ValueError(f"unknown ccxt exchange id {settings.exchange_id!r}")

        self._exchange = exchange_class(
            {
                "enableRateLimit": True,
                "timeout": settings.timeout_ms,
            }
        )

    @property
    def exchange(self) -> ccxt_async.Exchange:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def fetch_price(self) -> int:
        """Fetch the ticker and return the configured price field in cents."""
        try:
            ticker = await self._exchange.fetch_ticker(self._settings.symbol)
        except ccxt_async.BaseError as e:
            raise FeedError(
                f"{self._settings.exchange_id} ticker {self._settings.symbol} failed: {e}"
            ) from e

        raw = ticker.get(self._settings.price_field)
        if raw is None:
            raw = ticker.get("last")
        if raw is None:
            raise FeedError(
                f"ticker has no {self._settings.price_field!r} or 'last' value"
            )

        try:
            price = Decimal(str(raw))
        except InvalidOperation:
            raise FeedError(f"non-numeric price {raw!r}") from None
        if not price.is_finite() or price < 0:
            raise FeedError(f"invalid price {raw!r}")

        logger.debug(
            "feed_price_fetched",
            exchange=self._settings.exchange_id,
            symbol=self._settings.symbol,
            price=str(price),
        )
        return to_cents(price)

    async def close(self) -> None:
        """Clean up ccxt async resources. Must be called to avoid unclosed session warnings."""
        await self._exchange.close()
        logger.info("feed_closed", exchange=self._settings.exchange_id)
