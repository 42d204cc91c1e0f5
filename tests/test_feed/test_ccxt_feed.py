"""Tests for CcxtPriceFeed.

All tests use a mocked ccxt exchange object to avoid real API calls.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import ccxt.async_support as ccxt_async
import pytest

from pricetrend.config import FeedSettings
from pricetrend.exceptions import FeedError
from pricetrend.feed.ccxt_feed import CcxtPriceFeed


@pytest.fixture
def mock_exchange() -> MagicMock:
    exchange = MagicMock()
    exchange.fetch_ticker = AsyncMock(
        return_value={"symbol": "BTC/USD", "last": 50123.45, "vwap": 50010.987}
    )
    exchange.close = AsyncMock()
    return exchange


@pytest.fixture
def feed(mock_exchange: MagicMock) -> CcxtPriceFeed:
    with patch.object(ccxt_async, "bitstamp", return_value=mock_exchange):
        return CcxtPriceFeed(FeedSettings())


class TestCcxtPriceFeed:

    def test_unknown_exchange_rejected(self) -> None:
        with pytest.raises(ValueError):
            CcxtPriceFeed(FeedSettings(exchange_id="not_an_exchange"))

    def test_exchange_configured_with_rate_limit(self, mock_exchange: MagicMock) -> None:
        with patch.object(ccxt_async, "bitstamp", return_value=mock_exchange) as factory:
            feed = CcxtPriceFeed(FeedSettings(timeout_ms=1234))
        assert feed.exchange is mock_exchange
        config = factory.call_args.args[0]
        assert config["enableRateLimit"] is True
        assert config["timeout"] == 1234

    @pytest.mark.asyncio
    async def test_vwap_in_cents(self, feed: CcxtPriceFeed, mock_exchange: MagicMock) -> None:
        assert await feed.fetch_price() == 5001098
        mock_exchange.fetch_ticker.assert_awaited_once_with("BTC/USD")

    @pytest.mark.asyncio
    async def test_falls_back_to_last(self, feed: CcxtPriceFeed, mock_exchange: MagicMock) -> None:
        mock_exchange.fetch_ticker.return_value = {"last": 100.5, "vwap": None}
        assert await feed.fetch_price() == 10050

    @pytest.mark.asyncio
    async def test_missing_price_raises(self, feed: CcxtPriceFeed, mock_exchange: MagicMock) -> None:
        mock_exchange.fetch_ticker.return_value = {"last": None, "vwap": None}
        with pytest.raises(FeedError):
            await feed.fetch_price()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["abc", -5, float("nan")])
    async def test_invalid_price_raises(
        self, feed: CcxtPriceFeed, mock_exchange: MagicMock, raw: object
    ) -> None:
        mock_exchange.fetch_ticker.return_value = {"vwap": raw}
        with pytest.raises(FeedError):
            await feed.fetch_price()

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self, feed: CcxtPriceFeed, mock_exchange: MagicMock) -> None:
        mock_exchange.fetch_ticker.side_effect = ccxt_async.NetworkError("timeout")
        with pytest.raises(FeedError):
            await feed.fetch_price()

    @pytest.mark.asyncio
    async def test_close(self, feed: CcxtPriceFeed, mock_exchange: MagicMock) -> None:
        await feed.close()
        mock_exchange.close.assert_awaited_once()
