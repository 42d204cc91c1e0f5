"""Live price sources for the poller."""

from pricetrend.feed.ccxt_feed import CcxtPriceFeed
from pricetrend.feed.client import PriceFeed

__all__ = [
    "CcxtPriceFeed",
    "PriceFeed",
]
