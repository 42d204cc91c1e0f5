"""Abstract live price feed interface.

The live poller depends only on this interface, keeping exchange-specific
details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod


class PriceFeed(ABC):
    """Abstract base class for live price sources."""

    @abstractmethod
    async def fetch_price(self) -> int:
        """Return the current price in cents.

        Raises FeedError when the source is unreachable or the value is invalid.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any network resources held by the feed."""
        ...
