"""Custom exceptions for the price trend service.

Ingestion-side errors (malformed rows, feed failures) are recovered where
they are raised; query-side errors propagate to the transport layer.
"""


class PriceTrendError(Exception):
    """Base exception for all price trend errors."""

    retryable: bool = False


class StoreUnavailableError(PriceTrendError):
    """Raised when the series database cannot be reached or a statement fails.

    Callers may retry the same operation later.
    """

    retryable = True


class InvalidRangeError(PriceTrendError):
    """Raised when a range query has begin > end."""

    def __init__(self, begin: int, end: int) -> None:
        super().__init__(f"begin ({begin}) must be <= end ({end})")
        self.begin = begin
        self.end = end


class MalformedRowError(PriceTrendError):
    """Raised when a historical CSV row cannot be turned into a sample."""


class HistoryFileError(PriceTrendError):
    """Raised when the historical CSV file is missing or unreadable."""


class FeedError(PriceTrendError):
    """Raised when the live price feed is unreachable or returns invalid data."""
