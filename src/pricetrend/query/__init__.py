"""Range queries over the price series: engine, cache and service."""

from pricetrend.query.cache import QueryCache
from pricetrend.query.engine import RangeQueryEngine
from pricetrend.query.service import QueryService

__all__ = [
    "QueryCache",
    "QueryService",
    "RangeQueryEngine",
]
