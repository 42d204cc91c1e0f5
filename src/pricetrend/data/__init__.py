"""Series persistence layer.

Provides SQLite database management, the typed series store and the
one-shot historical bulk importer.
"""

from pricetrend.data.database import SeriesDatabase
from pricetrend.data.importer import BulkImporter
from pricetrend.data.store import SeriesStore

__all__ = [
    "BulkImporter",
    "SeriesDatabase",
    "SeriesStore",
]
