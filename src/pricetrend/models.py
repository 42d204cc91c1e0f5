"""Shared data models for the price series.

Prices are integer minor currency units (cents) everywhere inside the
service. Conversion from decimal major units happens once, at ingestion.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from enum import Enum

HOUR_SECONDS = 3600


def floor_to_hour(ts: float) -> int:
    """Return the hour-aligned timestamp at or before ts."""
    return int(ts // HOUR_SECONDS) * HOUR_SECONDS


def is_hour_aligned(ts: int) -> bool:
    """True if ts is an exact multiple of one hour."""
    return ts % HOUR_SECONDS == 0


def to_cents(amount: Decimal) -> int:
    """Convert a decimal amount in major units to whole cents, truncating."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_DOWN))


@dataclass(frozen=True)
class Sample:
    """One stored hourly observation."""

    ts: int
    price_cents: int


@dataclass(frozen=True)
class Point:
    """One (x, y) pair returned by a range query; may be synthesized."""

    x: int
    y: int

    def as_pair(self) -> list[int]:
        return [self.x, self.y]


class QueryStatus(str, Enum):
    """Outcome of a range query."""

    OK = "ok"
    NO_DATA = "no_data"  # nothing stored that can inform the range
    PENDING_IMPORT = "pending_import"  # as NO_DATA, but the bulk import is still running


@dataclass(frozen=True)
class RangeResult:
    """Points covering [begin, end].

    Results with a status other than OK carry no points, so an empty series
    can never be mistaken for a flat one.
    """

    begin: int
    end: int
    status: QueryStatus
    points: tuple[Point, ...] = ()

    @property
    def has_data(self) -> bool:
        return self.status is QueryStatus.OK

    def to_dict(self) -> dict:
        return {
            "begin": self.begin,
            "end": self.end,
            "status": self.status.value,
            "points": [p.as_pair() for p in self.points],
        }


@dataclass
class ImportStats:
    """Counters from one bulk import run."""

    rows_read: int = 0
    inserted: int = 0
    skipped_existing: int = 0
    skipped_malformed: int = 0


@dataclass(frozen=True)
class SeriesStatus:
    """Aggregate view of the stored series."""

    count: int
    earliest: int | None
    latest: int | None


@dataclass
class PollerStats:
    """Counters maintained by the live poller."""

    ticks: int = 0
    inserted: int = 0
    skipped_present: int = 0
    failures: int = 0
    last_tick_at: float | None = None
    last_error: str | None = None
