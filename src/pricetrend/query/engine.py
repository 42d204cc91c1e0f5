"""Range query engine -- bounded, gap-tolerant views of the price series.

Given a closed range [begin, end] the engine returns an ordered sequence of
points that starts exactly at begin and ends exactly at end, whatever is
actually stored:

- boundaries without a stored sample are synthesized by linear
  interpolation against the nearest neighbour outside the range, or by
  constant extrapolation when there is no neighbour on that side;
- dense ranges are downsampled into equal-width time buckets, each bucket
  averaged to a single point, the two boundary points always kept;
- gaps strictly inside the range are left alone (the chart draws a line
  across them).

All arithmetic is integer: timestamps in seconds, prices in cents, averages
and interpolations floored.
"""

from collections.abc import Callable, Sequence

from pricetrend.data.store import SeriesStore
from pricetrend.exceptions import InvalidRangeError
from pricetrend.logging import get_logger
from pricetrend.models import Point, QueryStatus, RangeResult, Sample

logger = get_logger(__name__)

DEFAULT_MAX_POINTS = 100


def interpolate(left: Sample, right: Sample, x: int) -> int:
    """Linear interpolation of the price at x between two samples."""
    if right.ts == left.ts:
        return left.price_cents
    return left.price_cents + (right.price_cents - left.price_cents) * (
        x - left.ts
    ) // (right.ts - left.ts)


def boundary_value(inner: Sample, outer: Sample | None, x: int) -> int:
    """Price at boundary x given the nearest in-range sample and the
    nearest sample beyond the boundary (if any)."""
    if outer is None:
        return inner.price_cents
    if outer.ts < inner.ts:
        return interpolate(outer, inner, x)
    return interpolate(inner, outer, x)


def downsample(points: Sequence[Point], max_points: int) -> list[Point]:
    """Reduce points to at most max_points, keeping the first and last.

    Interior points are grouped into max_points - 2 equal-width time buckets
    spanning (first.x, last.x); every non-empty bucket becomes one point at
    the floored mean of its timestamps and prices. Bucket means of disjoint,
    ordered groups stay strictly increasing, so the output remains ordered.
    """
    if len(points) <= max_points:
        return list(points)

    first, last = points[0], points[-1]
    interior = points[1:-1]
    buckets = max_points - 2
    if buckets <= 0:
        return [first, last]

    span = last.x - first.x
    out = [first]
    current: int | None = None
    sum_x = sum_y = count = 0
    for point in interior:
        bucket = min((point.x - first.x) * buckets // span, buckets - 1)
        if bucket != current and count:
            out.append(Point(x=sum_x // count, y=sum_y // count))
            sum_x = sum_y = count = 0
        current = bucket
        sum_x += point.x
        sum_y += point.y
        count += 1
    if count:
        out.append(Point(x=sum_x // count, y=sum_y // count))
    out.append(last)
    return out


def clamp(points: Sequence[Point], begin: int, end: int) -> tuple[Point, ...]:
    return tuple(Point(x=min(max(p.x, begin), end), y=p.y) for p in points)


class RangeQueryEngine:
    """Computes range results from the series store.

    Args:
        store: The series store to read from.
        max_points: Display threshold; results never exceed this many points.
        import_finished: Optional callable reporting whether the bulk import
            has completed. While it returns False, an empty answer is reported
            as PENDING_IMPORT instead of NO_DATA.
    """

    def __init__(
        self,
        store: SeriesStore,
        max_points: int = DEFAULT_MAX_POINTS,
        import_finished: Callable[[], bool] | None = None,
    ) -> None:
        if max_points < 2:
            raise ValueError("max_points must be >= 2")
        self._store = store
        self._max_points = max_points
        self._import_finished = import_finished

    @property
    def max_points(self) -> int:
        return self._max_points

    async def query(self, begin: int, end: int) -> RangeResult:
        """Return points covering [begin, end].

        Raises:
            InvalidRangeError: begin > end (checked before any store access).
            StoreUnavailableError: the store failed; no partial result is returned.
        """
        if begin > end:
            raise InvalidRangeError(begin, end)

        samples = await self._store.scan(begin, end)

        if not samples:
            points = await self._bridge_empty_range(begin, end)
            if points is None:
                return RangeResult(begin=begin, end=end, status=self._empty_status())
        else:
            points = [Point(x=s.ts, y=s.price_cents) for s in samples]
            if samples[0].ts > begin:
                before = await self._store.nearest_at_or_before(begin)
                points.insert(0, Point(x=begin, y=boundary_value(samples[0], before, begin)))
            if samples[-1].ts < end:
                after = await self._store.nearest_at_or_after(end)
                points.append(Point(x=end, y=boundary_value(samples[-1], after, end)))
            points = downsample(points, self._max_points)

        if len(points) == 1:
            points = [points[0], points[0]]

        logger.debug(
            "range_query",
            begin=begin,
            end=end,
            in_range=len(samples),
            returned=len(points),
        )
        return RangeResult(
            begin=begin,
            end=end,
            status=QueryStatus.OK,
            points=clamp(points, begin, end),
        )

    async def _bridge_empty_range(self, begin: int, end: int) -> list[Point] | None:
        """Two boundary points for a range containing no samples, or None
        when nothing is stored on either side."""
        before = await self._store.nearest_at_or_before(begin)
        after = await self._store.nearest_at_or_after(end)

        if before is not None and after is not None:
            return [
                Point(x=begin, y=interpolate(before, after, begin)),
                Point(x=end, y=interpolate(before, after, end)),
            ]
        only = before or after
        if only is None:
            return None
        return [Point(x=begin, y=only.price_cents), Point(x=end, y=only.price_cents)]

    def _empty_status(self) -> QueryStatus:
        if self._import_finished is not None and not self._import_finished():
            return QueryStatus.PENDING_IMPORT
        return QueryStatus.NO_DATA
