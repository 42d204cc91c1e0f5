"""One-shot bulk import of the pre-reduced historical price file.

The file is a CSV with a header row followed by `timestamp,price` rows in
ascending order, one per hour, with the price in major currency units
(e.g. `1325318400,4.39`). Bad rows are logged and skipped; a single bad row
never aborts the import. Rows already stored are skipped as well, so the
import can be re-run after a partial load or a restart.
"""

import asyncio
import csv
import time
from collections.abc import Iterator
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pricetrend.config import HistorySettings
from pricetrend.data.store import SeriesStore
from pricetrend.exceptions import HistoryFileError, MalformedRowError
from pricetrend.logging import get_logger
from pricetrend.models import ImportStats, Sample, is_hour_aligned, to_cents

logger = get_logger(__name__)


def parse_row(row: list[str], prev_ts: int | None) -> Sample:
    """Turn one CSV row into a Sample.

    Args:
        row: The split CSV fields.
        prev_ts: Timestamp field of the previous row in the file, whether
            or not that row was accepted.

    Raises:
        MalformedRowError: The row is not a valid, in-order hourly sample.
    """
    if len(row) != 2:
        raise MalformedRowError(f"expected 2 fields, got {len(row)}")

    raw_ts, raw_price = (field.strip() for field in row)
    try:
        ts = int(raw_ts)
    except ValueError:
        raise MalformedRowError(f"non-numeric timestamp {raw_ts!r}") from None
    try:
        price = Decimal(raw_price)
    except InvalidOperation:
        raise MalformedRowError(f"non-numeric price {raw_price!r}") from None

    if not price.is_finite():
        raise MalformedRowError(f"non-finite price {raw_price!r}")
    if price < 0:
        raise MalformedRowError(f"negative price {raw_price!r}")
    if not is_hour_aligned(ts):
        raise MalformedRowError(f"timestamp {ts} is not hour-aligned")
    if prev_ts is not None and ts <= prev_ts:
        raise MalformedRowError(f"timestamp {ts} not after previous {prev_ts}")

    return Sample(ts=ts, price_cents=to_cents(price))


def _row_timestamp(row: list[str], default: int | None) -> int | None:
    """Timestamp field of a rejected row, or default if it has none."""
    if not row:
        return default
    try:
        return int(row[0].strip())
    except ValueError:
        return default


class BulkImporter:
    """Loads the historical CSV into the series store.

    The `finished` event is set when a run ends, whether it succeeded or
    not, so the query side can tell "not imported yet" apart from "no data".

    Usage:
        importer = BulkImporter(store, settings.history)
        stats = await importer.run()
    """

    def __init__(self, store: SeriesStore, settings: HistorySettings) -> None:
        self._store = store
        self._settings = settings
        self._finished = asyncio.Event()
        self._stats = ImportStats()

    @property
    def finished(self) -> asyncio.Event:
        return self._finished

    @property
    def is_finished(self) -> bool:
        return self._finished.is_set()

    @property
    def stats(self) -> ImportStats:
        return self._stats

    async def wait_finished(self) -> ImportStats:
        """Block until the current run has ended."""
        await self._finished.wait()
        return self._stats

    def mark_finished(self) -> None:
        """Signal completion without importing (import disabled or skipped)."""
        self._finished.set()

    async def run(self) -> ImportStats:
        """Import the configured CSV file.

        Raises:
            HistoryFileError: The file is missing or unreadable.
            StoreUnavailableError: The store failed mid-import; rows written so
                far stay written and a re-run picks up the rest.
        """
        path = Path(self._settings.csv_path)
        self._finished.clear()
        self._stats = ImportStats()
        start_time = time.monotonic()
        logger.info("history_import_started", path=str(path))

        try:
            batch: list[Sample] = []
            for sample in self._iter_samples(path):
                batch.append(sample)
                if len(batch) >= self._settings.batch_size:
                    await self._flush(batch)
                    batch = []
                    # Let the poller and request handlers run between batches
                    await asyncio.sleep(0)
            await self._flush(batch)
        finally:
            self._finished.set()

        logger.info(
            "history_import_complete",
            rows_read=self._stats.rows_read,
            inserted=self._stats.inserted,
            skipped_existing=self._stats.skipped_existing,
            skipped_malformed=self._stats.skipped_malformed,
            duration_seconds=round(time.monotonic() - start_time, 1),
        )
        return self._stats

    async def _flush(self, batch: list[Sample]) -> None:
        if not batch:
            return
        inserted = await self._store.insert_many_if_absent(batch)
        self._stats.inserted += inserted
        self._stats.skipped_existing += len(batch) - inserted

    def _iter_samples(self, path: Path) -> Iterator[Sample]:
        """Yield valid samples from the file, logging and skipping bad rows."""
        try:
            handle = path.open(newline="", encoding="utf-8")
        except OSError as e:
            raise HistoryFileError(f"cannot open history file {path}: {e}") from e

        prev_ts: int | None = None
        with handle:
            reader = csv.reader(handle)
            try:
                next(reader, None)  # header
                for row in reader:
                    if not row:
                        continue
                    self._stats.rows_read += 1
                    try:
                        sample = parse_row(row, prev_ts)
                    except MalformedRowError as e:
                        prev_ts = _row_timestamp(row, prev_ts)
                        self._stats.skipped_malformed += 1
                        logger.warning(
                            "history_row_malformed",
                            line=reader.line_num,
                            reason=str(e),
                        )
                        continue
                    prev_ts = sample.ts
                    yield sample
            except (OSError, UnicodeDecodeError, csv.Error) as e:
                raise HistoryFileError(
                    f"error reading {path} near line {reader.line_num}: {e}"
                ) from e
