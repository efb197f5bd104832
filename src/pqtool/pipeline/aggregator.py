import math
from dataclasses import dataclass
from functools import reduce
from typing import Any, Iterable, List, Optional, Sequence

import pyarrow as pa
import pyarrow.compute as pc

from pqtool.adapters.parquet_adapter import DEFAULT_BATCH_SIZE, RowGroupStreamer
from pqtool.canonical.batch import Batch
from pqtool.canonical.field import NESTED
from pqtool.canonical.file import LogicalFile
from pqtool.observability.logger import get_logger
from pqtool.utils.exceptions import CorruptFooter

logger = get_logger()

SOURCE_AUTO = "auto"
SOURCE_FOOTER = "footer"
SOURCE_SCAN = "scan"
STATS_SOURCES = (SOURCE_AUTO, SOURCE_FOOTER, SOURCE_SCAN)


def _lesser(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    return b if b < a else a


def _greater(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    return b if b > a else a


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


@dataclass(frozen=True)
class ColumnStat:
    """
    Running statistics for one column.

    combine() is commutative and associative, so partials from batches,
    row groups and files reduce to the same result in any order. Nulls
    never reach min/max; a column with no non-null value keeps both None.
    """
    min: Any = None
    max: Any = None
    null_count: int = 0
    value_count: int = 0

    def combine(self, other: "ColumnStat") -> "ColumnStat":
        return ColumnStat(
            min=_lesser(self.min, other.min),
            max=_greater(self.max, other.max),
            null_count=self.null_count + other.null_count,
            value_count=self.value_count + other.value_count,
        )


def combine_all(stats: Iterable[ColumnStat]) -> ColumnStat:
    return reduce(ColumnStat.combine, stats, ColumnStat())


def combine_columns(partials: Iterable[Sequence[ColumnStat]], width: int) -> List[ColumnStat]:
    """
    Fold per-column partial lists (one list per batch, group or file) into one list.
    """
    merged = [ColumnStat() for _ in range(width)]
    for partial in partials:
        merged = [acc.combine(p) for acc, p in zip(merged, partial)]
    return merged


def _min_max(column: pa.Array):
    if pa.types.is_dictionary(column.type):
        column = column.dictionary_decode()

    if pa.types.is_floating(column.type):
        # NaN has no ordering, so it never becomes a bound
        column = column.filter(pc.invert(pc.is_nan(column)))

    if column.null_count == len(column):
        return None, None

    try:
        result = pc.min_max(column)
    except (pa.ArrowNotImplementedError, pa.ArrowTypeError):
        # Nested and other unordered types carry counts only
        return None, None

    return result["min"].as_py(), result["max"].as_py()


def batch_stats(batch: Batch) -> List[ColumnStat]:
    """
    Partial statistics of a single batch, one entry per column.
    """
    stats = []
    for column in batch.data.columns:
        low, high = _min_max(column)
        nulls = column.null_count
        stats.append(
            ColumnStat(
                min=low,
                max=high,
                null_count=nulls,
                value_count=len(column) - nulls,
            )
        )
    return stats


class ColumnAggregator:
    """
    Folds a batch stream into one ColumnStat per schema column.
    """

    def __init__(self, width: int):
        self.width = width

    def aggregate(self, batches: Iterable[Batch]) -> List[ColumnStat]:
        return combine_columns((batch_stats(b) for b in batches), self.width)


def footer_stats(logical_file: LogicalFile) -> Optional[List[Optional[ColumnStat]]]:
    """
    Column statistics from footer summaries alone.

    Nested columns have no top-level chunk summary and come back as None.
    Returns None when a flat column lacks the summaries needed to be exact.
    """
    nested = [col.kind == NESTED for col in logical_file.columns]
    merged: List[Optional[ColumnStat]] = [None if n else ColumnStat() for n in nested]

    for rg_idx, rows in enumerate(logical_file.row_group_rows):
        if rg_idx >= len(logical_file.chunk_summaries):
            return None

        for i, summary in enumerate(logical_file.chunk_summaries[rg_idx]):
            if nested[i]:
                continue
            if summary is None or summary.null_count is None:
                return None

            values = rows - summary.null_count
            if values > 0 and (
                not summary.has_min_max
                or _is_nan(summary.min_value)
                or _is_nan(summary.max_value)
            ):
                return None

            merged[i] = merged[i].combine(
                ColumnStat(
                    min=summary.min_value if values > 0 else None,
                    max=summary.max_value if values > 0 else None,
                    null_count=summary.null_count,
                    value_count=values,
                )
            )

    return merged


def _scan_missing(
    logical_file: LogicalFile,
    stats: List[Optional[ColumnStat]],
    batch_size: int,
) -> List[ColumnStat]:
    missing = [i for i, stat in enumerate(stats) if stat is None]
    if not missing:
        return stats

    names = [logical_file.columns[i].name for i in missing]
    logger.debug("Scanning nested columns %s of %s", names, logical_file.path)

    streamer = RowGroupStreamer(logical_file, batch_size=batch_size)
    scanned = ColumnAggregator(len(names)).aggregate(streamer.stream(columns=names))

    filled = list(stats)
    for i, stat in zip(missing, scanned):
        filled[i] = stat
    return filled


def file_column_stats(
    logical_file: LogicalFile,
    source: str = SOURCE_AUTO,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> List[ColumnStat]:
    """
    Flat columns come from the footer unless source is "scan" or the
    footer is incomplete; nested columns are always decoded, alone.
    """
    if source not in STATS_SOURCES:
        raise ValueError(f"Unknown stats source: {source}")

    if source != SOURCE_SCAN and logical_file.has_reliable_row_groups():
        stats = footer_stats(logical_file)
        if stats is not None:
            return _scan_missing(logical_file, stats, batch_size)

    if source == SOURCE_FOOTER:
        raise CorruptFooter(
            f"Footer of {logical_file.path} lacks complete column statistics"
        )

    logger.debug("Scanning %s for column statistics", logical_file.path)
    streamer = RowGroupStreamer(logical_file, batch_size=batch_size)
    aggregator = ColumnAggregator(len(logical_file.columns))
    if logical_file.has_reliable_row_groups():
        return aggregator.aggregate(streamer.stream())
    return aggregator.aggregate(streamer.stream_all())
