import os
from typing import Iterator, List, Optional, Tuple

import pyarrow as pa
import pyarrow.parquet as pq

from pqtool.canonical.batch import Batch
from pqtool.canonical.field import NESTED, ColumnSpec, map_arrow_type_to_kind
from pqtool.canonical.file import ChunkSummary, LogicalFile, RowGroupRef
from pqtool.input.format_detector import FormatDetector
from pqtool.observability.logger import get_logger
from pqtool.utils.exceptions import CorruptFooter, CorruptRowGroup

DEFAULT_BATCH_SIZE = 65536

logger = get_logger()


def simplify_parquet_error(message: str) -> str:
    """
    Turn pyarrow's error text into a short user-facing reason.
    """
    lowered = message.lower()

    if "magic" in lowered or "not a valid parquet" in lowered:
        return "File does not have valid Parquet magic bytes"

    if "eof" in lowered or "unexpected end" in lowered or "truncat" in lowered:
        return "File is truncated or incomplete"

    if "thrift" in lowered or "deserialize" in lowered:
        return "File metadata is corrupted"

    if "out of spec" in lowered or "out-of-spec" in lowered:
        return "File contains invalid or out-of-spec data"

    return " ".join(message.split())


def _leaf_count(arrow_type: pa.DataType) -> int:
    if pa.types.is_struct(arrow_type):
        return sum(_leaf_count(arrow_type.field(i).type) for i in range(arrow_type.num_fields))

    if pa.types.is_map(arrow_type):
        return _leaf_count(arrow_type.key_type) + _leaf_count(arrow_type.item_type)

    if (
        pa.types.is_list(arrow_type)
        or pa.types.is_large_list(arrow_type)
        or pa.types.is_fixed_size_list(arrow_type)
    ):
        return _leaf_count(arrow_type.value_type)

    return 1


def _is_flat(arrow_type: pa.DataType) -> bool:
    return map_arrow_type_to_kind(arrow_type) != NESTED


class ParquetAdapter:
    """
    File Metadata Probe.

    Responsibilities:
    - Confirm the magic bytes
    - Decode the footer (schema, row groups, codec, statistics)
    - Produce an immutable LogicalFile

    DOES NOT:
    - Read any row-group payload
    """

    def __init__(self, file_path: str):
        self.file_path = file_path

    def _build_columns(self, pf: pq.ParquetFile) -> Tuple[ColumnSpec, ...]:
        parquet_schema = pf.schema
        columns: List[ColumnSpec] = []
        leaf = 0

        for field in pf.schema_arrow:
            leaves = _leaf_count(field.type)

            if _is_flat(field.type) and leaves == 1:
                physical_type = parquet_schema.column(leaf).physical_type
                leaf_index = leaf
            else:
                physical_type = "GROUP"
                leaf_index = None

            columns.append(
                ColumnSpec(
                    name=field.name,
                    physical_type=physical_type,
                    logical_type=str(field.type),
                    nullable=field.nullable,
                    kind=map_arrow_type_to_kind(field.type),
                    leaf_index=leaf_index,
                )
            )
            leaf += leaves

        return tuple(columns)

    def _summarize_chunk(self, chunk) -> Optional[ChunkSummary]:
        stats = chunk.statistics
        if stats is None:
            return None

        has_min_max = bool(stats.has_min_max)
        return ChunkSummary(
            min_value=stats.min if has_min_max else None,
            max_value=stats.max if has_min_max else None,
            null_count=stats.null_count if stats.has_null_count else None,
            num_values=stats.num_values,
            has_min_max=has_min_max,
        )

    def _summarize_row_groups(self, metadata, columns) -> tuple:
        summaries = []
        for rg_idx in range(metadata.num_row_groups):
            rg = metadata.row_group(rg_idx)
            per_column = []
            for col in columns:
                if col.leaf_index is None or col.leaf_index >= rg.num_columns:
                    per_column.append(None)
                    continue
                per_column.append(self._summarize_chunk(rg.column(col.leaf_index)))
            summaries.append(tuple(per_column))
        return tuple(summaries)

    def parse(self) -> LogicalFile:
        FormatDetector(self.file_path).detect()

        try:
            size_bytes = os.path.getsize(self.file_path)
            with open(self.file_path, "rb") as fh:
                pf = pq.ParquetFile(fh)
                metadata = pf.metadata
                columns = self._build_columns(pf)

                row_group_rows = tuple(
                    metadata.row_group(i).num_rows
                    for i in range(metadata.num_row_groups)
                )

                compression = "N/A"
                if metadata.num_row_groups > 0 and metadata.row_group(0).num_columns > 0:
                    compression = str(metadata.row_group(0).column(0).compression)

                summaries = self._summarize_row_groups(metadata, columns)

                return LogicalFile(
                    path=self.file_path,
                    columns=columns,
                    row_group_rows=row_group_rows,
                    num_rows=metadata.num_rows,
                    compression=compression,
                    size_bytes=size_bytes,
                    created_by=metadata.created_by or "unknown",
                    format_version=str(metadata.format_version),
                    num_leaf_columns=metadata.num_columns,
                    chunk_summaries=summaries,
                )
        except (pa.ArrowException, OSError) as e:
            raise CorruptFooter(
                f"File appears corrupted: {self.file_path} ({simplify_parquet_error(str(e))})"
            ) from e


def probe(path: str) -> LogicalFile:
    return ParquetAdapter(path).parse()


def plan_tail_suffix(row_group_rows, n: int) -> int:
    """
    Index of the first row group of the shortest suffix holding at least n rows.

    Returns len(row_group_rows) for n == 0 (empty suffix) and 0 when the
    whole file holds fewer than n rows.
    """
    start = len(row_group_rows)
    covered = 0
    while start > 0 and covered < n:
        start -= 1
        covered += row_group_rows[start]
    return start


class RowGroupStreamer:
    """
    Row Group Streamer.

    Yields one Batch per row group, or several bounded slices of it when
    the group holds more than batch_size rows. Forward-only and not
    restartable: call stream() again to re-read. Closing the returned
    generator closes the file handle, which is how early consumers
    cancel further I/O. stream(columns=...) decodes only the named
    top-level columns.
    """

    def __init__(self, logical_file: LogicalFile, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.logical_file = logical_file
        self.batch_size = batch_size

    def stream(
        self,
        first: int = 0,
        last: Optional[int] = None,
        columns: Optional[List[str]] = None,
    ) -> Iterator[Batch]:
        lf = self.logical_file
        if last is None:
            last = lf.num_row_groups - 1
        if lf.num_row_groups == 0 or first > last:
            return

        if first < 0 or last >= lf.num_row_groups:
            raise IndexError(
                f"Row-group range {first}..{last} outside 0..{lf.num_row_groups - 1}"
            )

        with open(lf.path, "rb") as fh:
            pf = self._open(fh)
            for idx in range(first, last + 1):
                seen = 0
                for record_batch in self._iter_group(pf, idx, columns):
                    seen += record_batch.num_rows
                    yield Batch(record_batch, row_group=idx)

                if seen != lf.row_group_rows[idx]:
                    raise CorruptRowGroup(
                        f"Row group {idx} of {lf.path} decoded {seen} rows, "
                        f"footer declares {lf.row_group_rows[idx]}"
                    )

    def stream_all(self) -> Iterator[Batch]:
        """
        Full scan that does not rely on row-group counts from the footer.
        """
        lf = self.logical_file
        with open(lf.path, "rb") as fh:
            pf = self._open(fh)
            try:
                for record_batch in pf.iter_batches(batch_size=self.batch_size, use_threads=False):
                    yield Batch(record_batch)
            except pa.ArrowException as e:
                raise CorruptRowGroup(
                    f"File appears corrupted: {lf.path} ({simplify_parquet_error(str(e))})"
                ) from e

    def stream_tail(self, n: int) -> Iterator[Batch]:
        """
        Stream only the minimal suffix of row groups that covers the last n rows.

        Falls back to a full scan when the footer's row-group counts are
        missing or inconsistent with its total.
        """
        lf = self.logical_file
        if not lf.has_reliable_row_groups():
            logger.warning(
                "Row-group metadata of %s is unreliable, tail falls back to a full scan",
                lf.path,
            )
            return self.stream_all()

        plan = self.plan_tail(n)
        if not plan:
            return iter(())

        logger.debug(
            "tail(%d) on %s streams row groups %d..%d",
            n, lf.path, plan[0].index, plan[-1].index,
        )
        return self.stream(plan[0].index, plan[-1].index)

    def plan_tail(self, n: int) -> List[RowGroupRef]:
        lf = self.logical_file
        return lf.row_groups()[plan_tail_suffix(lf.row_group_rows, n):]

    def _open(self, fh) -> pq.ParquetFile:
        try:
            return pq.ParquetFile(fh)
        except pa.ArrowException as e:
            raise CorruptFooter(
                f"File appears corrupted: {self.logical_file.path} "
                f"({simplify_parquet_error(str(e))})"
            ) from e

    def _iter_group(self, pf: pq.ParquetFile, idx: int, columns: Optional[List[str]] = None):
        try:
            for record_batch in pf.iter_batches(
                batch_size=self.batch_size, row_groups=[idx], columns=columns, use_threads=False
            ):
                yield record_batch
        except pa.ArrowException as e:
            raise CorruptRowGroup(
                f"Row group {idx} of {self.logical_file.path} is unreadable "
                f"({simplify_parquet_error(str(e))})"
            ) from e
