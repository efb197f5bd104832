from dataclasses import dataclass
from typing import List, Optional, Tuple

from pqtool.canonical.field import ColumnSpec


@dataclass(frozen=True)
class RowGroupRef:
    """
    Plans which row group to stream. Never holds decoded data.
    """
    path: str
    index: int
    num_rows: int


@dataclass(frozen=True)
class ChunkSummary:
    """
    Footer statistics of one column chunk, as far as the writer recorded them.
    """
    min_value: object = None
    max_value: object = None
    null_count: Optional[int] = None
    num_values: Optional[int] = None
    has_min_max: bool = False


@dataclass(frozen=True)
class LogicalFile:
    """
    Footer-level view of one Parquet file.
    Immutable, so it is shared read-only across workers.

    chunk_summaries holds, per row group, one entry per top-level
    column: a ChunkSummary, or None when the column is nested or the
    writer recorded no statistics.
    """
    path: str
    columns: Tuple[ColumnSpec, ...]
    row_group_rows: Tuple[int, ...]
    num_rows: int
    compression: str
    size_bytes: int

    created_by: Optional[str] = None
    format_version: Optional[str] = None
    num_leaf_columns: int = 0
    chunk_summaries: Tuple[Tuple[Optional[ChunkSummary], ...], ...] = ()

    @property
    def num_row_groups(self) -> int:
        return len(self.row_group_rows)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def row_group_total(self) -> int:
        return sum(self.row_group_rows)

    def row_groups(self) -> List[RowGroupRef]:
        return [
            RowGroupRef(path=self.path, index=i, num_rows=n)
            for i, n in enumerate(self.row_group_rows)
        ]

    def has_reliable_row_groups(self) -> bool:
        """
        True when row-group counts can be trusted to plan partial reads.
        """
        if self.num_row_groups == 0:
            return self.num_rows == 0
        return self.row_group_total == self.num_rows

    def column(self, name: str) -> Optional[ColumnSpec]:
        for col in self.columns:
            if col.name == name:
                return col
        return None
