from typing import Any, Iterator, List, Optional, Tuple

import pyarrow as pa


class Batch:
    """
    A decoded set of rows sharing one schema.

    Wraps a pyarrow RecordBatch so columnar consumers (aggregation, merge)
    stay vectorised, while row consumers iterate plain Python tuples in
    schema column order. Cells are None, int, float, bool, str or bytes;
    temporal, decimal and nested values keep their Python conversions.
    """

    __slots__ = ("data", "row_group")

    def __init__(self, data: pa.RecordBatch, row_group: Optional[int] = None):
        self.data = data
        self.row_group = row_group

    @property
    def column_names(self) -> List[str]:
        return list(self.data.schema.names)

    @property
    def schema(self) -> pa.Schema:
        return self.data.schema

    @property
    def num_rows(self) -> int:
        return self.data.num_rows

    def rows(self) -> Iterator[Tuple[Any, ...]]:
        columns = [column.to_pylist() for column in self.data.columns]
        if not columns:
            return iter([()] * self.num_rows)
        return zip(*columns)

    def slice(self, offset: int, length: Optional[int] = None) -> "Batch":
        return Batch(self.data.slice(offset, length), row_group=self.row_group)

    def __len__(self) -> int:
        return self.num_rows

    def __repr__(self) -> str:
        return f"Batch(rows={self.num_rows}, row_group={self.row_group})"
