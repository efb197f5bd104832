import json
from typing import Iterable

from pqtool.outputs.base import OutputEncoder, Row
from pqtool.outputs.cells import to_json_value


def row_to_object(columns, row: Row) -> dict:
    return {name: to_json_value(value) for name, value in zip(columns, row)}


class JsonEncoder(OutputEncoder):
    """
    One JSON array of row objects.

    Elements are written as they arrive; only the "first element yet?"
    flag is kept so the comma goes before every element but the first.
    """

    format_name = "json"

    def __init__(self, stream, quiet: bool = False):
        super().__init__(stream, quiet)
        self._first = True

    def begin(self, columns):
        super().begin(columns)
        self._first = True
        self.stream.write("[")

    def write_rows(self, rows: Iterable[Row]) -> None:
        for row in rows:
            self.stream.write("\n  " if self._first else ",\n  ")
            self.stream.write(json.dumps(row_to_object(self.columns, row), ensure_ascii=False))
            self._first = False

    def finish(self) -> None:
        self.stream.write("]\n" if self._first else "\n]\n")


class JsonlEncoder(OutputEncoder):
    """
    One JSON object per line, nothing buffered beyond the current row.
    """

    format_name = "jsonl"

    def write_rows(self, rows: Iterable[Row]) -> None:
        for row in rows:
            self.stream.write(json.dumps(row_to_object(self.columns, row), ensure_ascii=False))
            self.stream.write("\n")
