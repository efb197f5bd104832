import csv
from typing import Iterable

from pqtool.outputs.base import OutputEncoder, Row
from pqtool.outputs.cells import render_text


class CsvEncoder(OutputEncoder):
    """
    Comma-separated rows, header first unless quiet.
    Nested values are rejected with the offending column named.
    """

    format_name = "csv"

    def __init__(self, stream, quiet: bool = False):
        super().__init__(stream, quiet)
        self._writer = csv.writer(stream, lineterminator="\n")

    def begin(self, columns):
        super().begin(columns)
        if not self.quiet:
            self._writer.writerow(self.columns)

    def write_rows(self, rows: Iterable[Row]) -> None:
        for row in rows:
            self._writer.writerow(
                [render_text(value, name, "csv") for name, value in zip(self.columns, row)]
            )
