from typing import Iterable, List, Optional, TextIO

from pqtool.outputs.base import OutputEncoder, Row
from pqtool.outputs.cells import render_text


class TableEncoder(OutputEncoder):
    """
    Bordered ASCII grid.

    Bounded input (head/tail samples, stats, schema, info) is buffered so
    widths fit every value. Unbounded input (query results) must not be
    buffered: the first batch fixes the widths and later, wider cells
    simply push their row past the grid lines.
    """

    format_name = "table"

    def __init__(
        self,
        stream: TextIO,
        quiet: bool = False,
        bounded: bool = True,
        null_text: str = "",
    ):
        super().__init__(stream, quiet)
        self.bounded = bounded
        self.null_text = null_text
        self._pending: List[List[str]] = []
        self._widths: Optional[List[int]] = None
        self._rows_written = 0

    def _render(self, row: Row) -> List[str]:
        cells = []
        for name, value in zip(self.columns, row):
            if value is None:
                text = self.null_text
            else:
                text = render_text(value, name, "table")
            cells.append(text.replace("\r", "\\r").replace("\n", "\\n"))
        return cells

    def _border(self, fill: str = "-") -> str:
        return "+" + "+".join(fill * (w + 2) for w in self._widths) + "+"

    def _line(self, cells: List[str]) -> str:
        parts = [f" {cell.ljust(width)} " for cell, width in zip(cells, self._widths)]
        return "|" + "|".join(parts) + "|"

    def _fix_widths(self, rows: List[List[str]]) -> None:
        widths = [0 if self.quiet else len(name) for name in self.columns]
        for cells in rows:
            for i, cell in enumerate(cells):
                widths[i] = max(widths[i], len(cell))
        self._widths = widths

        self.stream.write(self._border() + "\n")
        if not self.quiet:
            self.stream.write(self._line(self.columns) + "\n")
            self.stream.write(self._border("=") + "\n")

    def _emit(self, cells: List[str]) -> None:
        if self._rows_written:
            self.stream.write(self._border() + "\n")
        self.stream.write(self._line(cells) + "\n")
        self._rows_written += 1

    def write_rows(self, rows: Iterable[Row]) -> None:
        rendered = [self._render(row) for row in rows]

        if self.bounded or self._widths is None:
            self._pending.extend(rendered)
            if not self.bounded and self._pending:
                self._flush_pending()
            return

        for cells in rendered:
            self._emit(cells)

    def _flush_pending(self) -> None:
        if self._widths is None:
            self._fix_widths(self._pending)
        for cells in self._pending:
            self._emit(cells)
        self._pending = []

    def finish(self) -> None:
        if not self.columns:
            return
        if self._widths is None and not self._pending and self.quiet:
            return

        self._flush_pending()
        if self._rows_written:
            self.stream.write(self._border() + "\n")
