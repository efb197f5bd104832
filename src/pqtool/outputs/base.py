from typing import Any, Iterable, List, TextIO, Tuple

from pqtool.canonical.batch import Batch

Row = Tuple[Any, ...]


class OutputEncoder:
    """
    Writes a row stream to a text destination incrementally.

    Lifecycle: begin(columns) once, write_rows(...) any number of times,
    finish() once. Each call to write_rows is treated as one batch.
    """

    format_name = ""

    def __init__(self, stream: TextIO, quiet: bool = False):
        self.stream = stream
        self.quiet = quiet
        self.columns: List[str] = []

    def begin(self, columns: List[str]) -> None:
        self.columns = list(columns)

    def write_rows(self, rows: Iterable[Row]) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        pass

    def write_batches(self, columns: List[str], batches: Iterable[Batch]) -> None:
        self.begin(columns)
        for batch in batches:
            self.write_rows(batch.rows())
        self.finish()

    def write_records(self, columns: List[str], rows: Iterable[Row]) -> None:
        self.begin(columns)
        self.write_rows(rows)
        self.finish()


def write_banner(stream: TextIO, path: str) -> None:
    stream.write(f"==> {path} <==\n")
