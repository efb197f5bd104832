from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

from pqtool.canonical.batch import Batch
from pqtool.utils.exceptions import CorruptRowGroup

Row = Tuple[Any, ...]


@dataclass
class SampleResult:
    columns: List[str]
    rows: List[Row] = field(default_factory=list)
    rows_seen: int = 0


class SampleWindow:
    """
    N-capacity row window.

    head mode keeps the first N rows offered and then reports itself full;
    tail mode overwrites the oldest row. Either way at most N rows are
    resident and they stay in arrival order.
    """

    HEAD = "head"
    TAIL = "tail"

    def __init__(self, capacity: int, mode: str = HEAD):
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        if mode not in (self.HEAD, self.TAIL):
            raise ValueError(f"Unknown window mode: {mode}")
        self.capacity = capacity
        self.mode = mode
        self._rows = deque(maxlen=capacity)

    @property
    def full(self) -> bool:
        return len(self._rows) >= self.capacity

    def offer(self, row: Row) -> bool:
        """
        Returns False once a head window can take no more rows.
        """
        if self.capacity == 0:
            return self.mode == self.TAIL
        if self.mode == self.HEAD and self.full:
            return False
        self._rows.append(row)
        return True

    def extend(self, rows: Iterable[Row]) -> None:
        for row in rows:
            if not self.offer(row):
                break

    def rows(self) -> List[Row]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)


def _close(stream) -> None:
    close = getattr(stream, "close", None)
    if close is not None:
        close()


def take_first(batches: Iterable[Batch], n: int, columns: Optional[List[str]] = None) -> SampleResult:
    """
    Keep the first n rows and cancel the upstream stream as soon as they are in.
    """
    result = SampleResult(columns=list(columns or []))
    if n <= 0:
        _close(batches)
        return result

    window = SampleWindow(n, SampleWindow.HEAD)
    try:
        for batch in batches:
            if not result.columns:
                result.columns = batch.column_names
            needed = n - len(window)
            if batch.num_rows > needed:
                batch = batch.slice(0, needed)
            window.extend(batch.rows())
            result.rows_seen += batch.num_rows
            if window.full:
                break
    finally:
        _close(batches)

    result.rows = window.rows()
    return result


def take_last(
    batches: Iterable[Batch],
    n: int,
    columns: Optional[List[str]] = None,
    expected_rows: Optional[int] = None,
) -> SampleResult:
    """
    Keep the last n rows of a stream, which must be consumed to its end.

    With n == 0 the stream is still drained so the observed row count
    can be checked against expected_rows, but nothing is retained.
    """
    result = SampleResult(columns=list(columns or []))
    window = SampleWindow(max(n, 0), SampleWindow.TAIL)

    for batch in batches:
        if not result.columns:
            result.columns = batch.column_names
        result.rows_seen += batch.num_rows
        if n <= 0:
            continue
        # Only the batch's own last n rows can survive in the window
        if batch.num_rows > n:
            batch = batch.slice(batch.num_rows - n)
        window.extend(batch.rows())

    if expected_rows is not None and result.rows_seen != expected_rows:
        raise CorruptRowGroup(
            f"Decoded {result.rows_seen} rows where the footer declares {expected_rows}"
        )

    result.rows = window.rows()
    return result
