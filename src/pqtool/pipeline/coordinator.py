import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from pqtool.adapters.parquet_adapter import DEFAULT_BATCH_SIZE, probe
from pqtool.canonical.file import LogicalFile
from pqtool.observability.logger import get_logger
from pqtool.pipeline.aggregator import ColumnStat, combine_columns, file_column_stats
from pqtool.pipeline.schema_validator import SchemaCompatibilityValidator
from pqtool.utils.exceptions import OperationAborted

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger()


class ExecutionContext:
    """
    Per-command execution state.

    Created once at command start and handed to every component that
    schedules work; it owns the only worker pool.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.workers = max(1, workers or os.cpu_count() or 1)
        self.timeout_seconds = timeout_seconds
        self.batch_size = batch_size
        self._pool: Optional[ThreadPoolExecutor] = None

    @property
    def pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="pqtool"
            )
        return self._pool

    def map_ordered(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """
        Run fn over items on the pool and return results in input order.

        Results land in a slot pre-sized by input position, whatever order
        workers finish in. The first failure cancels work not yet started
        and is re-raised; running siblings are left to finish.
        """
        if not items:
            return []

        # Inline only when there is no deadline to enforce
        if self.timeout_seconds is None and (len(items) == 1 or self.workers == 1):
            return [fn(item) for item in items]

        results: List[Optional[R]] = [None] * len(items)
        future_to_index = {
            self.pool.submit(fn, item): idx for idx, item in enumerate(items)
        }

        done, pending = wait(
            future_to_index, timeout=self.timeout_seconds, return_when=FIRST_EXCEPTION
        )

        for future in sorted(done, key=future_to_index.get):
            error = future.exception()
            if error is not None:
                for other in pending:
                    other.cancel()
                raise error
            idx = future_to_index[future]
            results[idx] = future.result()
            logger.debug("Finished unit %d of %d", idx + 1, len(items))

        if pending:
            for future in pending:
                future.cancel()
            raise OperationAborted(
                f"Operation aborted: {len(pending)} of {len(items)} files "
                f"did not finish within {self.timeout_seconds}s"
            )

        return results

    def close(self, wait: bool = True) -> None:
        """
        Shut the pool down. With wait=False, units still running are
        abandoned instead of joined, so a failed command returns at once.
        """
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=True)
            self._pool = None

    def __enter__(self) -> "ExecutionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(wait=exc_type is None)


class MultiFileCoordinator:
    """
    Fans one logical operation out over an ordered list of files.

    Every reduction walks results in the caller's path order, never in
    completion order, so output is identical from run to run.
    """

    def __init__(self, paths: Sequence[str], context: ExecutionContext):
        self.paths = list(paths)
        self.context = context

    def probe_all(self) -> List[LogicalFile]:
        return self.context.map_ordered(probe, self.paths)

    def run(self, fn: Callable[[LogicalFile], R], files: Sequence[LogicalFile]) -> List[R]:
        return self.context.map_ordered(fn, files)

    def count(self) -> Tuple[List[Tuple[str, int]], int]:
        """
        Per-file row counts from footers plus their exact total.
        """
        files = self.probe_all()
        counts = [(lf.path, lf.num_rows) for lf in files]
        total = sum(n for _, n in counts)
        return counts, total

    def column_stats(
        self,
        files: Sequence[LogicalFile],
        source: str = "auto",
        combined: bool = True,
    ) -> List[List[ColumnStat]]:
        """
        Per-file statistics, or a single combined entry when combined is set.

        Combining requires every file to share the first file's schema.
        Per-file partials are reduced in path order.
        """
        if combined:
            SchemaCompatibilityValidator(files).validate()

        batch_size = self.context.batch_size
        per_file = self.run(lambda lf: file_column_stats(lf, source, batch_size), files)

        if not combined or not files:
            return per_file
        return [combine_columns(per_file, len(files[0].columns))]
