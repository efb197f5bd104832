from dataclasses import dataclass
from typing import Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from pqtool.adapters.parquet_adapter import DEFAULT_BATCH_SIZE, RowGroupStreamer
from pqtool.canonical.file import LogicalFile
from pqtool.observability.logger import get_logger
from pqtool.pipeline.schema_validator import SchemaCompatibilityValidator
from pqtool.utils.atomic import atomic_target
from pqtool.utils.exceptions import CorruptFooter, PqToolError, WriteFailed

MERGE_COMPRESSION = "snappy"

logger = get_logger()


@dataclass(frozen=True)
class MergePlan:
    """
    Ordered inputs plus the target schema (the first file's).

    Building a plan validates every schema, so an accepted plan can be
    streamed without further checks.
    """
    files: tuple
    target: LogicalFile

    @classmethod
    def build(cls, files: Sequence[LogicalFile]) -> "MergePlan":
        if not files:
            raise PqToolError("No input files specified")
        SchemaCompatibilityValidator(files).validate()
        return cls(files=tuple(files), target=files[0])

    @property
    def total_rows(self) -> int:
        return sum(lf.num_rows for lf in self.files)


def _arrow_schema(path: str) -> pa.Schema:
    try:
        return pq.read_schema(path)
    except (pa.ArrowException, OSError) as e:
        raise CorruptFooter(f"File appears corrupted: {path} ({e})") from e


class MergeEngine:
    """
    Restreams every row group of every planned file, in plan order,
    into one new file written with a fixed codec.
    """

    def __init__(self, plan: MergePlan, batch_size: int = DEFAULT_BATCH_SIZE):
        self.plan = plan
        self.batch_size = batch_size

    def _write(self, tmp_path: str, schema: pa.Schema, output_path: str) -> int:
        written = 0
        try:
            with pq.ParquetWriter(tmp_path, schema, compression=MERGE_COMPRESSION) as writer:
                for lf in self.plan.files:
                    streamer = RowGroupStreamer(lf, batch_size=self.batch_size)
                    for batch in streamer.stream():
                        writer.write_batch(batch.data)
                        written += batch.num_rows
                    logger.debug("Merged %s (%d rows)", lf.path, lf.num_rows)
        except pa.ArrowException as e:
            raise WriteFailed(f"Cannot write file: {output_path} ({e})") from e
        return written

    def execute(self, output_path: str) -> int:
        schema = _arrow_schema(self.plan.target.path)

        with atomic_target(output_path, suffix=".parquet") as tmp_path:
            written = self._write(tmp_path, schema, output_path)
            if written != self.plan.total_rows:
                raise WriteFailed(
                    f"Cannot write file: {output_path} (wrote {written} rows, "
                    f"expected {self.plan.total_rows})"
                )

        return written


def merge_files(files: Sequence[LogicalFile], output_path: str, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    plan = MergePlan.build(files)
    return MergeEngine(plan, batch_size=batch_size).execute(output_path)
