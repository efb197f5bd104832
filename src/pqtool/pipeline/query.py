import os
from typing import Dict, Iterator, List, Sequence

import duckdb
import pyarrow as pa

from pqtool.adapters.parquet_adapter import DEFAULT_BATCH_SIZE
from pqtool.canonical.batch import Batch
from pqtool.utils.exceptions import UpstreamQueryError

SINGLE_TABLE_NAME = "tbl"


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def table_names(paths: Sequence[str]) -> Dict[str, str]:
    """
    View name for each input: "tbl" for a single file, the file stem otherwise.
    """
    if len(paths) == 1:
        return {SINGLE_TABLE_NAME: paths[0]}

    names: Dict[str, str] = {}
    for path in paths:
        stem = os.path.splitext(os.path.basename(path))[0] or SINGLE_TABLE_NAME
        name = stem
        suffix = 2
        while name in names:
            name = f"{stem}_{suffix}"
            suffix += 1
        names[name] = path
    return names


class QueryResult:
    """
    Lazily consumed query result.

    Iterating yields Batches straight from the engine's record batch
    reader; the connection closes once the stream ends or is closed.
    """

    def __init__(self, connection, reader: pa.RecordBatchReader):
        self._connection = connection
        self._reader = reader
        self.columns: List[str] = list(reader.schema.names)

    def batches(self) -> Iterator[Batch]:
        try:
            while True:
                try:
                    record_batch = self._reader.read_next_batch()
                except StopIteration:
                    return
                except (duckdb.Error, pa.ArrowException) as e:
                    raise UpstreamQueryError(f"Query execution failed: {e}") from e
                yield Batch(record_batch)
        finally:
            self.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class QueryEngine:
    """
    Binds input files as views and hands SQL to DuckDB.
    Errors surface with the engine's own wording.
    """

    def __init__(self, paths: Sequence[str], batch_size: int = DEFAULT_BATCH_SIZE):
        self.paths = list(paths)
        self.batch_size = batch_size

    def _register(self, connection) -> None:
        for name, path in table_names(self.paths).items():
            connection.execute(
                f"CREATE OR REPLACE VIEW {_quote_ident(name)} AS "
                f"SELECT * FROM read_parquet({_quote_literal(os.path.abspath(path))})"
            )

    def execute(self, sql: str) -> QueryResult:
        connection = duckdb.connect(database=":memory:")
        try:
            self._register(connection)
            reader = connection.execute(sql).fetch_record_batch(self.batch_size)
        except duckdb.Error as e:
            connection.close()
            raise UpstreamQueryError(f"Query failed: {e}") from e
        return QueryResult(connection, reader)
