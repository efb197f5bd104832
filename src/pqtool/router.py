import io
import logging
from typing import Callable, Dict, List, TextIO

from pqtool.adapters.parquet_adapter import RowGroupStreamer, probe
from pqtool.canonical.file import LogicalFile
from pqtool.execution.config import CommandConfig
from pqtool.input.format_detector import resolve_inputs
from pqtool.observability.logger import RequestTimer, generate_request_id, log_event
from pqtool.outputs.base import write_banner
from pqtool.outputs.registry import EncoderRegistry
from pqtool.outputs.table import TableEncoder
from pqtool.pipeline.coordinator import ExecutionContext, MultiFileCoordinator
from pqtool.pipeline.merge import merge_files
from pqtool.pipeline.query import QueryEngine
from pqtool.pipeline.sampler import SampleResult, take_first, take_last
from pqtool.utils.atomic import atomic_target
from pqtool.utils.exceptions import ColumnNotFound, PqToolError

SCHEMA_COLUMNS = ["name", "type", "nullable"]
STATS_COLUMNS = ["column", "type", "null_count", "value_count", "min", "max"]
INFO_COLUMNS = [
    "file", "file_size_bytes", "num_rows", "num_columns",
    "num_row_groups", "compression", "created_by", "version",
]

# Bounded results are rendered in memory and only reach the stream on success
BUFFERED_COMMANDS = ("schema", "head", "tail", "count", "stats", "info")


def format_size(size: int) -> str:
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024

    if size >= gb:
        return f"{size / gb:.2f} GB"
    if size >= mb:
        return f"{size / mb:.2f} MB"
    if size >= kb:
        return f"{size / kb:.2f} KB"
    return f"{size} B"


def _encoder(config: CommandConfig, stream: TextIO, bounded: bool = True, null_text: str = ""):
    encoder_cls = EncoderRegistry.get_encoder(config.output)
    if encoder_cls is TableEncoder:
        return TableEncoder(stream, quiet=config.quiet, bounded=bounded, null_text=null_text)
    return encoder_cls(stream, quiet=config.quiet)


def _show_banner(config: CommandConfig, files: List) -> bool:
    return len(files) > 1 and not config.quiet


# ------------------------------------------------------------------
# Metadata-only commands
# ------------------------------------------------------------------

def run_schema(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    files = MultiFileCoordinator(resolve_inputs(config.inputs), context).probe_all()
    as_words = config.output == "table"

    for lf in files:
        if _show_banner(config, files):
            write_banner(stream, lf.path)
        rows = [
            (col.name, col.display_type, ("Yes" if col.nullable else "No") if as_words else col.nullable)
            for col in lf.columns
        ]
        headers = ["Column", "Type", "Nullable"] if as_words else SCHEMA_COLUMNS
        _encoder(config, stream).write_records(headers, rows)


def run_count(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    counts, total = MultiFileCoordinator(resolve_inputs(config.inputs), context).count()

    for path, count in counts:
        if config.quiet or len(counts) == 1:
            stream.write(f"{count}\n")
        else:
            stream.write(f"{path}: {count}\n")

    if len(counts) > 1 and not config.quiet:
        stream.write(f"Total: {total}\n")


def _info_record(lf: LogicalFile) -> tuple:
    return (
        lf.path,
        lf.size_bytes,
        lf.num_rows,
        len(lf.columns),
        lf.num_row_groups,
        lf.compression,
        lf.created_by,
        lf.format_version,
    )


def run_info(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    files = MultiFileCoordinator(resolve_inputs(config.inputs), context).probe_all()

    if config.output != "table":
        _encoder(config, stream).write_records(INFO_COLUMNS, [_info_record(lf) for lf in files])
        return

    for lf in files:
        if _show_banner(config, files):
            write_banner(stream, lf.path)
        rows = [
            ("File", lf.path),
            ("File Size", format_size(lf.size_bytes)),
            ("Rows", lf.num_rows),
            ("Columns", len(lf.columns)),
            ("Row Groups", lf.num_row_groups),
            ("Compression", lf.compression),
            ("Created By", lf.created_by),
            ("Version", lf.format_version),
        ]
        _encoder(config, stream).write_records(["Key", "Value"], rows)


# ------------------------------------------------------------------
# Row sampling
# ------------------------------------------------------------------

def _head_of(n: int, batch_size: int):
    def sample(lf: LogicalFile) -> SampleResult:
        if n == 0:
            return SampleResult(columns=lf.column_names)
        streamer = RowGroupStreamer(lf, batch_size=batch_size)
        batches = streamer.stream() if lf.has_reliable_row_groups() else streamer.stream_all()
        return take_first(batches, n, columns=lf.column_names)
    return sample


def _tail_of(n: int, batch_size: int):
    def sample(lf: LogicalFile) -> SampleResult:
        streamer = RowGroupStreamer(lf, batch_size=batch_size)
        expected = None
        if lf.has_reliable_row_groups():
            expected = sum(ref.num_rows for ref in streamer.plan_tail(n))
        return take_last(streamer.stream_tail(n), n, columns=lf.column_names, expected_rows=expected)
    return sample


def _run_sample(config: CommandConfig, context: ExecutionContext, stream: TextIO, sampler) -> None:
    coordinator = MultiFileCoordinator(resolve_inputs(config.inputs), context)
    files = coordinator.probe_all()
    results = coordinator.run(sampler, files)

    for lf, result in zip(files, results):
        if _show_banner(config, files):
            write_banner(stream, lf.path)
        _encoder(config, stream).write_records(result.columns, result.rows)


def run_head(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    _run_sample(config, context, stream, _head_of(config.rows, context.batch_size))


def run_tail(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    _run_sample(config, context, stream, _tail_of(config.rows, context.batch_size))


# ------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------

def _stats_rows(lf: LogicalFile, stats, column_filter=None) -> list:
    rows = []
    for col, stat in zip(lf.columns, stats):
        if column_filter is not None and col.name != column_filter:
            continue
        rows.append((col.name, col.display_type, stat.null_count, stat.value_count, stat.min, stat.max))
    return rows


def run_stats(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    coordinator = MultiFileCoordinator(resolve_inputs(config.inputs), context)
    files = coordinator.probe_all()

    if config.column is not None:
        for lf in files:
            if lf.column(config.column) is None:
                raise ColumnNotFound(config.column, lf.column_names)

    combined = not config.per_file
    results = coordinator.column_stats(files, source=config.stats_source, combined=combined)
    headers = ["Column", "Type", "Nulls", "Values", "Min", "Max"] if config.output == "table" else STATS_COLUMNS

    if combined:
        rows = _stats_rows(files[0], results[0], config.column)
        _encoder(config, stream, null_text="N/A").write_records(headers, rows)
        return

    for lf, stats in zip(files, results):
        if _show_banner(config, files):
            write_banner(stream, lf.path)
        rows = _stats_rows(lf, stats, config.column)
        _encoder(config, stream, null_text="N/A").write_records(headers, rows)


# ------------------------------------------------------------------
# Query, conversion and merge
# ------------------------------------------------------------------

def run_query(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    paths = resolve_inputs(config.inputs)
    result = QueryEngine(paths, batch_size=context.batch_size).execute(config.sql)
    # Query results are unbounded; tables size columns from the first batch
    _encoder(config, stream, bounded=False).write_batches(result.columns, result.batches())


def run_convert(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    encoder_cls = EncoderRegistry.for_extension(config.target)
    source = resolve_inputs(config.inputs[:1])[0]
    lf = probe(source)
    streamer = RowGroupStreamer(lf, batch_size=context.batch_size)
    batches = streamer.stream() if lf.has_reliable_row_groups() else streamer.stream_all()

    with atomic_target(config.target) as tmp_path:
        with open(tmp_path, "w", encoding="utf-8", newline="") as out:
            encoder_cls(out).write_batches(lf.column_names, batches)

    log_event("CONVERT_COMPLETED", {"source": source, "target": config.target, "rows": lf.num_rows})


def run_merge(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    files = MultiFileCoordinator(resolve_inputs(config.inputs), context).probe_all()
    written = merge_files(files, config.target, batch_size=context.batch_size)
    log_event("MERGE_COMPLETED", {"files": len(files), "target": config.target, "rows": written})


_HANDLERS: Dict[str, Callable] = {
    "schema": run_schema,
    "head": run_head,
    "tail": run_tail,
    "count": run_count,
    "stats": run_stats,
    "query": run_query,
    "convert": run_convert,
    "merge": run_merge,
    "info": run_info,
}


# ==========================================================
# ROUTER
# ==========================================================
def route(config: CommandConfig, context: ExecutionContext, stream: TextIO) -> None:
    """
    pqtool main entry point.

    Flow:
    Inputs → Probe / Stream → Sample | Aggregate | Query | Merge → Encoder
    """
    request_id = generate_request_id()
    timer = RequestTimer()

    log_event("COMMAND_STARTED", {
        "request_id": request_id,
        "command": config.command,
        "inputs": list(config.inputs),
        "output": config.output,
    })

    target = io.StringIO() if config.command in BUFFERED_COMMANDS else stream

    try:
        _HANDLERS[config.command](config, context, target)
    except PqToolError as e:
        log_event("COMMAND_FAILED", {
            "request_id": request_id,
            "command": config.command,
            "error": type(e).__name__,
            "message": str(e),
            "duration_seconds": timer.duration(),
        }, level=logging.DEBUG)
        raise

    if target is not stream:
        stream.write(target.getvalue())

    log_event("COMMAND_COMPLETED", {
        "request_id": request_id,
        "command": config.command,
        "duration_seconds": timer.duration(),
    })
