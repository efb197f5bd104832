import argparse
import os
import sys
from typing import List, Optional

from pqtool import __version__
from pqtool.execution.config import (
    OUTPUT_FORMATS,
    STATS_SOURCES,
    CommandConfig,
    ConfigLoader,
    Settings,
)
from pqtool.observability.logger import configure_logging
from pqtool.pipeline.coordinator import ExecutionContext
from pqtool.router import route
from pqtool.utils.exceptions import PqToolError


class C:
    RESET = "\033[0m"
    RED = "\033[31m"


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return number


def _positive_int(value: str) -> int:
    number = _non_negative_int(value)
    if number == 0:
        raise argparse.ArgumentTypeError("must be positive")
    return number


def _add_files(parser: argparse.ArgumentParser, help_text: str = "Parquet file(s) or glob pattern(s) to read"):
    parser.add_argument("files", nargs="+", help=help_text)


def _add_output(parser: argparse.ArgumentParser):
    parser.add_argument("-o", "--output", choices=OUTPUT_FORMATS, help="Output format")


def _add_quiet(parser: argparse.ArgumentParser):
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress headers and formatting")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pqtool",
        description="A jq-like CLI for Parquet files. Fast startup, pretty output, sensible defaults.",
    )
    parser.add_argument("--version", action="version", version=f"pqtool {__version__}")
    parser.add_argument("--config", help="Path to YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument("--workers", type=_positive_int, help="Files processed in parallel")
    parser.add_argument("--batch-size", type=_positive_int, help="Maximum rows decoded per batch")
    parser.add_argument("--timeout", type=float, help="Abort multi-file work after this many seconds")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("schema", help="Show schema (column names, types, nullability)")
    _add_files(p)
    _add_output(p)
    _add_quiet(p)

    for name, help_text in (("head", "Show first N rows"), ("tail", "Show last N rows")):
        p = sub.add_parser(name, help=help_text)
        _add_files(p)
        p.add_argument("-n", "--rows", type=_non_negative_int, help="Number of rows to show")
        _add_output(p)
        _add_quiet(p)

    p = sub.add_parser("count", help="Count total rows")
    _add_files(p)
    _add_quiet(p)

    p = sub.add_parser("stats", help="Column statistics (min, max, nulls)")
    _add_files(p)
    p.add_argument("-c", "--column", help="Specific column to show stats for")
    p.add_argument("--per-file", action="store_true", help="Report each file separately")
    p.add_argument("--source", choices=STATS_SOURCES, help="Where statistics come from")
    _add_output(p)
    _add_quiet(p)

    p = sub.add_parser("query", help="Run SQL query against file(s)")
    p.add_argument("sql", help="SQL query; a single file is bound as 'tbl', several by file stem")
    _add_files(p)
    _add_output(p)
    _add_quiet(p)

    p = sub.add_parser("convert", help="Convert to CSV, JSON, or JSONL")
    p.add_argument("input", help="Input Parquet file")
    p.add_argument("output_path", help="Output file path (.csv, .json or .jsonl)")

    p = sub.add_parser("merge", help="Merge multiple Parquet files")
    _add_files(p, "Input Parquet files")
    p.add_argument("-o", "--output", dest="target", required=True, help="Output file path")

    p = sub.add_parser("info", help="File metadata (row groups, compression, size)")
    _add_files(p)
    _add_output(p)
    _add_quiet(p)

    return parser


def build_command_config(args: argparse.Namespace, settings: Settings) -> CommandConfig:
    command = args.command

    if command == "convert":
        return CommandConfig(command=command, inputs=(args.input,), target=args.output_path)

    if command == "merge":
        return CommandConfig(command=command, inputs=tuple(args.files), target=args.target)

    return CommandConfig(
        command=command,
        inputs=tuple(args.files),
        output=getattr(args, "output", None) or settings.output,
        rows=settings.rows if getattr(args, "rows", None) is None else args.rows,
        quiet=getattr(args, "quiet", False),
        sql=getattr(args, "sql", None),
        column=getattr(args, "column", None),
        per_file=getattr(args, "per_file", False),
        stats_source=getattr(args, "source", None) or settings.stats_source,
    )


def _report(message: str) -> None:
    text = f"Error: {' '.join(message.split())}"
    if os.getenv("LOG_COLOR", "0") == "1" and sys.stderr.isatty():
        text = f"{C.RED}{text}{C.RESET}"
    sys.stderr.write(text + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ConfigLoader(args.config).load().with_overrides(
            workers=args.workers,
            batch_size=args.batch_size,
            timeout_seconds=args.timeout,
        )
        configure_logging("INFO" if args.verbose else settings.log_level, settings.log_color)
        config = build_command_config(args, settings)

        with ExecutionContext(
            workers=settings.workers,
            timeout_seconds=settings.timeout_seconds,
            batch_size=settings.batch_size,
        ) as context:
            route(config, context, sys.stdout)
        sys.stdout.flush()

    except PqToolError as e:
        _report(str(e))
        return 1

    except BrokenPipeError:
        # Downstream reader went away (e.g. piped into `head`)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
