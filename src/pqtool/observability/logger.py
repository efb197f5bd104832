import json
import logging
import os
import sys
import time
import uuid

LOGGER_NAME = "pqtool"


class _C:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"


def _use_color() -> bool:
    # Color only if explicitly enabled and stderr is a terminal.
    return os.getenv("LOG_COLOR", "0") == "1" and sys.stderr.isatty()


def _event_color(event_type: str) -> str:
    et = (event_type or "").upper()
    if "FAILED" in et or "ERROR" in et:
        return _C.RED
    if "WARNING" in et or "FALLBACK" in et:
        return _C.YELLOW
    if "STARTED" in et or "COMPLETED" in et:
        return _C.GREEN
    return _C.MAGENTA


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    # stdout carries command output, so diagnostics go to stderr
    logger.setLevel(logging.WARNING)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def configure_logging(level: str = "WARNING", color: bool = False) -> logging.Logger:
    logger = get_logger()
    logger.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    if color:
        os.environ["LOG_COLOR"] = "1"
    return logger


logger = get_logger()


def generate_request_id() -> str:
    return str(uuid.uuid4())


def log_event(event_type: str, payload: dict, level: int = logging.INFO):
    if not logger.isEnabledFor(level):
        return

    record = {"event_type": event_type, **payload}
    text = json.dumps(record, default=str)

    if _use_color():
        color = _event_color(event_type)
        logger.log(level, f"{color}{text}{_C.RESET}")
    else:
        logger.log(level, text)


class RequestTimer:
    """
    Simple execution timer.
    """
    def __init__(self):
        self.start_time = time.perf_counter()

    def duration(self):
        return round(time.perf_counter() - self.start_time, 4)
