import os
from dataclasses import dataclass, fields, replace
from typing import Dict, Optional, Tuple

import yaml

from pqtool.utils.exceptions import InvalidConfig, NotFound

ENV_CONFIG_PATH = "PQTOOL_CONFIG"
DEFAULT_CONFIG_PATH = os.path.join("~", ".config", "pqtool", "config.yaml")

OUTPUT_FORMATS = ("table", "json", "jsonl", "csv")
STATS_SOURCES = ("auto", "footer", "scan")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

COMMANDS = ("schema", "head", "tail", "count", "stats", "query", "convert", "merge", "info")


@dataclass(frozen=True)
class Settings:
    """
    User defaults, read from YAML and overridable from the command line.
    """
    output: str = "table"
    rows: int = 10
    batch_size: int = 65536
    workers: Optional[int] = None
    timeout_seconds: Optional[float] = None
    stats_source: str = "auto"
    log_level: str = "WARNING"
    log_color: bool = False

    def with_overrides(self, **overrides) -> "Settings":
        present = {k: v for k, v in overrides.items() if v is not None}
        return validate_settings(replace(self, **present))


@dataclass(frozen=True)
class CommandConfig:
    """
    One fully parsed command invocation, as the router consumes it.
    """
    command: str
    inputs: Tuple[str, ...]
    output: str = "table"
    rows: int = 10
    quiet: bool = False
    sql: Optional[str] = None
    column: Optional[str] = None
    per_file: bool = False
    stats_source: str = "auto"
    target: Optional[str] = None

    def __post_init__(self):
        if self.command not in COMMANDS:
            raise InvalidConfig(f"Unknown command: {self.command}")
        if self.rows < 0:
            raise InvalidConfig("Row limit must not be negative")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_settings(settings: Settings) -> Settings:
    if settings.output not in OUTPUT_FORMATS:
        raise InvalidConfig(
            f"Invalid output format '{settings.output}'. Allowed values: {', '.join(OUTPUT_FORMATS)}"
        )

    if not _is_int(settings.rows) or settings.rows < 0:
        raise InvalidConfig("rows must be a non-negative integer")

    if not _is_int(settings.batch_size) or settings.batch_size <= 0:
        raise InvalidConfig("batch_size must be a positive integer")

    if settings.workers is not None and (not _is_int(settings.workers) or settings.workers <= 0):
        raise InvalidConfig("workers must be a positive integer")

    if settings.timeout_seconds is not None and (
        not _is_number(settings.timeout_seconds) or settings.timeout_seconds <= 0
    ):
        raise InvalidConfig("timeout_seconds must be a positive number")

    if settings.stats_source not in STATS_SOURCES:
        raise InvalidConfig(
            f"Invalid stats_source '{settings.stats_source}'. Allowed values: {', '.join(STATS_SOURCES)}"
        )

    if str(settings.log_level).upper() not in LOG_LEVELS:
        raise InvalidConfig(f"Invalid log_level '{settings.log_level}'")

    if not isinstance(settings.log_color, bool):
        raise InvalidConfig("log_color must be true or false")

    return settings


class ConfigLoader:
    """
    Loads Settings from YAML.

    Lookup order: explicit path, $PQTOOL_CONFIG, ~/.config/pqtool/config.yaml.
    Only an explicitly requested file has to exist.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path

    def _resolve_path(self) -> Tuple[Optional[str], bool]:
        if self.config_path:
            return self.config_path, True

        env_path = os.getenv(ENV_CONFIG_PATH)
        if env_path:
            return env_path, True

        return os.path.expanduser(DEFAULT_CONFIG_PATH), False

    def _read(self, path: str) -> Dict:
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise InvalidConfig(f"Cannot parse config file {path}: {e}") from e

        if data is None:
            return {}

        if not isinstance(data, dict):
            raise InvalidConfig(f"Config file {path} must contain a mapping")

        return data

    def load(self) -> Settings:
        path, required = self._resolve_path()

        if not os.path.exists(path):
            if required:
                raise NotFound(f"Config file not found: {path}")
            return Settings()

        data = self._read(path)

        known = {f.name for f in fields(Settings)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfig(
                f"Unknown keys in config file {path}: {', '.join(unknown)}"
            )

        return validate_settings(Settings(**data))
