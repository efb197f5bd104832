import datetime
import decimal
import json
import math
from typing import Any

from pqtool.utils.exceptions import UnsupportedCellType


def render_float(value: float) -> str:
    # repr gives the shortest text that round-trips to the same float
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return repr(value)


def is_nested(value: Any) -> bool:
    return isinstance(value, (list, tuple, dict))


def to_json_value(value: Any) -> Any:
    """
    Convert a cell to something json.dumps accepts without loss of identity.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return render_float(value)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()

    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()

    if isinstance(value, datetime.timedelta):
        return value.total_seconds()

    if isinstance(value, decimal.Decimal):
        return str(value)

    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]

    return str(value)


def render_text(value: Any, column: str = "", output_format: str = "table") -> str:
    """
    Render a cell as flat text for table and CSV output.

    Nested values become compact JSON in tables and are rejected in CSV.
    """
    if value is None:
        return ""

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float):
        return render_float(value)

    if isinstance(value, str):
        return value

    if is_nested(value):
        if output_format == "csv":
            raise UnsupportedCellType(column, "CSV", type(value).__name__)
        return json.dumps(to_json_value(value), separators=(",", ":"))

    converted = to_json_value(value)
    return converted if isinstance(converted, str) else str(converted)
