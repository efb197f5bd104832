import os

from pqtool.outputs.csv_encoder import CsvEncoder
from pqtool.outputs.json_encoder import JsonEncoder, JsonlEncoder
from pqtool.outputs.table import TableEncoder
from pqtool.utils.exceptions import UnsupportedFormat


class EncoderRegistry:
    """
    Maps output format names to encoder implementations.
    """

    _REGISTRY = {
        "TABLE": TableEncoder,
        "JSON": JsonEncoder,
        "JSONL": JsonlEncoder,
        "CSV": CsvEncoder,
    }

    # Formats a file conversion can target, keyed by extension
    _FILE_FORMATS = {
        "csv": "CSV",
        "json": "JSON",
        "jsonl": "JSONL",
    }

    @classmethod
    def formats(cls):
        return [encoder.format_name for encoder in cls._REGISTRY.values()]

    @classmethod
    def get_encoder(cls, format_name: str):
        if not format_name:
            raise UnsupportedFormat("Output format must not be empty")

        key = format_name.upper()

        if key not in cls._REGISTRY:
            raise UnsupportedFormat(
                f"Unsupported format: {format_name} "
                f"(supported formats: {', '.join(cls.formats())})"
            )

        return cls._REGISTRY[key]

    @classmethod
    def for_extension(cls, path: str):
        ext = os.path.splitext(path)[1].lstrip(".").lower()

        if ext not in cls._FILE_FORMATS:
            raise UnsupportedFormat(
                f"Unsupported format: {ext or '(no extension)'} "
                f"(supported formats: {', '.join(cls._FILE_FORMATS)})"
            )

        return cls._REGISTRY[cls._FILE_FORMATS[ext]]
