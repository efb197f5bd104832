import glob
import os
from typing import Iterable, List

from pqtool.utils.exceptions import NotAFileFormatMatch, NotFound

PARQUET_MAGIC = b"PAR1"
GLOB_CHARS = ("*", "?", "[")


class FormatDetector:
    """
    Confirms a file is Parquet by its magic bytes.

    Extensions are not trusted; only the leading and trailing
    "PAR1" markers are.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path

    def detect(self) -> str:
        """
        Returns:
            str: "PARQUET"

        Raises:
            NotFound: path missing or a directory
            NotAFileFormatMatch: empty file or magic bytes absent
        """
        if not os.path.exists(self.file_path):
            raise NotFound(f"File not found: {self.file_path}")

        if os.path.isdir(self.file_path):
            raise NotFound(f"Path is a directory, not a file: {self.file_path}")

        size = os.path.getsize(self.file_path)
        if size == 0:
            raise NotAFileFormatMatch(f"Empty file: {self.file_path}")

        if size < 2 * len(PARQUET_MAGIC):
            raise NotAFileFormatMatch(
                f"Not a valid Parquet file: {self.file_path} (file is too small)"
            )

        with open(self.file_path, "rb") as f:
            head = f.read(len(PARQUET_MAGIC))
            f.seek(-len(PARQUET_MAGIC), os.SEEK_END)
            tail = f.read(len(PARQUET_MAGIC))

        if head != PARQUET_MAGIC or tail != PARQUET_MAGIC:
            raise NotAFileFormatMatch(
                f"Not a valid Parquet file: {self.file_path} "
                "(missing Parquet magic bytes)"
            )

        return "PARQUET"


def is_glob_pattern(path: str) -> bool:
    return any(ch in path for ch in GLOB_CHARS)


def resolve_inputs(paths: Iterable[str]) -> List[str]:
    """
    Expand glob patterns and validate plain paths.

    The result is de-duplicated and sorted by path so every
    downstream reduction sees a stable order.
    """
    expanded = set()

    for path in paths:
        if is_glob_pattern(path):
            matches = [p for p in glob.glob(path, recursive=True) if os.path.isfile(p)]
            if not matches:
                raise NotFound(f"No files matched pattern: {path}")
            expanded.update(matches)
            continue

        if not os.path.exists(path):
            raise NotFound(f"File not found: {path}")
        if os.path.isdir(path):
            raise NotFound(f"Path is a directory, not a file: {path}")
        expanded.add(path)

    if not expanded:
        raise NotFound("No input files specified")

    return sorted(expanded)
