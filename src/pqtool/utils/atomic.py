import os
import tempfile
from contextlib import contextmanager
from typing import Iterator

from pqtool.utils.exceptions import WriteFailed


@contextmanager
def atomic_target(path: str, suffix: str = "") -> Iterator[str]:
    """
    Yield a temporary sibling of path that replaces it on clean exit.

    On any error the temporary file is removed, leaving no partial
    output behind and any existing file at path untouched.
    """
    directory = os.path.dirname(os.path.abspath(path))
    if not os.path.isdir(directory):
        raise WriteFailed(f"Cannot write file: {path} (directory does not exist)")

    fd, tmp_path = tempfile.mkstemp(prefix=".pqtool-", suffix=suffix, dir=directory)
    os.close(fd)

    try:
        yield tmp_path
        os.replace(tmp_path, path)
    except OSError as e:
        _discard(tmp_path)
        raise WriteFailed(f"Cannot write file: {path} ({e.strerror or e})") from e
    except BaseException:
        _discard(tmp_path)
        raise


def _discard(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)
