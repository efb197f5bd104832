import sys
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

# Ensure 'src' is on sys.path so that 'pqtool' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


PEOPLE = {
    "id": [1, 2, 3],
    "name": ["Alice", "Bob", "Charlie"],
    "score": [100.5, 200.75, 150.25],
}


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path_factory):
    # Keep a developer's own ~/.config/pqtool out of the tests
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    monkeypatch.delenv("PQTOOL_CONFIG", raising=False)
    monkeypatch.delenv("LOG_COLOR", raising=False)


@pytest.fixture
def write_parquet(tmp_path):
    """
    Factory writing a dict of columns (or a pyarrow Table) to tmp_path/<name>.
    """
    def _write(name, data, **kwargs):
        table = data if isinstance(data, pa.Table) else pa.table(data)
        path = tmp_path / name
        pq.write_table(table, str(path), **kwargs)
        return str(path)

    return _write


@pytest.fixture
def people_file(write_parquet):
    return write_parquet("people.parquet", PEOPLE)


@pytest.fixture
def grouped_people_file(write_parquet):
    # One row per row group
    return write_parquet("grouped.parquet", PEOPLE, row_group_size=1)
