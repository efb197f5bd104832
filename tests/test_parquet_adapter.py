import pyarrow as pa
import pytest

from pqtool.adapters.parquet_adapter import (
    RowGroupStreamer,
    plan_tail_suffix,
    probe,
    simplify_parquet_error,
)
from pqtool.canonical.field import INTEGER, NESTED, STRING
from pqtool.canonical.file import LogicalFile
from pqtool.utils.exceptions import CorruptFooter


def test_probe_reads_footer(people_file):
    lf = probe(people_file)

    assert lf.path == people_file
    assert lf.num_rows == 3
    assert lf.column_names == ["id", "name", "score"]
    assert lf.row_group_rows == (3,)
    assert lf.size_bytes > 0
    assert lf.has_reliable_row_groups()

    id_col, name_col, score_col = lf.columns
    assert id_col.physical_type == "INT64"
    assert id_col.kind == INTEGER
    assert name_col.physical_type == "BYTE_ARRAY"
    assert name_col.logical_type == "string"
    assert name_col.kind == STRING
    assert score_col.physical_type == "DOUBLE"


def test_probe_reports_compression_and_statistics(write_parquet):
    path = write_parquet("x.parquet", {"x": [5, None, 7]}, compression="gzip")
    lf = probe(path)

    assert lf.compression == "GZIP"
    summary = lf.chunk_summaries[0][0]
    assert summary.has_min_max
    assert (summary.min_value, summary.max_value, summary.null_count) == (5, 7, 1)


def test_nested_columns_are_groups(write_parquet):
    table = pa.table({
        "id": [1, 2],
        "tags": pa.array([[1, 2], []], type=pa.list_(pa.int64())),
        "after": ["a", "b"],
    })
    lf = probe(write_parquet("nested.parquet", table))

    tags = lf.column("tags")
    assert tags.physical_type == "GROUP"
    assert tags.kind == NESTED
    assert tags.leaf_index is None
    assert tags.display_type.startswith("list<")
    # Leaf cursor must skip past the list's leaf
    assert lf.column("after").leaf_index == 2
    assert lf.column("after").physical_type == "BYTE_ARRAY"


def test_truncated_file_is_corrupt(people_file, tmp_path):
    with open(people_file, "rb") as f:
        data = f.read()
    broken = tmp_path / "broken.parquet"
    # Keep both magic markers but drop most of the footer
    broken.write_bytes(data[:8] + b"PAR1")

    with pytest.raises(CorruptFooter) as exc:
        probe(str(broken))

    assert str(broken) in str(exc.value)


def test_simplify_parquet_error():
    assert simplify_parquet_error("Parquet magic bytes not found in footer") == (
        "File does not have valid Parquet magic bytes"
    )
    assert simplify_parquet_error("Unexpected end of stream") == "File is truncated or incomplete"
    assert simplify_parquet_error("Couldn't deserialize thrift") == "File metadata is corrupted"
    assert simplify_parquet_error("something\nelse") == "something else"


@pytest.mark.parametrize(
    "rows, n, expected",
    [
        ((3, 3, 3), 0, 3),
        ((3, 3, 3), 1, 2),
        ((3, 3, 3), 3, 2),
        ((3, 3, 3), 4, 1),
        ((3, 3, 3), 9, 0),
        ((3, 3, 3), 50, 0),
        ((), 5, 0),
        ((5, 0, 0), 1, 0),
    ],
)
def test_plan_tail_suffix(rows, n, expected):
    assert plan_tail_suffix(rows, n) == expected


def test_stream_yields_each_row_group(grouped_people_file):
    lf = probe(grouped_people_file)
    batches = list(RowGroupStreamer(lf).stream())

    assert [b.row_group for b in batches] == [0, 1, 2]
    assert [row for b in batches for row in b.rows()] == [
        (1, "Alice", 100.5), (2, "Bob", 200.75), (3, "Charlie", 150.25),
    ]


def test_stream_respects_batch_size(write_parquet):
    lf = probe(write_parquet("big.parquet", {"x": list(range(10))}))
    batches = list(RowGroupStreamer(lf, batch_size=4).stream())

    assert [b.num_rows for b in batches] == [4, 4, 2]
    assert all(b.row_group == 0 for b in batches)


def test_stream_tail_reads_only_the_suffix(grouped_people_file):
    lf = probe(grouped_people_file)
    batches = list(RowGroupStreamer(lf).stream_tail(1))

    assert [b.row_group for b in batches] == [2]


def test_stream_tail_falls_back_when_metadata_unreliable(people_file):
    lf = probe(people_file)
    # Footer claims more rows than its row groups add up to
    skewed = LogicalFile(
        path=lf.path,
        columns=lf.columns,
        row_group_rows=lf.row_group_rows,
        num_rows=lf.num_rows + 1,
        compression=lf.compression,
        size_bytes=lf.size_bytes,
    )

    assert not skewed.has_reliable_row_groups()
    batches = list(RowGroupStreamer(skewed).stream_tail(1))
    assert sum(b.num_rows for b in batches) == 3
    assert all(b.row_group is None for b in batches)


def test_stream_rejects_bad_range(people_file):
    streamer = RowGroupStreamer(probe(people_file))

    with pytest.raises(IndexError):
        list(streamer.stream(0, 5))

    with pytest.raises(ValueError):
        RowGroupStreamer(probe(people_file), batch_size=0)


def test_empty_file_streams_no_rows(write_parquet):
    table = pa.table({"x": pa.array([], type=pa.int64())})
    lf = probe(write_parquet("empty.parquet", table))

    assert lf.num_rows == 0
    assert lf.has_reliable_row_groups()
    assert sum(b.num_rows for b in RowGroupStreamer(lf).stream()) == 0


def test_plan_tail_returns_row_group_refs(grouped_people_file):
    plan = RowGroupStreamer(probe(grouped_people_file)).plan_tail(2)

    assert [(ref.index, ref.num_rows) for ref in plan] == [(1, 1), (2, 1)]
    assert all(ref.path == grouped_people_file for ref in plan)
    assert RowGroupStreamer(probe(grouped_people_file)).plan_tail(0) == []
