import pyarrow as pa
import pytest

from pqtool.adapters.parquet_adapter import probe
from pqtool.canonical.batch import Batch
from pqtool.pipeline.aggregator import (
    ColumnAggregator,
    ColumnStat,
    batch_stats,
    combine_all,
    file_column_stats,
    footer_stats,
)
from pqtool.utils.exceptions import CorruptFooter


def test_combine_ignores_missing_bounds():
    a = ColumnStat(min=None, max=None, null_count=2, value_count=0)
    b = ColumnStat(min=3, max=9, null_count=0, value_count=4)

    combined = a.combine(b)

    assert (combined.min, combined.max, combined.null_count, combined.value_count) == (3, 9, 2, 4)


def test_combine_is_order_independent():
    parts = [
        ColumnStat(min=5, max=7, null_count=1, value_count=2),
        ColumnStat(min=-1, max=2, null_count=0, value_count=3),
        ColumnStat(null_count=4),
    ]

    forward = combine_all(parts)
    backward = combine_all(reversed(parts))

    assert forward == backward == ColumnStat(min=-1, max=7, null_count=5, value_count=5)


def test_batch_stats_skips_nulls():
    batch = Batch(pa.record_batch(
        [pa.array([1, None, 1000, None]), pa.array([None, None, None, None], type=pa.string())],
        names=["x", "empty"],
    ))

    x, empty = batch_stats(batch)

    assert (x.min, x.max, x.null_count, x.value_count) == (1, 1000, 2, 2)
    assert (empty.min, empty.max, empty.null_count) == (None, None, 4)


def test_nested_columns_carry_counts_only():
    batch = Batch(pa.record_batch(
        [pa.array([[1], None, [2, 3]], type=pa.list_(pa.int64()))], names=["tags"],
    ))

    (tags,) = batch_stats(batch)

    assert tags.min is None and tags.max is None
    assert tags.null_count == 1
    assert tags.value_count == 2


def test_aggregate_across_batches():
    batches = [
        Batch(pa.record_batch([pa.array([3.5, 0.25])], names=["f"])),
        Batch(pa.record_batch([pa.array([-2.0, None])], names=["f"])),
    ]

    (stat,) = ColumnAggregator(1).aggregate(batches)

    assert stat.min == -2.0
    assert stat.null_count == 1
    assert stat.value_count == 3
    assert stat.max == 3.5


def test_footer_and_scan_agree(write_parquet):
    path = write_parquet(
        "stats.parquet",
        {"x": [1, None, 1000, None], "name": ["b", "a", None, "c"]},
        row_group_size=2,
    )
    lf = probe(path)

    from_footer = footer_stats(lf)
    from_scan = file_column_stats(lf, source="scan")

    assert from_footer == from_scan
    assert from_scan[0] == ColumnStat(min=1, max=1000, null_count=2, value_count=2)
    assert from_scan[1] == ColumnStat(min="a", max="c", null_count=1, value_count=3)


def test_missing_footer_statistics_fall_back_to_scan(write_parquet):
    lf = probe(write_parquet("nostats.parquet", {"x": [4, 2, 8]}, write_statistics=False))

    assert footer_stats(lf) is None
    assert file_column_stats(lf, source="auto")[0] == ColumnStat(min=2, max=8, null_count=0, value_count=3)

    with pytest.raises(CorruptFooter):
        file_column_stats(lf, source="footer")


def test_unknown_source(people_file):
    with pytest.raises(ValueError):
        file_column_stats(probe(people_file), source="guess")


def test_nan_never_becomes_a_bound(write_parquet):
    nan = float("nan")
    forward = probe(write_parquet("nan_first.parquet", {"f": [nan, nan, 1.0, 2.0]}, row_group_size=2))
    backward = probe(write_parquet("nan_last.parquet", {"f": [1.0, 2.0, nan, nan]}, row_group_size=2))

    expected = ColumnStat(min=1.0, max=2.0, null_count=0, value_count=4)
    for lf in (forward, backward):
        assert file_column_stats(lf, source="scan") == [expected]
        assert file_column_stats(lf, source="auto") == [expected]


def test_all_nan_batch_has_no_bounds():
    batch = Batch(pa.record_batch([pa.array([float("nan"), None])], names=["f"]))

    (stat,) = batch_stats(batch)

    assert (stat.min, stat.max, stat.null_count, stat.value_count) == (None, None, 1, 1)
    assert stat.combine(ColumnStat(min=1.0, max=1.0, value_count=1)) == (
        ColumnStat(min=1.0, max=1.0, value_count=1).combine(stat)
    )


def test_footer_covers_flat_columns_next_to_nested_ones(write_parquet):
    table = pa.table({
        "x": [1, 2, 3],
        "tags": pa.array([[1], None, [2, 3]], type=pa.list_(pa.int64())),
    })
    lf = probe(write_parquet("mixed.parquet", table, row_group_size=2))

    partial = footer_stats(lf)
    assert partial[0] == ColumnStat(min=1, max=3, null_count=0, value_count=3)
    assert partial[1] is None

    for source in ("footer", "auto", "scan"):
        x, tags = file_column_stats(lf, source=source)
        assert x == ColumnStat(min=1, max=3, null_count=0, value_count=3)
        assert (tags.min, tags.max, tags.null_count, tags.value_count) == (None, None, 1, 2)
