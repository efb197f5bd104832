import time

import pytest

from pqtool.pipeline.coordinator import ExecutionContext, MultiFileCoordinator
from pqtool.utils.exceptions import NotFound, OperationAborted, SchemaMismatch


def test_map_ordered_keeps_input_order():
    def slow_for_small(n):
        time.sleep(0.01 * (5 - n))
        return n * 10

    with ExecutionContext(workers=4) as context:
        assert context.map_ordered(slow_for_small, [1, 2, 3, 4]) == [10, 20, 30, 40]


def test_map_ordered_reraises_first_failure():
    def fail_on_two(n):
        if n == 2:
            raise NotFound(f"File not found: {n}")
        return n

    with ExecutionContext(workers=2) as context:
        with pytest.raises(NotFound):
            context.map_ordered(fail_on_two, [1, 2, 3])


def test_map_ordered_times_out_without_waiting_for_running_units():
    started = time.perf_counter()

    with pytest.raises(OperationAborted):
        with ExecutionContext(workers=2, timeout_seconds=0.05) as context:
            context.map_ordered(lambda n: time.sleep(1.5), [1, 2])

    assert time.perf_counter() - started < 1.0


def test_single_worker_runs_inline():
    seen = []
    with ExecutionContext(workers=1) as context:
        context.map_ordered(seen.append, ["a", "b"])
        assert context._pool is None
    assert seen == ["a", "b"]


def test_count_reports_per_file_and_total(write_parquet):
    paths = [
        write_parquet("a.parquet", {"x": list(range(5))}),
        write_parquet("b.parquet", {"x": list(range(7))}),
    ]

    with ExecutionContext(workers=2) as context:
        counts, total = MultiFileCoordinator(paths, context).count()

    assert counts == [(paths[0], 5), (paths[1], 7)]
    assert total == 12


def test_combined_stats_need_matching_schemas(write_parquet):
    paths = [
        write_parquet("a.parquet", {"x": [1, 2]}),
        write_parquet("b.parquet", {"x": ["1", "2"]}),
    ]

    with ExecutionContext(workers=2) as context:
        coordinator = MultiFileCoordinator(paths, context)
        files = coordinator.probe_all()
        with pytest.raises(SchemaMismatch):
            coordinator.column_stats(files)
        per_file = coordinator.column_stats(files, combined=False)

    assert per_file[0][0].max == 2
    assert per_file[1][0].max == "2"


def test_combined_stats_fold_files(write_parquet):
    paths = [
        write_parquet("a.parquet", {"x": [5, None]}),
        write_parquet("b.parquet", {"x": [-3, 9]}),
    ]

    with ExecutionContext(workers=2) as context:
        coordinator = MultiFileCoordinator(paths, context)
        (combined,) = coordinator.column_stats(coordinator.probe_all())

    (x,) = combined
    assert (x.min, x.max, x.null_count, x.value_count) == (-3, 9, 1, 3)


def test_single_worker_still_honours_timeout():
    with pytest.raises(OperationAborted):
        with ExecutionContext(workers=1, timeout_seconds=0.05) as context:
            context.map_ordered(lambda n: time.sleep(0.3), [1, 2])


def test_single_item_still_honours_timeout():
    with pytest.raises(OperationAborted):
        with ExecutionContext(workers=4, timeout_seconds=0.05) as context:
            context.map_ordered(lambda n: time.sleep(0.3), [1])
