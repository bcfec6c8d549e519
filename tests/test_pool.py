"""Tests for bounded fan-out."""

import threading

import pytest

from gt_installer.transfer.pool import run_bounded


class TestRunBounded:
    """Tests for run_bounded function."""

    def test_results_in_input_order(self):
        completed = []
        results = run_bounded(
            [3, 1, 2],
            lambda n: n * 10,
            max_workers=2,
            on_complete=lambda item, result: completed.append(item),
        )
        assert results == [30, 10, 20]
        assert sorted(completed) == [1, 2, 3]

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            run_bounded([1], lambda n: n, max_workers=0)

    def test_failure_aborts_and_joins(self):
        """The abort hook runs and in-flight work returns before the error surfaces."""
        abort = threading.Event()
        returned = threading.Event()

        def worker(item):
            if item == "fail":
                raise RuntimeError("boom")
            if item == "slow":
                abort.wait(timeout=5)
                returned.set()
            return item

        with pytest.raises(RuntimeError, match="boom"):
            run_bounded(
                ["slow", "fail", "queued"],
                worker,
                max_workers=2,
                on_abort=abort.set,
            )

        assert abort.is_set()
        assert returned.is_set()
