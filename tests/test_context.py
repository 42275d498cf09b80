"""Tests for the run context and completion tracking."""

import logging
import threading
import time

import pytest

from drivedl.download import (
    AdmissionScheduler,
    NullProgressAggregator,
    RunContext,
    RunStats,
    WorkTracker,
)


class TestWorkTracker:
    """Tests for WorkTracker."""

    def test_wait_with_nothing_pending(self):
        """Test waiting on an idle tracker returns immediately."""
        assert WorkTracker().wait(timeout=0.1) is True

    def test_done_without_add_raises(self):
        """Test unbalanced done() is an error."""
        with pytest.raises(RuntimeError):
            WorkTracker().done()

    def test_wait_covers_work_added_while_waiting(self):
        """Test units added after wait() began are waited for too."""
        tracker = WorkTracker()
        tracker.add()
        finished = []

        def worker():
            time.sleep(0.02)
            # Spawn follow-up work before finishing the first unit
            tracker.add()
            tracker.done()
            time.sleep(0.02)
            finished.append(True)
            tracker.done()

        threading.Thread(target=worker).start()

        assert tracker.wait(timeout=5) is True
        assert finished == [True]
        assert tracker.pending == 0

    def test_wait_timeout(self):
        """Test wait reports a timeout."""
        tracker = WorkTracker()
        tracker.add()

        assert tracker.wait(timeout=0.01) is False


class TestRunContext:
    """Tests for RunContext."""

    @pytest.fixture
    def context(self):
        ctx = RunContext(AdmissionScheduler(2), NullProgressAggregator())
        yield ctx
        ctx.shutdown()

    def test_default_pool_size(self, context):
        """Test the worker pool is twice the admission capacity."""
        assert context._executor._max_workers == 4

    def test_dispatch_and_wait(self, context):
        """Test wait returns after every dispatched unit ran."""
        results = []
        for i in range(5):
            context.dispatch(lambda i=i: results.append(i))

        context.wait()

        assert sorted(results) == [0, 1, 2, 3, 4]
        assert context.tracker.pending == 0

    def test_failing_unit_is_logged_and_counted(self, context, caplog):
        """Test an exception escaping a unit is recorded, not lost."""

        def boom():
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR, logger="drivedl.download.context"):
            future = context.dispatch(boom)
            context.wait()

        assert future.result() is False
        assert context.stats.failed == 1
        assert context.tracker.pending == 0
        assert "boom" in caplog.text

    def test_claim_path(self, context):
        """Test a path can only be claimed once per run."""
        assert context.claim_path("/tmp/a") is True
        assert context.claim_path("/tmp/a") is False
        assert context.claim_path("/tmp/b") is True


class TestRunStats:
    """Tests for RunStats."""

    def test_as_dict(self):
        """Test counters are reported under their summary keys."""
        stats = RunStats()
        stats.record_download(10)
        stats.record_download(5)
        stats.record_skip()
        stats.record_failure()

        assert stats.as_dict() == {
            "downloads": 2,
            "skips": 1,
            "errors": 1,
            "bytes": 15,
        }
