"""
Unit tests for the background dispatcher.
"""

import logging
import threading

import pytest

from buildservice.models.enums import BackgroundTaskState


@pytest.mark.unit
class TestBackgroundDispatcher:
    def test_submit_returns_before_task_finishes(self, dispatcher):
        release = threading.Event()
        task = dispatcher.submit("blocked", release.wait, 5)

        assert task.done is False
        release.set()
        assert dispatcher.wait_idle(timeout=5)
        assert task.state == BackgroundTaskState.COMPLETED

    def test_completed_task(self, dispatcher):
        results = []
        task = dispatcher.submit("append", results.append, 42)
        assert dispatcher.wait_idle(timeout=5)

        assert results == [42]
        assert task.state == BackgroundTaskState.COMPLETED
        assert task.started_at is not None
        assert task.finished_at is not None
        assert task.error is None

    def test_failed_task_is_logged_not_raised(self, dispatcher, caplog):
        def explode():
            raise RuntimeError("builder down")

        with caplog.at_level(logging.ERROR, logger="buildservice.background"):
            task = dispatcher.submit("explode", explode)
            assert dispatcher.wait_idle(timeout=5)

        assert task.state == BackgroundTaskState.FAILED
        assert task.error == "RuntimeError: builder down"
        assert "explode" in caplog.text

    def test_snapshot_counts_and_recent(self, dispatcher):
        def explode():
            raise ValueError("bad")

        dispatcher.submit("ok", lambda: None)
        dispatcher.submit("bad", explode)
        assert dispatcher.wait_idle(timeout=5)

        snapshot = dispatcher.snapshot()
        assert snapshot["counts"] == {"queued": 0, "running": 0, "completed": 1, "failed": 1}
        assert snapshot["active"] == []
        assert {t["name"] for t in snapshot["recent"]} == {"ok", "bad"}

    def test_snapshot_without_recent(self, dispatcher):
        dispatcher.submit("ok", lambda: None)
        assert dispatcher.wait_idle(timeout=5)
        assert dispatcher.snapshot(recent=0)["recent"] == []

    def test_history_is_bounded(self, dispatcher):
        for i in range(15):
            dispatcher.submit(f"task-{i}", lambda: None)
        assert dispatcher.wait_idle(timeout=5)

        assert len(dispatcher.snapshot(recent=100)["recent"]) == 10
        assert dispatcher.snapshot()["counts"]["completed"] == 15

    def test_wait_idle_times_out(self, dispatcher):
        release = threading.Event()
        dispatcher.submit("blocked", release.wait, 5)
        try:
            assert dispatcher.wait_idle(timeout=0.05) is False
        finally:
            release.set()
        assert dispatcher.wait_idle(timeout=5)
