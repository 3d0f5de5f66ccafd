"""Tests for the scheduler tick and timer lifecycle."""

import threading
import time
from datetime import timedelta
from unittest.mock import patch

import pytest

from jobmanager.engine import (
    DateOffset,
    JobKind,
    Scheduler,
    create_job,
    create_scheduler,
)
from jobmanager.engine.storage import JsonSnapshotBackend

from sample_jobs import CountingJob, FailingJob, RaisingJob


class TestTick:
    """Tests for Scheduler.tick."""

    def test_unique_job_runs_once_and_is_removed(self, scheduler, snapshot_path, now):
        obj = CountingJob()
        scheduler.add_job(create_job("A", obj, now - timedelta(seconds=1), kind=JobKind.UNIQUE))

        ran = scheduler.tick(now)

        assert [j.id for j in ran] == ["A"]
        assert obj.calls == 1
        assert scheduler.list_jobs() == []
        assert JsonSnapshotBackend().load(snapshot_path) == []

    def test_unique_id_reusable_after_tick(self, scheduler, now):
        scheduler.add_job(create_job("A", CountingJob(), now - timedelta(seconds=1)))
        scheduler.tick(now)

        scheduler.add_job(create_job("A", CountingJob(), now + timedelta(hours=1)))
        assert scheduler.get_job("A") is not None

    def test_repeatable_job_is_rescheduled(self, scheduler, snapshot_path, now):
        obj = CountingJob()
        scheduler.add_job(create_job(
            "B", obj, now - timedelta(seconds=1), DateOffset(seconds=30), JobKind.REPEATABLE,
        ))

        scheduler.tick(now)

        job = scheduler.get_job("B")
        assert obj.calls == 1
        assert job.next_run_at == now - timedelta(seconds=1) + timedelta(seconds=30)
        assert job.next_run_at > now

        records = JsonSnapshotBackend().load(snapshot_path)
        assert records[0].next_run_at == job.next_run_at
        assert records[0].state.run_count == 1
        assert records[0].state.last_run_at == now

    def test_not_due_jobs_are_untouched(self, scheduler, now):
        obj = CountingJob()
        scheduler.add_job(create_job("later", obj, now + timedelta(minutes=1)))

        assert scheduler.tick(now) == []
        assert obj.calls == 0
        assert scheduler.get_job("later") is not None

    def test_failure_is_contained(self, scheduler, log_path, now):
        """A job returning 0 is journaled and handled per its kind."""
        failing = FailingJob()
        after = CountingJob()
        repeat_failing = FailingJob()
        past = now - timedelta(seconds=1)

        scheduler.add_job(create_job("bad-once", failing, past))
        scheduler.add_job(create_job(
            "bad-repeat", repeat_failing, past, DateOffset(minutes=1), JobKind.REPEATABLE,
        ))
        scheduler.add_job(create_job("good", after, past))

        scheduler.tick(now)

        assert failing.calls == 1
        assert after.calls == 1
        assert scheduler.get_job("bad-once") is None
        assert scheduler.get_job("good") is None

        repeat = scheduler.get_job("bad-repeat")
        assert repeat.next_run_at == past + timedelta(minutes=1)
        assert repeat.state.error_count == 1
        assert "ExecutionFailedError" in repeat.state.last_error

        journal = log_path.read_text()
        assert "bad-once: execution failed. ExecutionFailedError" in journal

    def test_exception_is_journaled_with_cause(self, scheduler, log_path, now):
        scheduler.add_job(create_job("boom", RaisingJob(), now - timedelta(seconds=1)))

        scheduler.tick(now)

        journal = log_path.read_text()
        assert "ExecutionError" in journal
        assert "RuntimeError: disk full" in journal
        assert scheduler.get_job("boom") is None

    def test_journal_trace(self, scheduler, log_path, now):
        past = now - timedelta(seconds=1)
        scheduler.add_job(create_job("once", CountingJob(), past))
        scheduler.add_job(create_job(
            "again", CountingJob(), past, DateOffset(seconds=5), JobKind.REPEATABLE,
        ))

        scheduler.tick(now)

        journal = log_path.read_text()
        assert "Ticking. Time to check jobs." in journal
        assert "once: execution." in journal
        assert "once: removing job." in journal
        assert "again: repetition" in journal

    def test_job_removed_during_tick(self, scheduler, now):
        """Removing a unique job from inside its own run is tolerated."""

        class SelfRemoving:
            def run(self) -> int:
                scheduler.remove_job("self")
                return 1

        scheduler.add_job(create_job("self", SelfRemoving(), now - timedelta(seconds=1)))
        scheduler.tick(now)

        assert scheduler.list_jobs() == []

    def test_replacement_added_during_tick_survives(self, scheduler, now):
        replacement = create_job("swap", CountingJob(), now + timedelta(hours=1))

        class Replacing:
            def run(self) -> int:
                scheduler.remove_job("swap")
                scheduler.add_job(replacement)
                return 1

        scheduler.add_job(create_job("swap", Replacing(), now - timedelta(seconds=1)))
        scheduler.tick(now)

        assert scheduler.get_job("swap") is replacement

    def test_unreschedulable_job_is_removed(self, scheduler, log_path, now):
        """A next run past the calendar range drops the job without
        stranding the other jobs of the tick.
        """
        past = now - timedelta(seconds=1)
        once = CountingJob()
        scheduler.add_job(create_job("once", once, past))
        scheduler.add_job(create_job(
            "far", CountingJob(), past, DateOffset(years=9000), JobKind.REPEATABLE,
        ))

        scheduler.tick(now)
        scheduler.tick(now)

        assert once.calls == 1
        assert scheduler.list_jobs() == []
        assert "far: next run out of range" in log_path.read_text()

    def test_no_flush_without_reschedule(self, scheduler, now):
        scheduler.add_job(create_job("later", CountingJob(), now + timedelta(hours=1)))

        with patch.object(scheduler.table, "flush") as flush:
            scheduler.tick(now)
        flush.assert_not_called()


class TestRestart:
    """Tests for schedule recovery across scheduler instances."""

    def test_snapshot_schedule_wins(self, snapshot_path, log_path, now):
        first = Scheduler(snapshot_path, log_path)
        first.add_job(create_job(
            "report", CountingJob(), now - timedelta(seconds=1),
            DateOffset(minutes=20), JobKind.REPEATABLE,
        ))
        first.tick(now)
        saved_next = first.get_job("report").next_run_at
        first.close()

        second = Scheduler(snapshot_path, log_path)
        job = second.add_job(create_job(
            "report", CountingJob(), now + timedelta(days=2),
            DateOffset(hours=6), JobKind.REPEATABLE,
        ))
        second.close()

        assert job.next_run_at == saved_next
        assert job.interval == DateOffset(minutes=20)


class TestLifecycle:
    """Tests for the timer thread."""

    def test_rejects_non_positive_tick(self, snapshot_path, log_path):
        with pytest.raises(ValueError):
            Scheduler(snapshot_path, log_path, tick_interval_ms=0)

    def test_timer_runs_due_jobs(self, snapshot_path, log_path, now):
        ran = threading.Event()

        class Signal:
            def run(self) -> int:
                ran.set()
                return 1

        scheduler = create_scheduler(snapshot_path, log_path, tick_interval_ms=20)
        try:
            assert scheduler.is_running
            scheduler.add_job(create_job("signal", Signal(), now - timedelta(days=1)))
            assert ran.wait(timeout=5)
        finally:
            scheduler.close()

        assert not scheduler.is_running

    def test_no_ticks_after_stop(self, snapshot_path, log_path):
        scheduler = Scheduler(snapshot_path, log_path, tick_interval_ms=10)
        with patch.object(scheduler, "tick") as tick:
            scheduler.start()
            time.sleep(0.1)
            scheduler.stop()
            calls = tick.call_count
            time.sleep(0.1)

        assert calls > 0
        assert tick.call_count == calls
        scheduler.close()

    def test_tick_errors_do_not_kill_timer(self, snapshot_path, log_path):
        scheduler = Scheduler(snapshot_path, log_path, tick_interval_ms=10)
        with patch.object(scheduler, "tick", side_effect=OSError("disk")) as tick:
            scheduler.start()
            time.sleep(0.1)
            scheduler.stop()

        assert tick.call_count > 1
        scheduler.close()

    def test_context_manager(self, snapshot_path, log_path):
        with Scheduler(snapshot_path, log_path, tick_interval_ms=50) as scheduler:
            assert scheduler.is_running
        assert not scheduler.is_running

    def test_start_twice_is_noop(self, scheduler):
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        assert scheduler._thread is thread
        scheduler.stop()

    def test_restart_after_timed_out_stop(self, snapshot_path, log_path, now):
        """A restart waits for the previous timer thread; runs never overlap."""
        lock = threading.Lock()
        counts = {"active": 0, "peak": 0}

        class Slow:
            def run(self) -> int:
                with lock:
                    counts["active"] += 1
                    counts["peak"] = max(counts["peak"], counts["active"])
                time.sleep(0.05)
                with lock:
                    counts["active"] -= 1
                return 1

        scheduler = Scheduler(snapshot_path, log_path, tick_interval_ms=10)
        scheduler.add_job(create_job(
            "slow", Slow(), now - timedelta(days=1), DateOffset(milliseconds=1),
            JobKind.REPEATABLE,
        ))
        try:
            scheduler.start()
            time.sleep(0.03)
            old = scheduler._thread
            scheduler.stop(timeout=0.01)
            scheduler.start()

            assert not old.is_alive()
            time.sleep(0.15)
        finally:
            scheduler.close()

        assert counts["peak"] == 1

    def test_ticks_are_serialized(self, scheduler, now):
        entered = threading.Event()
        release = threading.Event()
        slow = CountingJob()

        class Blocking:
            def run(self) -> int:
                entered.set()
                release.wait(5)
                return 1

        scheduler.add_job(create_job("block", Blocking(), now - timedelta(seconds=1)))
        scheduler.add_job(create_job("after", slow, now - timedelta(seconds=1)))

        first = threading.Thread(target=scheduler.tick, args=(now,))
        first.start()
        assert entered.wait(5)

        second = threading.Thread(target=scheduler.tick, args=(now,))
        second.start()
        time.sleep(0.05)
        release.set()
        first.join(5)
        second.join(5)

        assert slow.calls == 1
