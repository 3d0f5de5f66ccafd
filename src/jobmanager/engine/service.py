"""Scheduler service driving the job table from a timer thread.

The scheduler owns one JobTable, one journal and one daemon thread.
Every tick runs the due jobs synchronously, reschedules repeatable ones,
removes unique ones, and persists the result.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path

from jobmanager.engine.errors import ExecutionError, ExecutionFailedError, NotFoundError
from jobmanager.engine.job import Job
from jobmanager.engine.journal import DEFAULT_MAX_BYTES, JournalSink
from jobmanager.engine.schedule import ensure_utc, utcnow
from jobmanager.engine.storage import SnapshotBackend
from jobmanager.engine.table import JobTable

logger = logging.getLogger(__name__)

_TICK_TITLE = "Tick"


def _describe_failure(exc: BaseException) -> str:
    """Render an exception with its cause chain on one line."""
    parts = []
    current: BaseException | None = exc
    while current is not None:
        parts.append(f"{type(current).__name__}: {current}")
        current = current.__cause__
    return " <- ".join(parts)


class Scheduler:
    """Runs due jobs of a JobTable on a fixed tick.

    Example:
        scheduler = Scheduler("jobs.json", "jobs.log", tick_interval_ms=1000)
        scheduler.add_job(create_job("ping", Ping(), now, DateOffset(minutes=5),
                                     JobKind.REPEATABLE))
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        snapshot_path: str | Path,
        log_path: str | Path,
        tick_interval_ms: int = 1000,
        *,
        first_tick_delay_ms: int = 10,
        log_max_bytes: int = DEFAULT_MAX_BYTES,
        log_backup_count: int = 1,
        backend: SnapshotBackend | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            snapshot_path: Snapshot file for the job table.
            log_path: Journal file.
            tick_interval_ms: Milliseconds between two ticks.
            first_tick_delay_ms: Delay before the first tick after start.
            log_max_bytes: Journal size budget.
            log_backup_count: Rotated journal files to keep.
            backend: Snapshot store override.
        """
        if tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be positive")

        self._table = JobTable(snapshot_path, backend=backend)
        self._journal = JournalSink(
            log_path,
            max_bytes=log_max_bytes,
            backup_count=log_backup_count,
        )
        self._tick_interval = tick_interval_ms / 1000
        self._first_tick_delay = max(first_tick_delay_ms, 0) / 1000

        self._running = False
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()

    @property
    def table(self) -> JobTable:
        return self._table

    @property
    def journal(self) -> JournalSink:
        return self._journal

    @property
    def is_running(self) -> bool:
        return self._running

    # -- Job management --------------------------------------------------------

    def add_job(self, job: Job) -> Job:
        """Register a job; see ``JobTable.add``."""
        return self._table.add(job)

    def remove_job(self, job: Job | str) -> Job:
        """Unregister a job; see ``JobTable.remove``."""
        return self._table.remove(job)

    def get_job(self, job_id: str) -> Job | None:
        return self._table.get(job_id)

    def list_jobs(self) -> list[Job]:
        return self._table.list_jobs()

    def flush(self) -> None:
        """Force a persistence cycle of the job table."""
        self._table.flush()

    # -- Tick ------------------------------------------------------------------

    def tick(self, now: datetime | None = None) -> list[Job]:
        """Run every job due at ``now``.

        A failing job is journaled and then rescheduled or removed exactly
        as if it had succeeded; it never stops the rest of the tick.
        Ticks never overlap: a call made while another tick runs waits for it.

        Args:
            now: Tick time (defaults to UTC now).

        Returns:
            The jobs that were executed.
        """
        now = ensure_utc(now) if now else utcnow()
        with self._tick_lock:
            return self._tick(now)

    def _tick(self, now: datetime) -> list[Job]:
        self._journal.write(_TICK_TITLE, "Ticking. Time to check jobs.")

        due = self._table.due_jobs(now)
        to_remove: list[Job] = []
        rescheduled = False

        for job in due:
            self._run_job(job, now)

            if job.is_repeatable:
                try:
                    next_run = self._table.reschedule(job)
                except OverflowError as e:
                    to_remove.append(job)
                    self._journal.write(
                        _TICK_TITLE,
                        f"{job.id}: next run out of range, removing job. {e}",
                        level=logging.ERROR,
                    )
                    logger.warning(f"Job {job.id} can no longer be rescheduled: {e}")
                    continue
                rescheduled = True
                self._journal.write(
                    _TICK_TITLE, f"{job.id}: repetition, next run {next_run.isoformat()}."
                )
            else:
                to_remove.append(job)
                self._journal.write(_TICK_TITLE, f"{job.id}: removing job.")

        for job in to_remove:
            try:
                self._table.remove(job)
            except NotFoundError:
                logger.warning(f"Job {job.id} was removed or replaced during the tick")

        if rescheduled:
            self._table.flush()

        if due:
            logger.debug(f"Tick at {now.isoformat()} ran {len(due)} job(s)")
        return due

    def _run_job(self, job: Job, now: datetime) -> None:
        """Execute one job and record the outcome in its state."""
        self._journal.write(_TICK_TITLE, f"{job.id}: execution.")
        job.state.last_run_at = now
        job.state.run_count += 1

        try:
            job.execute()
        except (ExecutionFailedError, ExecutionError) as e:
            detail = _describe_failure(e)
            job.state.error_count += 1
            job.state.last_error = detail
            self._journal.write(
                _TICK_TITLE, f"{job.id}: execution failed. {detail}", level=logging.ERROR
            )
            logger.warning(f"Job {job.id} failed: {detail}")
        else:
            job.state.last_error = None

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the timer thread."""
        if self._running:
            logger.warning("Scheduler is already running")
            return

        previous = self._thread
        if previous is not None and previous is not threading.current_thread():
            logger.info("Waiting for the previous timer thread to finish")
            previous.join()

        self._running = True
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(self._stop_event,),
            daemon=True,
            name=f"Scheduler-{self._table.path.name}",
        )
        self._thread.start()
        logger.info(
            f"Scheduler started with {len(self._table)} job(s), "
            f"tick every {self._tick_interval:.3f}s"
        )

    def stop(self, timeout: float | None = None) -> None:
        """Stop ticking; an in-flight tick runs to completion.

        Args:
            timeout: Seconds to wait for the timer thread (None waits). If
                it expires, the next ``start`` waits for that thread.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if thread is not None and not thread.is_alive():
            self._thread = None
        logger.info("Scheduler stopped")

    def close(self) -> None:
        """Stop the scheduler and release the journal."""
        self.stop()
        self._journal.close()

    def _run_loop(self, stop_event: threading.Event) -> None:
        """Main timer loop; exits once its own stop event is set."""
        delay = self._first_tick_delay
        while not stop_event.wait(delay):
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Error in scheduler tick: {e}")
            delay = self._tick_interval

    def __enter__(self) -> Scheduler:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_scheduler(
    snapshot_path: str | Path,
    log_path: str | Path,
    tick_interval_ms: int,
    **kwargs,
) -> Scheduler:
    """Create and start a scheduler.

    Args:
        snapshot_path: Snapshot file for the job table.
        log_path: Journal file.
        tick_interval_ms: Milliseconds between two ticks.
        **kwargs: Extra ``Scheduler`` options.

    Returns:
        The running scheduler.
    """
    scheduler = Scheduler(snapshot_path, log_path, tick_interval_ms, **kwargs)
    scheduler.start()
    return scheduler
