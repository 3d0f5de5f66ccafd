"""Job engine for in-process scheduled execution.

This package provides:
- Jobs bound to any object exposing ``run() -> int``
- Unique (run once) and repeatable (calendar interval) jobs
- A job table persisted to a JSON snapshot after every change
- A timer-driven scheduler with a size-bounded journal

Example:
    from jobmanager.engine import DateOffset, JobKind, create_job, create_scheduler

    scheduler = create_scheduler("jobs.json", "jobs.log", tick_interval_ms=1000)
    scheduler.add_job(create_job(
        "report",
        Report(),
        first_run_at=datetime.now(timezone.utc),
        interval=DateOffset(minutes=20),
        kind=JobKind.REPEATABLE,
    ))
"""

from jobmanager.engine.definitions import JobDefinition, load_definitions, resolve_target
from jobmanager.engine.errors import (
    BindingError,
    DuplicateJobError,
    ExecutionError,
    ExecutionFailedError,
    InvalidJobError,
    JobManagerError,
    NotFoundError,
    SnapshotError,
)
from jobmanager.engine.job import Job, Runnable, bind_action, create_job
from jobmanager.engine.journal import JournalSink
from jobmanager.engine.schedule import apply_offset, time_until
from jobmanager.engine.service import Scheduler, create_scheduler
from jobmanager.engine.storage import JsonSnapshotBackend, SnapshotBackend
from jobmanager.engine.table import JobTable
from jobmanager.engine.types import DateOffset, JobKind, JobRecord, JobState

__all__ = [
    # Service
    "Scheduler",
    "create_scheduler",
    # Jobs
    "Job",
    "Runnable",
    "create_job",
    "bind_action",
    "JobTable",
    # Types
    "DateOffset",
    "JobKind",
    "JobRecord",
    "JobState",
    # Storage
    "SnapshotBackend",
    "JsonSnapshotBackend",
    "JournalSink",
    # Definitions
    "JobDefinition",
    "load_definitions",
    "resolve_target",
    # Schedule utilities
    "apply_offset",
    "time_until",
    # Errors
    "JobManagerError",
    "BindingError",
    "InvalidJobError",
    "DuplicateJobError",
    "NotFoundError",
    "ExecutionFailedError",
    "ExecutionError",
    "SnapshotError",
]
