"""The authoritative in-memory job table.

The table owns its jobs and persists after every structural change:
the full job set is saved, then the snapshot is loaded back into a
shadow copy. ``add`` consults that shadow copy so a job re-registered
after a restart resumes its saved schedule. Records loaded at startup
stay in the shadow copy until their job is re-added, even after the
snapshot file has been rewritten without them.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path

from jobmanager.engine.errors import DuplicateJobError, InvalidJobError, NotFoundError
from jobmanager.engine.job import Job
from jobmanager.engine.schedule import ensure_utc
from jobmanager.engine.storage import JsonSnapshotBackend, SnapshotBackend
from jobmanager.engine.types import JobRecord

logger = logging.getLogger(__name__)


class JobTable:
    """Ordered, id-unique collection of jobs backed by a snapshot file.

    All reads and writes are serialized by one re-entrant lock, held for
    the duration of any persistence I/O.

    Args:
        path: Snapshot file; created empty if missing.
        backend: Snapshot store (defaults to JSON files).
    """

    def __init__(
        self,
        path: str | Path,
        backend: SnapshotBackend | None = None,
    ) -> None:
        self._path = Path(path)
        self._backend = backend or JsonSnapshotBackend()
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}

        self._backend.ensure(self._path)
        self._pending: dict[str, JobRecord] = self._load_saved()
        self._saved: dict[str, JobRecord] = dict(self._pending)
        logger.info(f"Loaded {len(self._pending)} saved job record(s) from {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job: Job | str) -> bool:
        job_id = job if isinstance(job, str) else job.id
        with self._lock:
            return job_id in self._jobs

    def _load_saved(self) -> dict[str, JobRecord]:
        return {record.id: record for record in self._backend.load(self._path)}

    def _persist(self) -> None:
        """Save the table, then reload the snapshot shadow copy."""
        self._backend.save(self._path, list(self._jobs.values()))
        saved = self._load_saved()
        for job_id, record in self._pending.items():
            saved.setdefault(job_id, record)
        self._saved = saved

    def add(self, job: Job) -> Job:
        """Add a job, resuming its saved schedule if the snapshot has one.

        Args:
            job: The job to add.

        Returns:
            The same job, possibly with schedule taken from the snapshot.

        Raises:
            InvalidJobError: If the job id is empty.
            DuplicateJobError: If a live job has the same id.
        """
        if not job.id:
            raise InvalidJobError("Job id can't be empty")

        with self._lock:
            if job.id in self._jobs:
                raise DuplicateJobError(job.id)

            self._pending.pop(job.id, None)
            saved = self._saved.get(job.id)
            if saved is not None:
                job.apply_record(saved)
                logger.info(
                    f"Resumed job {job.id} from snapshot, next run {job.next_run_at.isoformat()}"
                )

            self._jobs[job.id] = job
            self._persist()

        logger.info(f"Added job {job.id} ({job.kind.value})")
        return job

    def remove(self, job: Job | str) -> Job:
        """Remove a job by identity.

        Args:
            job: The job or its id. A job object only matches itself,
                not a later job registered under the same id.

        Returns:
            The removed job.

        Raises:
            NotFoundError: If no matching live job exists.
        """
        job_id = job if isinstance(job, str) else job.id

        with self._lock:
            live = self._jobs.get(job_id)
            if live is None or (not isinstance(job, str) and live is not job):
                raise NotFoundError(job_id)
            removed = self._jobs.pop(job_id)
            self._persist()

        logger.info(f"Removed job {job_id}")
        return removed

    def reschedule(self, job: Job) -> datetime:
        """Advance a live job to its next run without persisting.

        Returns:
            The job's new next run time.
        """
        with self._lock:
            return job.advance_to_next_run()

    def flush(self) -> None:
        """Force a persistence cycle."""
        with self._lock:
            self._persist()

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        """List live jobs in table order."""
        with self._lock:
            return list(self._jobs.values())

    def due_jobs(self, now: datetime) -> list[Job]:
        """List jobs whose next run is strictly before ``now``, in table order."""
        now = ensure_utc(now)
        with self._lock:
            return [job for job in self._jobs.values() if job.is_due(now)]

    def snapshot(self) -> list[JobRecord]:
        """Get the shadow copy: the last persistence load plus startup
        records whose job has not been re-added yet.
        """
        with self._lock:
            return list(self._saved.values())
