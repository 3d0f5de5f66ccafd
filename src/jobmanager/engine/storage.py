"""JSON file persistence for job snapshots.

This module handles loading and saving job snapshots to a JSON file,
with file locking for concurrent access safety.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable

from filelock import FileLock
from pydantic import BaseModel, Field, ValidationError

from jobmanager.engine.errors import SnapshotError
from jobmanager.engine.job import Job
from jobmanager.engine.types import JobRecord

logger = logging.getLogger(__name__)

# Storage format version for future migrations
STORAGE_VERSION = 1


class SnapshotData(BaseModel):
    """Root structure of the snapshot file.

    Attributes:
        version: Storage format version.
        jobs: Persisted job records, in table order.
    """

    version: int = Field(default=STORAGE_VERSION, description="Storage format version")
    jobs: list[JobRecord] = Field(default_factory=list, description="Stored jobs")


class SnapshotBackend(ABC):
    """Durable store for job snapshots."""

    @abstractmethod
    def load(self, path: str | Path) -> list[JobRecord]:
        """Load the records stored at ``path``; missing or empty is ``[]``."""

    @abstractmethod
    def save(self, path: str | Path, jobs: Iterable[Job]) -> None:
        """Overwrite the snapshot at ``path`` with ``jobs``."""

    def ensure(self, path: str | Path) -> None:
        """Create an empty snapshot at ``path`` if none exists."""


class JsonSnapshotBackend(SnapshotBackend):
    """JSON file-based snapshot store.

    Each path gets a sibling ``.lock`` file so separate handles on the
    same snapshot never interleave reads and writes.

    Example:
        backend = JsonSnapshotBackend()
        backend.save("/path/to/jobs.json", table.list_jobs())
        records = backend.load("/path/to/jobs.json")
    """

    def __init__(self, lock_timeout: float = -1) -> None:
        """Initialize the backend.

        Args:
            lock_timeout: Seconds to wait for the file lock (-1 waits forever).
        """
        self._lock_timeout = lock_timeout
        self._locks: dict[Path, FileLock] = {}

    def _lock_for(self, path: Path) -> FileLock:
        lock = self._locks.get(path)
        if lock is None:
            lock = FileLock(str(path.with_name(path.name + ".lock")), timeout=self._lock_timeout)
            self._locks[path] = lock
        return lock

    def _read_data(self, path: Path) -> SnapshotData:
        """Read and parse a snapshot file.

        Raises:
            SnapshotError: If the file contains invalid JSON or records.
        """
        if not path.exists():
            return SnapshotData()

        content = path.read_text(encoding="utf-8")
        if not content.strip():
            return SnapshotData()

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Invalid JSON in snapshot {path}: {e}") from e

        if isinstance(data, list):
            # Bare list of records
            data = {"version": STORAGE_VERSION, "jobs": data}

        # Handle version migrations if needed
        version = data.get("version", 1)
        if version != STORAGE_VERSION:
            data = self._migrate_data(data, version)

        try:
            return SnapshotData.model_validate(data)
        except ValidationError as e:
            raise SnapshotError(f"Invalid job records in snapshot {path}: {e}") from e

    def _write_data(self, path: Path, data: SnapshotData) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data.model_dump(mode="json"), indent=2)
        path.write_text(content, encoding="utf-8")

    def _migrate_data(self, data: dict[str, Any], from_version: int) -> dict[str, Any]:
        """Migrate data from an older version.

        Args:
            data: Raw data from file.
            from_version: Version of the stored data.

        Returns:
            Migrated data at current version.
        """
        # Currently no migrations needed
        logger.info(f"Migrating snapshot from version {from_version} to {STORAGE_VERSION}")
        data["version"] = STORAGE_VERSION
        return data

    def ensure(self, path: str | Path) -> None:
        path = Path(path)
        with self._lock_for(path):
            if not path.exists():
                self._write_data(path, SnapshotData())
                logger.info(f"Created snapshot file: {path}")

    def load(self, path: str | Path) -> list[JobRecord]:
        path = Path(path)
        with self._lock_for(path):
            data = self._read_data(path)
        logger.debug(f"Loaded {len(data.jobs)} job records from {path}")
        return data.jobs

    def save(self, path: str | Path, jobs: Iterable[Job]) -> None:
        path = Path(path)
        data = SnapshotData(jobs=[job.to_record() for job in jobs])
        with self._lock_for(path):
            self._write_data(path, data)
        logger.debug(f"Saved {len(data.jobs)} jobs to {path}")

    def remove_record(self, path: str | Path, job_id: str) -> bool:
        """Remove a record directly from a snapshot file.

        Used for offline maintenance; a running table rewrites the file on
        its next mutation.

        Args:
            path: Snapshot path.
            job_id: ID of the record to remove.

        Returns:
            True if the record was found and removed.
        """
        path = Path(path)
        with self._lock_for(path):
            data = self._read_data(path)
            original_count = len(data.jobs)
            data.jobs = [r for r in data.jobs if r.id != job_id]

            if len(data.jobs) < original_count:
                self._write_data(path, data)
                logger.info(f"Removed job record: {job_id}")
                return True

            return False
