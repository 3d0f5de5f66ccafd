"""Shared fixtures for the engine tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from jobmanager.engine import JobTable, Scheduler


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "jobs.json"


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "jobs.log"


@pytest.fixture
def table(snapshot_path: Path) -> JobTable:
    return JobTable(snapshot_path)


@pytest.fixture
def scheduler(snapshot_path: Path, log_path: Path):
    """A scheduler whose timer is never started; tests call ``tick``."""
    sched = Scheduler(snapshot_path, log_path, tick_interval_ms=1000)
    yield sched
    sched.close()
