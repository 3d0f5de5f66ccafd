"""jobmanager - An in-process scheduler for unique and repeatable jobs."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("jobmanager")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from jobmanager.engine import (
    DateOffset,
    Job,
    JobKind,
    Scheduler,
    create_job,
    create_scheduler,
)

__all__ = ["DateOffset", "Job", "JobKind", "Scheduler", "create_job", "create_scheduler"]
