"""Exception hierarchy for the job engine."""


class JobManagerError(Exception):
    """Base class for every error raised by the engine."""


class BindingError(JobManagerError, TypeError):
    """The bound object does not expose a valid ``run() -> int`` action."""


class InvalidJobError(JobManagerError, ValueError):
    """A job's identity or interval is unusable."""


class DuplicateJobError(JobManagerError):
    """A live job with the same id is already in the table."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job '{job_id}' already exists")
        self.job_id = job_id


class NotFoundError(JobManagerError, KeyError):
    """No live job with the given id is in the table."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job '{self.job_id}' not found"


class ExecutionFailedError(JobManagerError):
    """The job ran and signaled failure through its status code."""


class ExecutionError(JobManagerError):
    """The job's action raised; the original exception is the ``__cause__``."""


class SnapshotError(JobManagerError):
    """The snapshot file could not be read or parsed."""
