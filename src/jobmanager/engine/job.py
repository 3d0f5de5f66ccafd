"""The job entity and its binding to a caller-supplied action.

A job wraps any object that exposes the ``Runnable`` capability: a
``run()`` method taking no arguments and returning an integer status
code. The method is resolved and checked once, when the job is created.

Example:
    class Backup:
        def run(self) -> int:
            do_backup()
            return 1

    job = create_job(
        "nightly-backup",
        Backup(),
        first_run_at=datetime.now(timezone.utc),
        interval=DateOffset(days=1),
        kind=JobKind.REPEATABLE,
    )
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Callable, Protocol, runtime_checkable

from jobmanager.engine.errors import (
    BindingError,
    ExecutionError,
    ExecutionFailedError,
    InvalidJobError,
)
from jobmanager.engine.schedule import apply_offset, ensure_utc
from jobmanager.engine.types import DateOffset, JobKind, JobRecord, JobState

logger = logging.getLogger(__name__)

# Name of the action every bound object must expose
ACTION_NAME = "run"


@runtime_checkable
class Runnable(Protocol):
    """Capability a bound object must provide."""

    def run(self) -> int:
        ...


def _qualified_name(obj: Any) -> str:
    cls = type(obj)
    return f"{cls.__module__}:{cls.__qualname__}"


def bind_action(bound_object: Any) -> Callable[[], int]:
    """Resolve and validate the action of a bound object.

    Args:
        bound_object: Object expected to expose ``run() -> int``.

    Returns:
        The bound zero-argument callable.

    Raises:
        BindingError: If the action is missing, needs arguments, or is
            annotated with a return type other than ``int``.
    """
    type_name = type(bound_object).__name__
    action = getattr(bound_object, ACTION_NAME, None)

    if action is None or not callable(action):
        raise BindingError(
            f"Type {type_name} doesn't contain a '{ACTION_NAME}' method"
        )

    try:
        signature = inspect.signature(action)
    except (TypeError, ValueError) as e:
        raise BindingError(
            f"Cannot inspect '{ACTION_NAME}' of type {type_name}"
        ) from e

    required = [
        p for p in signature.parameters.values()
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required:
        names = ", ".join(p.name for p in required)
        raise BindingError(
            f"'{type_name}.{ACTION_NAME}' must take no arguments (requires: {names})"
        )

    returns = signature.return_annotation
    if returns is not inspect.Signature.empty and returns not in (int, "int"):
        raise BindingError(
            f"'{type_name}.{ACTION_NAME}' must return an integer, "
            f"annotated as {returns!r}"
        )

    return action


class Job:
    """A scheduled unit of work.

    Jobs are created with ``create_job`` and owned by a ``JobTable``;
    outside code should not mutate them directly once added.

    Attributes:
        id: Unique identifier within a table.
        next_run_at: Next scheduled execution (aware datetime).
        interval: Offset applied after each run of a repeatable job.
        state: Run statistics.
    """

    def __init__(
        self,
        job_id: str,
        bound_object: Any,
        action: Callable[[], int],
        next_run_at: datetime,
        interval: DateOffset,
        kind: JobKind,
    ) -> None:
        self.id = job_id
        self.next_run_at = ensure_utc(next_run_at)
        self.interval = interval
        self.state = JobState()
        self._kind = JobKind(kind)
        self._bound_object = bound_object
        self._action = action

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id!r}, kind={self._kind.value}, "
            f"next_run_at={self.next_run_at.isoformat()})"
        )

    @property
    def kind(self) -> JobKind:
        return self._kind

    @property
    def is_repeatable(self) -> bool:
        return self._kind == JobKind.REPEATABLE

    @property
    def bound_object(self) -> Any:
        return self._bound_object

    @property
    def target(self) -> str:
        """Import path of the bound object's type."""
        return _qualified_name(self._bound_object)

    def is_due(self, now: datetime) -> bool:
        """Check if the job's run time is strictly before ``now``."""
        return self.next_run_at < ensure_utc(now)

    def execute(self) -> None:
        """Invoke the bound action once.

        Raises:
            ExecutionFailedError: If the action returned 0.
            ExecutionError: If the action raised or returned a non-integer.
        """
        try:
            status = self._action()
        except ExecutionFailedError:
            raise
        except Exception as e:
            raise ExecutionError(f"Error while running job '{self.id}': {e}") from e

        if isinstance(status, bool) or not isinstance(status, int):
            raise ExecutionError(
                f"Job '{self.id}' returned {type(status).__name__}, expected int"
            )
        if status == 0:
            raise ExecutionFailedError(f"Job '{self.id}' returned 0")

    def advance_to_next_run(self) -> datetime:
        """Move ``next_run_at`` forward by the interval.

        Returns:
            The new next run time.
        """
        self.next_run_at = apply_offset(self.next_run_at, self.interval)
        return self.next_run_at

    def apply_record(self, record: JobRecord) -> None:
        """Take schedule and statistics from a persisted record."""
        self.next_run_at = ensure_utc(record.next_run_at)
        self.interval = record.interval
        self.state = record.state.model_copy()

    def to_record(self) -> JobRecord:
        """Build the persisted form of this job."""
        return JobRecord(
            id=self.id,
            kind=self._kind,
            next_run_at=self.next_run_at,
            interval=self.interval,
            target=self.target,
            state=self.state.model_copy(),
        )


def create_job(
    job_id: str,
    bound_object: Runnable,
    first_run_at: datetime,
    interval: DateOffset | None = None,
    kind: JobKind | str = JobKind.UNIQUE,
) -> Job:
    """Create a job bound to an object's ``run()`` action.

    Args:
        job_id: Identifier, unique within the table the job is added to.
        bound_object: Object exposing ``run() -> int``.
        first_run_at: First execution time (naive values are UTC).
        interval: Offset between runs; required to be positive for
            repeatable jobs.
        kind: Unique or repeatable.

    Returns:
        The new job.

    Raises:
        BindingError: If the object has no valid action.
        InvalidJobError: If a repeatable job has a non-positive interval.
    """
    action = bind_action(bound_object)
    kind = JobKind(kind)
    interval = interval or DateOffset()

    if kind == JobKind.REPEATABLE and not interval.is_positive():
        raise InvalidJobError(
            f"Repeatable job '{job_id}' needs a positive interval, got {interval!r}"
        )

    job = Job(job_id, bound_object, action, first_run_at, interval, kind)
    logger.debug(f"Created job {job!r} bound to {job.target}")
    return job
