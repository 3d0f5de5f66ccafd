"""Type definitions for the job engine.

This module defines the Pydantic models used for job intervals,
run statistics and the persisted job records.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobKind(str, Enum):
    """Post-execution policy of a job.

    Attributes:
        UNIQUE: Runs once, then is removed from the table.
        REPEATABLE: Rescheduled by its interval after every run.
    """

    UNIQUE = "unique"
    REPEATABLE = "repeatable"


class DateOffset(BaseModel):
    """A compound calendar increment.

    Fields are applied in declaration order, calendar units first, by
    ``jobmanager.engine.schedule.apply_offset``.

    Attributes:
        years: Calendar years to add.
        months: Calendar months to add.
        days: Days to add.
        hours: Hours to add.
        minutes: Minutes to add.
        seconds: Seconds to add.
        milliseconds: Milliseconds to add.
    """

    model_config = ConfigDict(frozen=True)

    years: int = Field(default=0, description="Calendar years")
    months: int = Field(default=0, description="Calendar months")
    days: int = Field(default=0, description="Days")
    hours: int = Field(default=0, description="Hours")
    minutes: int = Field(default=0, description="Minutes")
    seconds: int = Field(default=0, description="Seconds")
    milliseconds: int = Field(default=0, description="Milliseconds")

    def is_zero(self) -> bool:
        """Check whether every field is zero."""
        return not any(self.model_dump().values())

    def is_positive(self) -> bool:
        """Check whether the offset always moves a date forward.

        Returns:
            True if no field is negative and at least one is positive.
        """
        values = self.model_dump().values()
        return all(v >= 0 for v in values) and any(v > 0 for v in values)

    def describe(self) -> str:
        """Get a short human-readable form, e.g. ``1mo 2d 30s``."""
        units = (
            ("years", "y"),
            ("months", "mo"),
            ("days", "d"),
            ("hours", "h"),
            ("minutes", "m"),
            ("seconds", "s"),
            ("milliseconds", "ms"),
        )
        parts = [
            f"{getattr(self, name)}{suffix}"
            for name, suffix in units
            if getattr(self, name)
        ]
        return " ".join(parts) or "0s"


class JobState(BaseModel):
    """Runtime statistics for a job.

    Attributes:
        last_run_at: Timestamp of the last execution.
        run_count: Total number of executions.
        error_count: Number of failed executions.
        last_error: Error message from the last failed execution.
    """

    last_run_at: datetime | None = Field(
        default=None,
        description="Last execution time"
    )
    run_count: int = Field(
        default=0,
        description="Total number of executions"
    )
    error_count: int = Field(
        default=0,
        description="Number of failed executions"
    )
    last_error: str | None = Field(
        default=None,
        description="Error from last failed execution"
    )


class JobRecord(BaseModel):
    """Persisted form of a job.

    The bound action itself is not stored; ``target`` names the type of
    the bound object so a loader can re-create it by convention.

    Attributes:
        id: Unique job identifier.
        kind: Job kind, used as the record discriminator.
        next_run_at: Next scheduled execution.
        interval: Offset between two executions.
        target: Import path of the bound object's type (``module:QualName``).
        state: Run statistics.
    """

    id: str = Field(..., description="Unique job identifier")
    kind: JobKind = Field(..., description="Job kind")
    next_run_at: datetime = Field(..., description="Next scheduled execution")
    interval: DateOffset = Field(
        default_factory=DateOffset,
        description="Offset between two executions"
    )
    target: str | None = Field(
        default=None,
        description="Import path of the bound object's type"
    )
    state: JobState = Field(
        default_factory=JobState,
        description="Run statistics"
    )

    @property
    def is_repeatable(self) -> bool:
        return self.kind == JobKind.REPEATABLE
