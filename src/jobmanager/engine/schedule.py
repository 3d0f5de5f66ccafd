"""Schedule computation for jobs.

This module handles applying a DateOffset to a timestamp and the
timezone normalization shared by the rest of the engine.
"""

import calendar
from datetime import datetime, timedelta, timezone

from jobmanager.engine.types import DateOffset


def ensure_utc(moment: datetime) -> datetime:
    """Attach UTC to a naive datetime.

    Args:
        moment: A naive or aware datetime.

    Returns:
        An aware datetime; naive values are taken as UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def utcnow() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month length.

    Args:
        moment: Starting point.
        months: Months to add (may be negative).

    Returns:
        The shifted datetime. Jan 31 + 1 month gives the last day of February.
    """
    if months == 0:
        return moment

    total = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(total, 12)
    month += 1

    if not 1 <= year <= 9999:
        raise OverflowError(f"Date out of range after adding {months} months")

    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def add_years(moment: datetime, years: int) -> datetime:
    """Add calendar years (Feb 29 clamps to Feb 28 in non-leap years)."""
    return add_months(moment, years * 12)


def apply_offset(moment: datetime, offset: DateOffset) -> datetime:
    """Apply an offset to a timestamp.

    Calendar units are resolved before fixed durations:
    years, months, days, hours, minutes, seconds, milliseconds.

    Args:
        moment: Starting point.
        offset: The increment to apply.

    Returns:
        The shifted timestamp.
    """
    result = add_years(moment, offset.years)
    result = add_months(result, offset.months)
    result += timedelta(days=offset.days)
    result += timedelta(hours=offset.hours)
    result += timedelta(minutes=offset.minutes)
    result += timedelta(seconds=offset.seconds)
    result += timedelta(milliseconds=offset.milliseconds)
    return result


def time_until(moment: datetime, now: datetime | None = None) -> timedelta:
    """Get the time remaining until a timestamp.

    Args:
        moment: Target time.
        now: Current time (defaults to UTC now).

    Returns:
        Remaining time; negative if the moment has passed.
    """
    now = ensure_utc(now) if now else utcnow()
    return ensure_utc(moment) - now
