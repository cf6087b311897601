"""
Billing window calculation.

Maps a window kind and the current moment to the date range and
granularity used to query the billing source. Only the calendar date of
``now`` matters, in whatever time zone the caller supplies it.
"""

from datetime import date, datetime, timedelta
from enum import Enum

from ..providers.base import TimeGranularity, TimeRange


class WindowKind(Enum):
    """Billing windows exported as gauges."""

    CURRENT_DAY = "current_day"
    MONTH_TO_DATE = "month_to_date"
    PREVIOUS_DAY = "previous_day"
    PREVIOUS_MONTH = "previous_month"


# Fixed refresh order
DEFAULT_WINDOWS = (
    WindowKind.CURRENT_DAY,
    WindowKind.MONTH_TO_DATE,
    WindowKind.PREVIOUS_DAY,
    WindowKind.PREVIOUS_MONTH,
)

_GRANULARITIES = {
    WindowKind.CURRENT_DAY: TimeGranularity.DAILY,
    WindowKind.MONTH_TO_DATE: TimeGranularity.MONTHLY,
    WindowKind.PREVIOUS_DAY: TimeGranularity.DAILY,
    WindowKind.PREVIOUS_MONTH: TimeGranularity.MONTHLY,
}


def _as_date(now: datetime | date) -> date:
    return now.date() if isinstance(now, datetime) else now


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def first_of_previous_month(day: date) -> date:
    return (first_of_month(day) - timedelta(days=1)).replace(day=1)


def granularity_for(kind: WindowKind) -> TimeGranularity:
    """Return the query granularity for a window kind."""
    return _GRANULARITIES[kind]


def compute_range(kind: WindowKind, now: datetime | date) -> TimeRange:
    """
    Compute the ``[start, end)`` date range of a billing window.

    Args:
        kind: Window to compute
        now: Reference moment; its calendar date is used as "today"

    Returns:
        TimeRange for the window
    """
    today = _as_date(now)
    yesterday = today - timedelta(days=1)

    if kind is WindowKind.CURRENT_DAY:
        return TimeRange(start=yesterday, end=today)

    if kind is WindowKind.MONTH_TO_DATE:
        start = first_of_month(today)
        # On the 1st the month-to-date range would be empty
        end = today if today > start else start + timedelta(days=1)
        return TimeRange(start=start, end=end)

    if kind is WindowKind.PREVIOUS_DAY:
        return TimeRange(start=today - timedelta(days=2), end=yesterday)

    if kind is WindowKind.PREVIOUS_MONTH:
        return TimeRange(start=first_of_previous_month(today), end=first_of_month(today))

    raise ValueError(f"Unsupported window kind: {kind}")


def parse_window_kind(name: str) -> WindowKind:
    """Parse a configured window name such as ``month_to_date``."""
    normalized = name.strip().lower().replace("-", "_")
    try:
        return WindowKind(normalized)
    except ValueError:
        valid = ", ".join(kind.value for kind in WindowKind)
        raise ValueError(f"Unknown window '{name}'. Must be one of: {valid}") from None
