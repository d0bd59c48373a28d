"""
Recurrence Expander

Turns one user-entered date plus a frequency and an occurrence count into the
ordered list of ISO calendar dates for the recurring siblings.

The same function runs wherever a schedule is needed (local path, remote
path, tests), so every caller produces byte-identical schedules.

RULES:
- Occurrences are silently clamped to [1, 24]
- Element 0 is always the input string, untouched
- Element i is the input advanced by interval(frequency) * i months
- The day of month is kept, or clamped to the last day of the target month
  (Jan 31 + 1 month is Feb 28/29, never March)
- Dates are naive calendar dates; no timezone is ever involved
"""

import calendar
import re
from datetime import date
from typing import Any, Optional, Union

from src.models.records import (
    FREQUENCY_INTERVAL_IN_MONTHS,
    Frequency,
    clamp_occurrences,
)


_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidDateError(ValueError):
    """A date string is not a real YYYY-MM-DD calendar date."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid date {value!r}. Use the YYYY-MM-DD format.")


def parse_iso_date(value: Any) -> date:
    """
    Strictly parse a YYYY-MM-DD string.

    Used at the validation boundary; the expander itself stays permissive.

    Raises:
        InvalidDateError: if the value is not a real calendar date
    """
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        raise InvalidDateError(value)
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDateError(value)


def days_in_month(year: int, month_index: int) -> int:
    """Number of days in a month, with a zero-based month index."""
    return calendar.monthrange(year, month_index + 1)[1]


def add_months_preserving_day(iso_date: str, months_to_add: int) -> str:
    """
    Advance an ISO date by a number of months, clamping the day.

    Malformed input is returned unchanged instead of raising.
    """
    parts = iso_date.split("-")
    if len(parts) != 3:
        return iso_date
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        return iso_date

    total_months = month - 1 + months_to_add
    # Python's // and % already floor toward negative infinity
    next_year = year + total_months // 12
    next_month_index = total_months % 12
    safe_day = min(day, days_in_month(next_year, next_month_index))

    return f"{next_year}-{next_month_index + 1:02d}-{safe_day:02d}"


def _coerce_frequency(frequency: Union[Frequency, str, None]) -> Frequency:
    if isinstance(frequency, Frequency):
        return frequency
    try:
        return Frequency(frequency)
    except ValueError:
        return Frequency.NONE


def expand(
    iso_date: str,
    frequency: Union[Frequency, str, None],
    occurrences: Any,
) -> list[str]:
    """
    Expand a recurrence into its schedule of ISO dates.

    Args:
        iso_date: First date, YYYY-MM-DD
        frequency: Frequency enum or its wire value
        occurrences: Requested count, clamped to [1, 24]

    Returns:
        A non-empty list whose first element is ``iso_date``
    """
    count = clamp_occurrences(occurrences)
    freq = _coerce_frequency(frequency)

    if freq is Frequency.NONE or count == 1:
        return [iso_date]

    interval = FREQUENCY_INTERVAL_IN_MONTHS[freq]
    schedule = [iso_date]
    for index in range(1, count):
        schedule.append(add_months_preserving_day(iso_date, interval * index))
    return schedule


def format_recurrence_progress(
    index: Optional[int],
    total: Optional[int],
) -> Optional[str]:
    """Label like "Installment 3/12", or None for records outside a series."""
    if not isinstance(index, int) or not isinstance(total, int):
        return None
    if total <= 1 or index < 1:
        return None
    return f"Installment {index}/{total}"
