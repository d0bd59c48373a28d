"""Recurrence expansion package."""

from src.recurrence.expander import (
    InvalidDateError,
    add_months_preserving_day,
    days_in_month,
    expand,
    format_recurrence_progress,
    parse_iso_date,
)

__all__ = [
    "InvalidDateError",
    "add_months_preserving_day",
    "days_in_month",
    "expand",
    "format_recurrence_progress",
    "parse_iso_date",
]
