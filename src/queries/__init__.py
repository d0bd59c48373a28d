"""Finance summary package."""

from src.queries.balance import (
    BalanceSnapshot,
    available_years,
    compute_balance_snapshot,
    filter_by_period,
    format_date_display,
    format_period_label,
    matches_period,
    safe_date,
    sum_included,
)

__all__ = [
    "BalanceSnapshot",
    "available_years",
    "compute_balance_snapshot",
    "filter_by_period",
    "format_date_display",
    "format_period_label",
    "matches_period",
    "safe_date",
    "sum_included",
]
