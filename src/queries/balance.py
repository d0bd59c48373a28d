"""
Finance Summaries

Deterministic aggregations over the in-memory finance collections.
Records flagged excludeFromTotals are listed but never summed.
"""

from datetime import date
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field


MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class BalanceSnapshot(BaseModel):
    """Totals of the finance stores."""

    total_expenses: float = 0.0
    total_incomes: float = 0.0
    total_investments: float = 0.0
    net_balance: float = Field(
        default=0.0,
        description="Incomes minus expenses; investments are not subtracted"
    )


def sum_included(records: Iterable[dict[str, Any]]) -> float:
    """Sum amounts, skipping records excluded from totals."""
    total = 0.0
    for record in records:
        if record.get("excludeFromTotals"):
            continue
        total += float(record.get("amount") or 0)
    return total


def compute_balance_snapshot(
    expenses: Iterable[dict[str, Any]],
    incomes: Iterable[dict[str, Any]],
    investments: Iterable[dict[str, Any]],
) -> BalanceSnapshot:
    total_expenses = sum_included(expenses)
    total_incomes = sum_included(incomes)
    return BalanceSnapshot(
        total_expenses=total_expenses,
        total_incomes=total_incomes,
        total_investments=sum_included(investments),
        net_balance=total_incomes - total_expenses,
    )


def safe_date(value: Any) -> Optional[date]:
    """Parse the date part of an ISO string; None when it is not a date."""
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def matches_period(value: Any, year: int, month: int) -> bool:
    parsed = safe_date(value)
    if parsed is None:
        return False
    return parsed.year == year and parsed.month == month


def filter_by_period(
    records: Iterable[dict[str, Any]],
    year: int,
    month: int,
    date_field: str = "date",
) -> list[dict[str, Any]]:
    """Records whose date falls in the given month, order preserved."""
    return [r for r in records if matches_period(r.get(date_field), year, month)]


def available_years(dates: Iterable[Any], today: Optional[date] = None) -> list[int]:
    """Distinct years present in the dates plus the current year, ascending."""
    years = {parsed.year for parsed in map(safe_date, dates) if parsed is not None}
    years.add((today or date.today()).year)
    return sorted(years)


def format_period_label(month: int, year: int) -> str:
    label = MONTH_LABELS[month - 1] if 1 <= month <= 12 else str(month)
    return f"{label}/{year}"


def format_date_display(value: str) -> str:
    """YYYY-MM-DD to DD/MM/YYYY; anything else is returned unchanged."""
    parts = value.split("-")
    if len(parts) != 3 or not all(parts):
        return value
    year, month, day = parts
    return f"{day.zfill(2)}/{month.zfill(2)}/{year}"
