"""Tests for finance summaries."""

from datetime import date

import pytest

from src.queries import (
    available_years,
    compute_balance_snapshot,
    filter_by_period,
    format_date_display,
    format_period_label,
    matches_period,
    safe_date,
)


class TestBalanceSnapshot:

    def test_excluded_records_are_not_summed(self):
        snapshot = compute_balance_snapshot(
            expenses=[
                {"amount": 100.0},
                {"amount": 50.0, "excludeFromTotals": True},
            ],
            incomes=[{"amount": 400.0, "excludeFromTotals": False}],
            investments=[{"amount": 200.0}],
        )

        assert snapshot.total_expenses == 100.0
        assert snapshot.total_incomes == 400.0
        assert snapshot.total_investments == 200.0
        assert snapshot.net_balance == 300.0

    def test_empty(self):
        snapshot = compute_balance_snapshot([], [], [])
        assert snapshot.net_balance == 0.0


class TestPeriods:

    @pytest.mark.parametrize("value,expected", [
        ("2024-03-15", True),
        ("2024-03-15T10:00:00Z", True),
        ("2024-04-01", False),
        ("2023-03-15", False),
        ("garbage", False),
        (None, False),
    ])
    def test_matches_period(self, value, expected):
        assert matches_period(value, 2024, 3) is expected

    def test_filter_by_period_keeps_order(self):
        records = [
            {"id": "a", "date": "2024-03-20"},
            {"id": "b", "date": "2024-02-20"},
            {"id": "c", "date": "2024-03-01"},
        ]
        assert [r["id"] for r in filter_by_period(records, 2024, 3)] == ["a", "c"]

    def test_filter_by_other_date_field(self):
        tasks = [{"id": "t", "dueDate": "2024-03-02"}]
        assert filter_by_period(tasks, 2024, 3, date_field="dueDate") == tasks

    def test_available_years_includes_current_year(self):
        years = available_years(["2022-05-01", "bad", "2024-01-01"], today=date(2026, 1, 1))
        assert years == [2022, 2024, 2026]

    def test_safe_date(self):
        assert safe_date("2024-02-29") == date(2024, 2, 29)
        assert safe_date("2023-02-29") is None


class TestFormatting:

    def test_period_label(self):
        assert format_period_label(3, 2024) == "Mar/2024"
        assert format_period_label(13, 2024) == "13/2024"

    def test_date_display(self):
        assert format_date_display("2024-03-05") == "05/03/2024"
        assert format_date_display("bad") == "bad"
