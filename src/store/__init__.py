"""
Record Store Package

One ReconcilingStore per domain, configured by a DomainSpec, plus the
FinanceCategoryStore for the finance category lists. Both build on
DualModeStore.
"""

from src.store.domains import (
    ALL_DOMAINS,
    CALENDAR,
    EXPENSES,
    FINANCE_DOMAINS,
    INCOMES,
    INVESTMENTS,
    NOTES,
    RELATIONSHIPS,
    TASKS,
    TIMECLOCK,
    DomainSpec,
    merge_records,
    remove_record,
    sort_records,
)
from src.store.notices import Notice, NoticeLevel, Notifier
from src.store.base import DualModeStore, MutationPath, MutationResult, StoreState
from src.store.categories import FinanceCategoryStore
from src.store.reconciling import ReconcilingStore

__all__ = [
    # Domains
    "ALL_DOMAINS",
    "CALENDAR",
    "EXPENSES",
    "FINANCE_DOMAINS",
    "INCOMES",
    "INVESTMENTS",
    "NOTES",
    "RELATIONSHIPS",
    "TASKS",
    "TIMECLOCK",
    "DomainSpec",
    "merge_records",
    "remove_record",
    "sort_records",
    # Notices
    "Notice",
    "NoticeLevel",
    "Notifier",
    # Store
    "DualModeStore",
    "FinanceCategoryStore",
    "MutationPath",
    "MutationResult",
    "ReconcilingStore",
    "StoreState",
]
