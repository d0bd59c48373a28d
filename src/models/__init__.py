"""
Data Models Package

This package contains all Pydantic models used by the PAI record core.
Every record flowing through a store must conform to these schemas.
"""

from src.models.records import (
    DEFAULT_CATEGORIES,
    FREQUENCY_INTERVAL_IN_MONTHS,
    ISO_DATE_PATTERN,
    LEGACY_PRIORITY_MAP,
    MAX_OCCURRENCES,
    MIN_OCCURRENCES,
    CalendarEvent,
    CalendarEventDraft,
    CategoryGroup,
    Contact,
    ContactDraft,
    Expense,
    ExpenseDraft,
    FinanceCategories,
    FinanceDraft,
    Frequency,
    Income,
    IncomeDraft,
    Investment,
    InvestmentDraft,
    InvestmentType,
    Note,
    NoteDraft,
    PaymentMethod,
    RecordPayload,
    RecurrenceSpec,
    RelationshipChannel,
    RelationshipInteraction,
    RelationshipPriority,
    RelationshipStage,
    ShiftType,
    Task,
    TaskDraft,
    TaskPriority,
    TaskStatus,
    TimeEntry,
    TimeEntryDraft,
    clamp_occurrences,
)
from src.models.validation import ValidationIssue, ValidationResult
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Recurrence
    "FREQUENCY_INTERVAL_IN_MONTHS",
    "ISO_DATE_PATTERN",
    "LEGACY_PRIORITY_MAP",
    "MAX_OCCURRENCES",
    "MIN_OCCURRENCES",
    "Frequency",
    "RecurrenceSpec",
    "clamp_occurrences",
    # Records
    "CalendarEvent",
    "CalendarEventDraft",
    "Contact",
    "ContactDraft",
    "Expense",
    "ExpenseDraft",
    "FinanceDraft",
    "Income",
    "IncomeDraft",
    "Investment",
    "InvestmentDraft",
    "InvestmentType",
    "Note",
    "NoteDraft",
    "PaymentMethod",
    "RecordPayload",
    "RelationshipChannel",
    "RelationshipInteraction",
    "RelationshipPriority",
    "RelationshipStage",
    "ShiftType",
    "Task",
    "TaskDraft",
    "TaskPriority",
    "TaskStatus",
    "TimeEntry",
    "TimeEntryDraft",
    # Finance categories
    "DEFAULT_CATEGORIES",
    "CategoryGroup",
    "FinanceCategories",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
