"""
Domain Descriptors

One ReconcilingStore class serves every PAI domain. What differs between
domains (schemas, remote path, response envelopes, local keys, sort order)
is captured in a DomainSpec.

SORT ORDER: every collection is ordered by its date-like field, newest
first; records sharing a date are ordered by their text field, then by id,
so the order never depends on insertion history.
"""

from typing import Any, Iterable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from src.models.records import (
    CalendarEvent,
    CalendarEventDraft,
    Contact,
    ContactDraft,
    Expense,
    ExpenseDraft,
    Income,
    IncomeDraft,
    Investment,
    InvestmentDraft,
    Note,
    NoteDraft,
    RecordPayload,
    Task,
    TaskDraft,
    TimeEntry,
    TimeEntryDraft,
)


logger = structlog.get_logger(__name__)

GUEST_NAMESPACE = "guest"


class DomainSpec(BaseModel):
    """Static description of one record domain."""
    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    draft_model: type[RecordPayload]
    record_model: type[RecordPayload]
    path: str
    list_key: str
    item_key: str
    date_fields: tuple[str, ...]
    text_field: str
    supports_recurrence: bool = False
    stamps_timestamps: bool = False

    def wire_fields(self) -> frozenset[str]:
        """Wire keys of every field the record model knows."""
        return frozenset(
            field.alias or name for name, field in self.record_model.model_fields.items()
        )

    def local_state_key(self, user_id: Optional[str]) -> str:
        """Key of the local-only snapshot (guest mode and access fallback)."""
        return f"{self.name}_local_state_{user_id or GUEST_NAMESPACE}"

    def remote_cache_key(self, user_id: Optional[str]) -> str:
        """Key of the opportunistic cache of the last remote snapshot."""
        return f"{self.name}_remote_cache_{user_id or GUEST_NAMESPACE}"

    def sort_date(self, record: dict[str, Any]) -> str:
        return "T".join(str(record.get(field) or "") for field in self.date_fields)

    def normalize(self, raw: Any) -> Optional[dict[str, Any]]:
        """
        Validate one stored or received record into canonical wire shape.

        Returns None (and logs) for records that cannot be repaired.
        """
        if not isinstance(raw, dict):
            logger.warning("record_skipped", domain=self.name, reason="not an object")
            return None
        try:
            return self.record_model.model_validate(raw).to_wire()
        except ValidationError as e:
            logger.warning(
                "record_skipped",
                domain=self.name,
                record_id=raw.get("id"),
                errors=e.error_count(),
            )
            return None

    def normalize_all(self, raw_records: Iterable[Any]) -> list[dict[str, Any]]:
        normalized = (self.normalize(raw) for raw in raw_records)
        return sort_records([r for r in normalized if r is not None], self)


def sort_records(records: Iterable[dict[str, Any]], spec: DomainSpec) -> list[dict[str, Any]]:
    """Canonical order: date descending, then text ascending, then id."""
    ordered = sorted(
        records,
        key=lambda r: (str(r.get(spec.text_field) or ""), str(r.get("id") or "")),
    )
    # reverse=True keeps equal dates in their tiebreak order
    ordered.sort(key=spec.sort_date, reverse=True)
    return ordered


def merge_records(
    current: list[dict[str, Any]],
    updates: Iterable[dict[str, Any]],
    spec: DomainSpec,
) -> list[dict[str, Any]]:
    """Upsert updates by id and return the re-sorted collection."""
    updates = list(updates)
    if not updates:
        return list(current)
    by_id = {record["id"]: record for record in current}
    for record in updates:
        by_id[record["id"]] = record
    return sort_records(by_id.values(), spec)


def remove_record(current: list[dict[str, Any]], record_id: str) -> list[dict[str, Any]]:
    return [record for record in current if record.get("id") != record_id]


# =============================================================================
# DOMAINS
# =============================================================================

EXPENSES = DomainSpec(
    name="expenses",
    label="Expense",
    draft_model=ExpenseDraft,
    record_model=Expense,
    path="/finance/expenses",
    list_key="items",
    item_key="items",
    date_fields=("date",),
    text_field="description",
    supports_recurrence=True,
)

INCOMES = DomainSpec(
    name="incomes",
    label="Income",
    draft_model=IncomeDraft,
    record_model=Income,
    path="/finance/incomes",
    list_key="items",
    item_key="items",
    date_fields=("date",),
    text_field="description",
    supports_recurrence=True,
)

INVESTMENTS = DomainSpec(
    name="investments",
    label="Investment",
    draft_model=InvestmentDraft,
    record_model=Investment,
    path="/finance/investments",
    list_key="items",
    item_key="items",
    date_fields=("date",),
    text_field="description",
    supports_recurrence=True,
)

TASKS = DomainSpec(
    name="tasks",
    label="Task",
    draft_model=TaskDraft,
    record_model=Task,
    path="/tasks",
    list_key="tasks",
    item_key="task",
    date_fields=("dueDate",),
    text_field="title",
    stamps_timestamps=True,
)

NOTES = DomainSpec(
    name="notes",
    label="Note",
    draft_model=NoteDraft,
    record_model=Note,
    path="/notes",
    list_key="notes",
    item_key="note",
    date_fields=("updatedAt",),
    text_field="title",
    stamps_timestamps=True,
)

CALENDAR = DomainSpec(
    name="calendar",
    label="Event",
    draft_model=CalendarEventDraft,
    record_model=CalendarEvent,
    path="/calendar",
    list_key="events",
    item_key="event",
    date_fields=("date", "time"),
    text_field="title",
)

RELATIONSHIPS = DomainSpec(
    name="relationships",
    label="Contact",
    draft_model=ContactDraft,
    record_model=Contact,
    path="/relationships",
    list_key="contacts",
    item_key="contact",
    date_fields=("createdAt",),
    text_field="name",
    stamps_timestamps=True,
)

TIMECLOCK = DomainSpec(
    name="timeclock",
    label="Time entry",
    draft_model=TimeEntryDraft,
    record_model=TimeEntry,
    path="/timeclock",
    list_key="entries",
    item_key="entry",
    date_fields=("date",),
    text_field="firstCheckIn",
    stamps_timestamps=True,
)

ALL_DOMAINS: tuple[DomainSpec, ...] = (
    EXPENSES,
    INCOMES,
    INVESTMENTS,
    TASKS,
    NOTES,
    CALENDAR,
    RELATIONSHIPS,
    TIMECLOCK,
)

FINANCE_DOMAINS: tuple[DomainSpec, ...] = (EXPENSES, INCOMES, INVESTMENTS)
