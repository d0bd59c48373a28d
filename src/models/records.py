"""
Core Data Models for PAI

These models define the strict schemas for every record the stores hold.
They are designed to:
1. Validate untyped request/response bodies at the service boundary
2. Keep the wire shape (camelCase JSON) separate from Python names
3. Round-trip through local storage without losing fields
4. Carry the informational recurrence back-reference

DESIGN DECISION: Each domain has a *draft* model (what a form submits, no id)
and a *record* model (draft plus the id assigned by local storage or by the
remote service). Dates stay ISO strings so both sides of the system produce
byte-identical schedules.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


ISO_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"
OPTIONAL_TIME_PATTERN = r"^(\d{2}:\d{2})?$"


# =============================================================================
# RECURRENCE
# =============================================================================

class Frequency(str, Enum):
    """How often a recurring entry repeats."""
    NONE = "none"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


FREQUENCY_INTERVAL_IN_MONTHS: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.BIMONTHLY: 2,
    Frequency.QUARTERLY: 3,
    Frequency.SEMIANNUAL: 6,
    Frequency.ANNUAL: 12,
}

MIN_OCCURRENCES = 1
MAX_OCCURRENCES = 24


def clamp_occurrences(value: Any) -> int:
    """Coerce anything to an occurrence count inside [1, 24]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return MIN_OCCURRENCES
    if math.isnan(number) or number == 0:
        return MIN_OCCURRENCES
    if math.isinf(number):
        return MAX_OCCURRENCES if number > 0 else MIN_OCCURRENCES
    return max(MIN_OCCURRENCES, min(int(number), MAX_OCCURRENCES))


class RecurrenceSpec(BaseModel):
    """
    Wire/storage shape of a recurrence request.

    Lenient towards form input: unknown frequencies become
    NONE and occurrences are clamped, never rejected.
    """
    frequency: Frequency = Frequency.NONE
    occurrences: int = MIN_OCCURRENCES

    @field_validator('frequency', mode='before')
    @classmethod
    def normalize_frequency(cls, v: Any) -> Frequency:
        if isinstance(v, Frequency):
            return v
        try:
            return Frequency(str(v).strip().lower())
        except ValueError:
            return Frequency.NONE

    @field_validator('occurrences', mode='before')
    @classmethod
    def normalize_occurrences(cls, v: Any) -> int:
        return clamp_occurrences(v)


# =============================================================================
# ENUMS - Finite set of valid values (values are the wire codes)
# =============================================================================

class PaymentMethod(str, Enum):
    CASH = "dinheiro"
    DEBIT = "debito"
    CREDIT = "credito"
    PIX = "pix"
    BANK_SLIP = "boleto"
    OTHER = "outro"


class InvestmentType(str, Enum):
    FIXED_INCOME = "renda_fixa"
    VARIABLE_INCOME = "renda_variavel"
    FUND = "fundo"
    SAVINGS = "poupanca"
    OTHER = "outro"


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Eisenhower matrix quadrants."""
    DO_FIRST = "do_first"
    SCHEDULE = "schedule"
    DELEGATE = "delegate"
    ELIMINATE = "eliminate"


LEGACY_PRIORITY_MAP: dict[str, TaskPriority] = {
    "high": TaskPriority.DO_FIRST,
    "medium": TaskPriority.SCHEDULE,
    "low": TaskPriority.DELEGATE,
}


class RelationshipStage(str, Enum):
    INITIAL_CONTACT = "Contato inicial"
    OPPORTUNITY = "Oportunidade"
    NEGOTIATION = "Negociação"
    LOYAL = "Fidelizado"


class RelationshipPriority(str, Enum):
    HIGH = "Alta"
    MEDIUM = "Média"
    LOW = "Baixa"


class RelationshipChannel(str, Enum):
    CALL = "Ligação"
    MEETING = "Reunião"
    EMAIL = "E-mail"
    MESSAGE = "Mensagem"
    NOTE = "Anotação"


class ShiftType(str, Enum):
    STANDARD = "padrao"
    HOME_OFFICE = "homeOffice"
    TRAVEL = "viagem"


# =============================================================================
# BASE PAYLOAD
# =============================================================================

class RecordPayload(BaseModel):
    """
    Fields shared by every domain payload.

    The recurrence triple is purely informational: it links siblings
    created by one expansion and is never used to cascade edits or deletes.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    recurrence_id: Optional[str] = None
    recurrence_index: Optional[int] = Field(default=None, ge=1)
    recurrence_total: Optional[int] = Field(default=None, ge=1)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used on the wire and on disk."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def wire_key(cls, name: str) -> str:
        """Translate a Python field name (or an alias) to its wire key."""
        field = cls.model_fields.get(name)
        if field is not None and field.alias:
            return field.alias
        return name


# =============================================================================
# FINANCE
# =============================================================================

class FinanceDraft(RecordPayload):
    """Common shape of expenses, incomes and investments."""

    description: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., allow_inf_nan=False)
    category: str = Field(default="", max_length=100)
    date: str = Field(..., pattern=ISO_DATE_PATTERN)
    notes: str = Field(default="", max_length=1000)
    exclude_from_totals: bool = Field(
        default=False,
        description="Recorded but left out of aggregated totals"
    )

    @field_validator('exclude_from_totals', mode='before')
    @classmethod
    def coerce_exclude_flag(cls, v: Any) -> bool:
        # Legacy snapshots store null or omit the flag entirely.
        return bool(v)


class ExpenseDraft(FinanceDraft):
    category: str = Field(..., min_length=1, max_length=100)
    payment_method: PaymentMethod = PaymentMethod.CREDIT


class Expense(ExpenseDraft):
    id: str = Field(..., min_length=1)


class IncomeDraft(FinanceDraft):
    category: str = Field(..., min_length=1, max_length=100)
    source: str = Field(..., min_length=1, max_length=200)


class Income(IncomeDraft):
    id: str = Field(..., min_length=1)


class InvestmentDraft(FinanceDraft):
    type: InvestmentType = InvestmentType.OTHER
    institution: str = Field(..., min_length=1, max_length=200)
    expected_return: Optional[float] = Field(default=None, allow_inf_nan=False)


class Investment(InvestmentDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# TASKS
# =============================================================================

class TaskDraft(RecordPayload):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    due_date: str = Field(..., pattern=ISO_DATE_PATTERN)
    status: TaskStatus = TaskStatus.OPEN
    priority: TaskPriority = TaskPriority.SCHEDULE
    pomodoros: int = Field(default=0, ge=0)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('priority', mode='before')
    @classmethod
    def normalize_priority(cls, v: Any) -> TaskPriority:
        """Accept Eisenhower quadrants and the legacy high/medium/low scale."""
        if isinstance(v, TaskPriority):
            return v
        if not v:
            return TaskPriority.SCHEDULE
        try:
            return TaskPriority(v)
        except ValueError:
            return LEGACY_PRIORITY_MAP.get(str(v).lower(), TaskPriority.SCHEDULE)


class Task(TaskDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# NOTES
# =============================================================================

class NoteDraft(RecordPayload):
    title: str = Field(default="Untitled note", max_length=200)
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    pinned: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('tags', mode='before')
    @classmethod
    def coerce_tags(cls, v: Any) -> list:
        return v if isinstance(v, list) else []

    @field_validator('title', mode='after')
    @classmethod
    def default_blank_title(cls, v: str) -> str:
        return v or "Untitled note"


class Note(NoteDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarEventDraft(RecordPayload):
    date: str = Field(..., pattern=ISO_DATE_PATTERN)
    time: str = Field(default="00:00", pattern=TIME_PATTERN)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    tag: str = Field(default="Pessoal", max_length=50)


class CalendarEvent(CalendarEventDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# RELATIONSHIPS
# =============================================================================

class RelationshipInteraction(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(..., min_length=1)
    date: str
    channel: RelationshipChannel = RelationshipChannel.NOTE
    summary: str = Field(..., min_length=1)
    next_step: Optional[str] = None


class ContactDraft(RecordPayload):
    name: str = Field(..., min_length=1, max_length=200)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    stage: RelationshipStage = RelationshipStage.INITIAL_CONTACT
    priority: RelationshipPriority = RelationshipPriority.MEDIUM
    last_interaction: Optional[str] = None
    next_action: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    interactions: list[RelationshipInteraction] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Contact(ContactDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# TIME CLOCK
# =============================================================================

class TimeEntryDraft(RecordPayload):
    date: str = Field(..., pattern=ISO_DATE_PATTERN)
    first_check_in: str = Field(..., pattern=TIME_PATTERN)
    first_check_out: str = Field(default="", pattern=OPTIONAL_TIME_PATTERN)
    second_check_in: str = Field(default="", pattern=OPTIONAL_TIME_PATTERN)
    second_check_out: str = Field(default="", pattern=OPTIONAL_TIME_PATTERN)
    shift_type: ShiftType = ShiftType.STANDARD
    notes: str = Field(default="", max_length=1000)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TimeEntry(TimeEntryDraft):
    id: str = Field(..., min_length=1)


# =============================================================================
# FINANCE CATEGORIES
# =============================================================================

class CategoryGroup(str, Enum):
    """Finance domains that carry a user-managed category list."""
    EXPENSES = "expenses"
    INCOMES = "incomes"
    INVESTMENTS = "investments"


DEFAULT_CATEGORIES: dict[str, tuple[str, ...]] = {
    CategoryGroup.EXPENSES.value: ("Moradia", "Alimentação", "Transporte", "Educação"),
    CategoryGroup.INCOMES.value: ("Salário", "Freelance", "Investimentos", "Outros"),
    CategoryGroup.INVESTMENTS.value: ("Renda fixa", "Renda variável", "Poupança", "Fundo"),
}


def _default_categories(group: CategoryGroup) -> list[str]:
    return list(DEFAULT_CATEGORIES[group.value])


class FinanceCategories(BaseModel):
    """
    Category lists offered by the finance forms, newest first.

    A missing or malformed list falls back to the defaults of its group,
    so a partial snapshot still yields three usable lists.
    """

    expenses: list[str] = Field(
        default_factory=lambda: _default_categories(CategoryGroup.EXPENSES),
        description="Expense categories"
    )
    incomes: list[str] = Field(
        default_factory=lambda: _default_categories(CategoryGroup.INCOMES),
        description="Income categories"
    )
    investments: list[str] = Field(
        default_factory=lambda: _default_categories(CategoryGroup.INVESTMENTS),
        description="Investment categories"
    )

    @field_validator('expenses', 'incomes', 'investments', mode='before')
    @classmethod
    def default_when_malformed(cls, value: Any, info: ValidationInfo) -> list[str]:
        if not isinstance(value, list):
            return list(DEFAULT_CATEGORIES[info.field_name])
        return [item for item in value if isinstance(item, str) and item.strip()]

    def for_group(self, group: CategoryGroup) -> list[str]:
        return list(getattr(self, group.value))

    def contains(self, group: CategoryGroup, category: str) -> bool:
        """Case-insensitive membership, as used for duplicate detection."""
        wanted = category.lower()
        return any(item.lower() == wanted for item in getattr(self, group.value))
