"""Tests for the two-stage record validator."""

from src.models.records import (
    Expense,
    ExpenseDraft,
    RecurrenceSpec,
    Task,
    TaskDraft,
    TimeEntry,
    TimeEntryDraft,
)
from src.validation import RecordValidator, to_wire_keys


def expense_validator():
    return RecordValidator(ExpenseDraft, Expense, supports_recurrence=True)


VALID_EXPENSE = {
    "description": "Internet",
    "amount": 120,
    "category": "Utilities",
    "date": "2024-03-10",
}


class TestSchemaStage:

    def test_valid_payload_is_normalized_to_wire_shape(self):
        result = expense_validator().validate_create({**VALID_EXPENSE, "payment_method": "debito"})

        assert result.is_valid
        assert result.normalized["paymentMethod"] == "debito"
        assert result.normalized["excludeFromTotals"] is False
        assert result.normalized["amount"] == 120.0

    def test_missing_required_field(self):
        payload = dict(VALID_EXPENSE)
        del payload["description"]

        result = expense_validator().validate_create(payload)

        assert not result.schema_valid
        assert not result.is_valid
        assert result.normalized is None
        assert [i.field for i in result.issues] == ["description"]

    def test_non_finite_amount_rejected(self):
        result = expense_validator().validate_create({**VALID_EXPENSE, "amount": float("inf")})
        assert not result.is_valid

    def test_unknown_payment_method_rejected(self):
        result = expense_validator().validate_create({**VALID_EXPENSE, "paymentMethod": "bitcoin"})
        assert not result.is_valid

    def test_accepts_draft_model(self):
        draft = ExpenseDraft(**VALID_EXPENSE)
        assert expense_validator().validate_create(draft).is_valid


class TestSemanticStage:

    def test_impossible_calendar_date(self):
        result = expense_validator().validate_create({**VALID_EXPENSE, "date": "2023-02-29"})

        assert result.schema_valid
        assert not result.semantic_valid
        assert result.issues[0].issue_type == "invalid_date"

    def test_out_of_range_clock_time(self):
        validator = RecordValidator(TimeEntryDraft, TimeEntry)
        result = validator.validate_create({"date": "2024-03-10", "firstCheckIn": "25:00"})

        assert not result.is_valid
        assert result.issues[0].field == "firstCheckIn"

    def test_checkout_before_checkin_is_only_a_warning(self):
        validator = RecordValidator(TimeEntryDraft, TimeEntry)
        result = validator.validate_create({
            "date": "2024-03-10",
            "firstCheckIn": "09:00",
            "firstCheckOut": "08:00",
        })

        assert result.is_valid
        assert result.warnings == ["Check-out is before check-in"]

    def test_non_positive_amount_warns(self):
        result = expense_validator().validate_create({**VALID_EXPENSE, "amount": -5})

        assert result.is_valid
        assert not result.has_errors
        assert len(result.warnings) == 1

    def test_recurrence_refused_where_unsupported(self):
        validator = RecordValidator(TaskDraft, Task)
        recurrence = RecurrenceSpec(frequency="monthly", occurrences=3)

        result = validator.validate_create({"title": "x", "dueDate": "2024-03-10"}, recurrence)

        assert not result.is_valid
        assert result.error_count == 1

    def test_non_repeating_recurrence_allowed_anywhere(self):
        validator = RecordValidator(TaskDraft, Task)
        recurrence = RecurrenceSpec(frequency="none", occurrences=3)

        assert validator.validate_create({"title": "x", "dueDate": "2024-03-10"}, recurrence).is_valid


class TestUpdateValidation:

    def test_partial_merged_over_current(self):
        current = {**VALID_EXPENSE, "id": "e1", "amount": 120.0}

        result = expense_validator().validate_update(current, {"amount": 80})

        assert result.is_valid
        assert result.normalized["amount"] == 80.0
        assert result.normalized["description"] == "Internet"

    def test_id_cannot_change(self):
        current = {**VALID_EXPENSE, "id": "e1"}

        result = expense_validator().validate_update(current, {"id": "other"})

        assert result.normalized["id"] == "e1"

    def test_invalid_partial_rejected(self):
        current = {**VALID_EXPENSE, "id": "e1"}

        result = expense_validator().validate_update(current, {"date": "31/01/2024"})

        assert not result.is_valid

    def test_to_wire_keys(self):
        assert to_wire_keys(Task, {"due_date": "x", "dueDate": "y", "title": "t"}) == {
            "dueDate": "y",
            "title": "t",
        }
