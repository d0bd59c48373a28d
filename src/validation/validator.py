"""
Two-Stage Record Validation

DESIGN DECISION: Every mutation payload is validated before any I/O, in two
distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Pydantic model validation of the draft (create) or of the merged record
  (update): types, required fields, enum codes, ISO date and HH:MM patterns
- Non-finite amounts are rejected here

STAGE 2 - SEMANTIC VALIDATION:
- Dates must be real calendar dates (2024-02-30 matches the pattern but
  is not a date)
- Clock times must be inside 00:00-23:59
- A repeating recurrence is only accepted by domains that expand it
- Suspicious but storable values produce warnings, never errors

A rejected payload is reported inline and never retried.
"""

from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from src.models.records import (
    Frequency,
    RecordPayload,
    RecurrenceSpec,
)
from src.models.validation import ValidationIssue, ValidationResult
from src.recurrence.expander import InvalidDateError, parse_iso_date


logger = structlog.get_logger(__name__)

DATE_FIELDS = ("date", "dueDate")
TIME_FIELDS = ("time", "firstCheckIn", "firstCheckOut", "secondCheckIn", "secondCheckOut")


def to_wire_keys(model: type[RecordPayload], payload: Mapping[str, Any]) -> dict[str, Any]:
    """Rename Python field names in a partial payload to their wire keys."""
    return {model.wire_key(key): value for key, value in payload.items()}


def _issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    issues = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail.get("loc", ())) or "payload"
        issues.append(ValidationIssue(
            field=field,
            issue_type=detail.get("type", "invalid"),
            message=detail.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


def _valid_clock_time(value: str) -> bool:
    hours, _, minutes = value.partition(":")
    return hours.isdigit() and minutes.isdigit() and int(hours) < 24 and int(minutes) < 60


class RecordValidator:
    """
    Validates payloads for one domain.

    Args:
        draft_model: Schema of a create payload (no id)
        record_model: Schema of a stored record (with id)
        supports_recurrence: Whether create may expand a recurrence
    """

    def __init__(
        self,
        draft_model: type[RecordPayload],
        record_model: type[RecordPayload],
        supports_recurrence: bool = False,
    ):
        self._draft_model = draft_model
        self._record_model = record_model
        self._supports_recurrence = supports_recurrence

    def _validate_schema(
        self,
        model: type[RecordPayload],
        payload: Mapping[str, Any],
    ) -> tuple[Optional[dict[str, Any]], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (normalized wire dict or None, list_of_issues)
        """
        try:
            return model.model_validate(dict(payload)).to_wire(), []
        except ValidationError as e:
            return None, _issues_from_error(e)

    def _validate_semantic(
        self,
        normalized: dict[str, Any],
        recurrence: Optional[RecurrenceSpec],
    ) -> list[ValidationIssue]:
        """Stage 2: Semantic validation on the normalized wire dict."""
        issues = []

        for field in DATE_FIELDS:
            if field not in normalized:
                continue
            try:
                parse_iso_date(normalized[field])
            except InvalidDateError as e:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_date",
                    message=str(e),
                    severity="error",
                    suggested_fix="Pick a date that exists on the calendar",
                ))

        for field in TIME_FIELDS:
            value = normalized.get(field)
            if value and not _valid_clock_time(value):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_time",
                    message=f"Invalid time {value!r}. Use HH:MM between 00:00 and 23:59.",
                    severity="error",
                ))

        if (
            recurrence is not None
            and recurrence.frequency != Frequency.NONE
            and recurrence.occurrences > 1
            and not self._supports_recurrence
        ):
            issues.append(ValidationIssue(
                field="recurrence",
                issue_type="unsupported",
                message="This kind of record cannot repeat",
                severity="error",
                suggested_fix="Remove the recurrence or create the entries one by one",
            ))

        amount = normalized.get("amount")
        if isinstance(amount, (int, float)) and amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount}) is not positive",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        check_in = normalized.get("firstCheckIn")
        check_out = normalized.get("firstCheckOut")
        if check_in and check_out and check_out < check_in:
            issues.append(ValidationIssue(
                field="firstCheckOut",
                issue_type="inconsistent",
                message="Check-out is before check-in",
                severity="warning",
            ))

        return issues

    def _run(
        self,
        model: type[RecordPayload],
        payload: Mapping[str, Any],
        recurrence: Optional[RecurrenceSpec] = None,
    ) -> ValidationResult:
        normalized, issues = self._validate_schema(model, payload)
        schema_valid = normalized is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_issues = self._validate_semantic(normalized, recurrence)
            issues.extend(semantic_issues)
            semantic_valid = not any(i.severity == "error" for i in semantic_issues)

        is_valid = schema_valid and semantic_valid
        if not is_valid:
            logger.info(
                "payload_rejected",
                model=model.__name__,
                issues=[issue.field for issue in issues if issue.severity == "error"],
            )

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
            normalized=normalized if is_valid else None,
        )

    def validate_create(
        self,
        payload: Union[Mapping[str, Any], RecordPayload],
        recurrence: Optional[RecurrenceSpec] = None,
    ) -> ValidationResult:
        """
        Validate a create payload.

        Args:
            payload: Form payload (wire keys or Python names) or a draft model
            recurrence: Optional recurrence request

        Returns:
            ValidationResult; ``normalized`` holds the draft in wire shape
        """
        if isinstance(payload, RecordPayload):
            payload = payload.to_wire()
        return self._run(self._draft_model, payload, recurrence)

    def validate_update(
        self,
        current: Mapping[str, Any],
        partial: Mapping[str, Any],
    ) -> ValidationResult:
        """
        Validate a partial update against the record it modifies.

        The partial is merged over the current record and the result must be
        a valid full record; the record id can never change.
        """
        merged = {**current, **to_wire_keys(self._record_model, partial)}
        merged["id"] = current.get("id")
        return self._run(self._record_model, merged)
