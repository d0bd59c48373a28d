"""Record validation package."""

from src.validation.validator import RecordValidator, to_wire_keys

__all__ = ["RecordValidator", "to_wire_keys"]
