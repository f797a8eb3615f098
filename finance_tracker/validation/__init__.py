"""Input validation package."""

from finance_tracker.validation.validator import (
    LedgerValidator,
    ValidationError,
    parse_amount,
    raise_if_errors,
)

__all__ = ["LedgerValidator", "ValidationError", "parse_amount", "raise_if_errors"]
