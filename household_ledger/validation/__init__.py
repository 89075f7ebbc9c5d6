"""Input validation package."""

from household_ledger.validation.validator import ItemValidator, ValidationError

__all__ = ["ItemValidator", "ValidationError"]
