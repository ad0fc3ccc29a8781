"""Input validation package."""

from creditflow.validation.validator import (
    CardValidator,
    PurchaseValidator,
    clamp_due_day,
    parse_amount,
)

__all__ = ["CardValidator", "PurchaseValidator", "clamp_due_day", "parse_amount"]
