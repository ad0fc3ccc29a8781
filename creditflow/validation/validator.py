"""
Input Validation for cards and purchases

DESIGN DECISION: Validation happens at the form boundary, before anything
reaches the session or the projection engine. The engine assumes every
purchase has a positive amount and at least one installment.

Card due days are the one exception to "report, don't fix": an out-of-range
due day is clamped to 1-31 rather than rejected.

Validation results list every issue found so the UI can show them all at once.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional
from uuid import uuid4

from creditflow.config import get_settings
from creditflow.models.finance import (
    CARD_NAME_MAX_LENGTH,
    PURCHASE_TITLE_MAX_LENGTH,
    Card,
    Purchase,
    ValidationIssue,
    ValidationResult,
)
from creditflow.projection.months import is_month_token


DEFAULT_CARD_COLOR = "#8b5cf6"


def clamp_due_day(value, default: int = 10) -> int:
    """
    Coerce user input to a due day in [1, 31].

    Unreadable input falls back to `default`.
    """
    try:
        day = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        day = default
    return min(31, max(1, day))


def parse_amount(value) -> Optional[Decimal]:
    """Parse a user-entered amount; accepts a comma as decimal separator."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        amount = Decimal(str(value))
        return amount if amount.is_finite() else None
    text = str(value).strip().replace(" ", "")
    if "," in text and "." in text:
        # 1.234,56 -> 1234.56
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_installments(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # spreadsheet cells come back as floats
        return int(value) if value.is_integer() else None
    try:
        text = str(value).strip()
        return int(text)
    except (TypeError, ValueError):
        return None


class CardValidator:
    """Validates the card form."""

    def __init__(self, default_due_day: Optional[int] = None):
        self._default_due_day = default_due_day or get_settings().app.default_due_day

    def validate(
        self,
        name: str,
        color: Optional[str],
        due_day,
        card_id: Optional[str] = None,
    ) -> tuple[ValidationResult, Optional[Card]]:
        """
        Returns: (result, card). `card` is None when there are errors.

        A new card gets a fresh id; editing keeps `card_id`.
        """
        issues = []
        name = (name or "").strip()

        if not name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Card name is required",
                severity="error",
            ))
        elif len(name) > CARD_NAME_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="name",
                issue_type="invalid_value",
                message=f"Card name must be at most {CARD_NAME_MAX_LENGTH} characters",
                severity="error",
            ))

        day = clamp_due_day(due_day, default=self._default_due_day)
        if str(due_day).strip() != str(day):
            issues.append(ValidationIssue(
                field="due_day",
                issue_type="clamped",
                message=f"Due day adjusted to {day}",
                severity="info",
            ))

        result = ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )
        if not result.is_valid:
            return result, None

        card = Card(
            id=card_id or str(uuid4()),
            name=name,
            color=color or DEFAULT_CARD_COLOR,
            due_day=day,
        )
        return result, card


class PurchaseValidator:
    """
    Validates the purchase form.

    Errors: missing or too long title, non-numeric or non-positive amount,
    non-integer or non-positive installments, missing card, bad month.
    Warnings: card id not among the user's cards.
    """

    def validate(
        self,
        title: str,
        total_amount,
        installments,
        card_id: Optional[str],
        start_month: str,
        known_card_ids: Iterable[str] = (),
        purchase_id: Optional[str] = None,
    ) -> tuple[ValidationResult, Optional[Purchase]]:
        issues = []
        title = (title or "").strip()

        if not title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Purchase description is required",
                severity="error",
            ))
        elif len(title) > PURCHASE_TITLE_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="title",
                issue_type="invalid_value",
                message=f"Purchase description must be at most {PURCHASE_TITLE_MAX_LENGTH} characters",
                severity="error",
            ))

        amount = parse_amount(total_amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_format",
                message=f"Amount is not a number: {total_amount!r}",
                severity="error",
            ))
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))

        count = parse_installments(installments)
        if count is None:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_format",
                message=f"Installments must be a whole number: {installments!r}",
                severity="error",
            ))
        elif count < 1:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="invalid_value",
                message="Installments must be at least 1",
                severity="error",
            ))

        if not card_id:
            issues.append(ValidationIssue(
                field="card_id",
                issue_type="missing",
                message="Choose a card for this purchase",
                severity="error",
            ))
        elif known_card_ids and card_id not in set(known_card_ids):
            issues.append(ValidationIssue(
                field="card_id",
                issue_type="unknown_reference",
                message="This card no longer exists; the purchase will show under 'Unknown'",
                severity="warning",
            ))

        if not is_month_token(start_month):
            issues.append(ValidationIssue(
                field="start_month",
                issue_type="invalid_format",
                message=f"First installment month must look like YYYY-MM: {start_month!r}",
                severity="error",
            ))

        result = ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )
        if not result.is_valid:
            return result, None

        purchase = Purchase(
            id=purchase_id or str(uuid4()),
            card_id=card_id,
            title=title,
            total_amount=amount,
            installments=count,
            start_month=start_month,
        )
        return result, purchase
