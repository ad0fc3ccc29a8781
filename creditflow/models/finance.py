"""
Core Data Models for CreditFlow

These models define the schemas for cards, purchases and everything
derived from them. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and export

DESIGN DECISION: Amounts are Decimal, never float.
Per-installment amounts are exact divisions; only the aggregated
monthly totals are rounded (half-up, 2 places).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# Zero-padded "YYYY-MM"; string order equals calendar order
MONTH_TOKEN_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

PLACEHOLDER_CARD_NAME = "Unknown"
PLACEHOLDER_CARD_COLOR = "#64748b"
DEFAULT_DUE_DAY = 10
CARD_NAME_MAX_LENGTH = 100
PURCHASE_TITLE_MAX_LENGTH = 200


# =============================================================================
# ENUMS
# =============================================================================

class InvoiceStatus(str, Enum):
    """Presentation status of one (card, month) invoice."""
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class RiskLevel(str, Enum):
    """Debt risk level reported by the advisor."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# =============================================================================
# SOURCE ENTITIES
# =============================================================================

class Card(BaseModel):
    """
    A credit card the user tracks.

    `due_day` is the day of the month the card's invoice is due.
    Out-of-range values are clamped by CardValidator before reaching here.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque card identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=CARD_NAME_MAX_LENGTH,
        description="Display name"
    )
    color: str = Field(
        default=PLACEHOLDER_CARD_COLOR,
        description="Display color as a hex string"
    )
    due_day: int = Field(
        default=DEFAULT_DUE_DAY,
        ge=1,
        le=31,
        description="Day of month the invoice is due"
    )

    @classmethod
    def placeholder(cls, card_id: str) -> "Card":
        """Stand-in for a card that was deleted while purchases still reference it."""
        return cls(
            id=card_id,
            name=PLACEHOLDER_CARD_NAME,
            color=PLACEHOLDER_CARD_COLOR,
            due_day=DEFAULT_DUE_DAY,
        )


class Purchase(BaseModel):
    """
    A purchase split into equal monthly installments.

    The first installment is due in `start_month`, the next one in
    the following month, and so on.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque purchase identifier"
    )
    card_id: str = Field(
        ...,
        min_length=1,
        description="Card this purchase was charged to"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=PURCHASE_TITLE_MAX_LENGTH,
        description="What was bought"
    )
    total_amount: Decimal = Field(
        ...,
        gt=0,
        description="Total amount of the purchase"
    )
    installments: int = Field(
        default=1,
        ge=1,
        description="Number of monthly installments"
    )
    start_month: str = Field(
        ...,
        pattern=MONTH_TOKEN_PATTERN,
        description="Month of the first installment (YYYY-MM)"
    )

    @property
    def installment_amount(self) -> Decimal:
        """Amount of each installment, unrounded."""
        return self.total_amount / self.installments


# =============================================================================
# DERIVED PROJECTION
# =============================================================================

class InstallmentItem(BaseModel):
    """One installment contributing to a month's total."""

    title: str
    installment_number: int = Field(ge=1)
    amount: Decimal
    card_id: str


class MonthlyProjection(BaseModel):
    """
    Aggregated amounts due in one calendar month.

    Built by the projection engine only. Months without activity
    still appear (zero total, empty breakdown) so charts have no gaps.
    """

    month: str = Field(..., pattern=MONTH_TOKEN_PATTERN)
    display_label: str
    total_due: Decimal = Decimal("0")
    breakdown: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Card id -> amount due this month"
    )
    items: list[InstallmentItem] = Field(default_factory=list)


class DashboardMetrics(BaseModel):
    """Summary numbers shown above the projection chart."""

    total_remaining: Decimal = Decimal("0")
    months_with_debt: int = 0
    peak_month_total: Decimal = Decimal("0")


class InvoiceRow(BaseModel):
    """One card's invoice for one month, with its payment status."""

    month: str
    display_label: str
    card: Card
    amount: Decimal
    due_date: date
    days_until_due: int
    status: InvoiceStatus
    status_key: str

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


class ScheduledInstallment(BaseModel):
    """One installment of a single purchase, as shown in its detail view."""

    installment_number: int = Field(ge=1)
    installment_count: int = Field(ge=1)
    month: str
    due_date: date
    amount: Decimal
    is_paid: bool
    is_overdue: bool

    @computed_field
    @property
    def label(self) -> str:
        return f"{self.installment_number}/{self.installment_count}"


# =============================================================================
# ADVICE
# =============================================================================

class FinancialAdvice(BaseModel):
    """Narrative risk summary returned by the advisor."""

    summary: str = Field(..., min_length=1)
    risk_level: RiskLevel
    tips: list[str] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found on user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a card or purchase form.

    Errors block the save; warnings are shown but do not.
    """

    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# SPREADSHEET IMPORT
# =============================================================================

class ImportedData(BaseModel):
    """Everything read back from a backup workbook."""

    cards: list[Card] = Field(default_factory=list)
    purchases: list[Purchase] = Field(default_factory=list)
    payment_ledger: dict[str, bool] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.cards or self.purchases or self.payment_ledger)


def resolve_card(cards: list[Card], card_id: str) -> Card:
    """Find a card by id, falling back to the placeholder for orphaned ids."""
    for card in cards:
        if card.id == card_id:
            return card
    return Card.placeholder(card_id)


def find_card(cards: list[Card], card_id: Optional[str]) -> Optional[Card]:
    """Find a card by id, or None."""
    if card_id is None:
        return None
    return next((card for card in cards if card.id == card_id), None)
