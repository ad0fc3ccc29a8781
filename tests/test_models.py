"""
Tests for CreditFlow models

Test strategy:
1. Unit tests for individual components (models, engine, validators)
2. Flow tests against in-memory storage and a fake advisor model
3. No real API calls in tests
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from creditflow.models.finance import (
    Card,
    FinancialAdvice,
    ImportedData,
    InvoiceRow,
    InvoiceStatus,
    Purchase,
    RiskLevel,
    ScheduledInstallment,
    ValidationIssue,
    ValidationResult,
    find_card,
    resolve_card,
)
from creditflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestCardModel:
    """Tests for the Card model."""

    def test_card_creation(self):
        """Test Card model creation."""
        card = Card(id="c1", name="Nubank", color="#8b5cf6", due_day=10)
        assert card.name == "Nubank"
        assert card.due_day == 10

    def test_card_strips_whitespace(self):
        """Test that whitespace is stripped from the card name."""
        card = Card(id="c1", name="  Nubank  ")
        assert card.name == "Nubank"

    def test_card_rejects_out_of_range_due_day(self):
        """Test that the model itself refuses a due day outside 1-31."""
        with pytest.raises(ValueError):
            Card(id="c1", name="Nubank", due_day=32)

    def test_card_is_immutable(self):
        """Test that cards can't be changed in place."""
        card = Card(id="c1", name="Nubank")
        with pytest.raises(ValueError):
            card.name = "Other"

    def test_placeholder_card(self):
        """Test the stand-in for a deleted card."""
        card = Card.placeholder("gone")
        assert card.id == "gone"
        assert card.name == "Unknown"
        assert card.color == "#64748b"
        assert card.due_day == 10

    def test_resolve_card_falls_back_to_placeholder(self, cards):
        """Test resolve_card for known and unknown ids."""
        assert resolve_card(cards, "c2").name == "Inter"
        assert resolve_card(cards, "gone").name == "Unknown"

    def test_find_card(self, cards):
        """Test find_card returns None for unknown or missing ids."""
        assert find_card(cards, "c1").name == "Nubank"
        assert find_card(cards, "gone") is None
        assert find_card(cards, None) is None


class TestPurchaseModel:
    """Tests for the Purchase model."""

    def test_installment_amount_is_exact(self):
        """Test that the installment amount is not rounded."""
        purchase = Purchase(
            id="p1",
            card_id="c1",
            title="TV",
            total_amount=Decimal("100"),
            installments=3,
            start_month="2024-01",
        )
        assert purchase.installment_amount == Decimal("100") / 3
        assert purchase.installment_amount != Decimal("33.33")

    def test_purchase_rejects_zero_amount(self):
        """Test that a non-positive amount is rejected."""
        with pytest.raises(ValueError):
            Purchase(
                id="p1",
                card_id="c1",
                title="TV",
                total_amount=Decimal("0"),
                installments=1,
                start_month="2024-01",
            )

    def test_purchase_rejects_zero_installments(self):
        """Test that at least one installment is required."""
        with pytest.raises(ValueError):
            Purchase(
                id="p1",
                card_id="c1",
                title="TV",
                total_amount=Decimal("10"),
                installments=0,
                start_month="2024-01",
            )

    @pytest.mark.parametrize("month", ["2024-1", "2024-13", "24-01", "2024/01", ""])
    def test_purchase_rejects_bad_month(self, month):
        """Test that start_month must be a zero-padded YYYY-MM token."""
        with pytest.raises(ValueError):
            Purchase(
                id="p1",
                card_id="c1",
                title="TV",
                total_amount=Decimal("10"),
                installments=1,
                start_month=month,
            )


class TestDerivedModels:
    """Tests for models built by the projection and ledger."""

    def test_invoice_row_is_paid(self, nubank):
        """Test the is_paid shortcut."""
        row = InvoiceRow(
            month="2024-01",
            display_label="jan/24",
            card=nubank,
            amount=Decimal("100.00"),
            due_date=date(2024, 1, 10),
            days_until_due=0,
            status=InvoiceStatus.PAID,
            status_key="c1-2024-01",
        )
        assert row.is_paid

    def test_scheduled_installment_label(self):
        """Test the n/N label."""
        item = ScheduledInstallment(
            installment_number=2,
            installment_count=10,
            month="2024-02",
            due_date=date(2024, 2, 10),
            amount=Decimal("10"),
            is_paid=False,
            is_overdue=False,
        )
        assert item.label == "2/10"
        assert item.model_dump()["label"] == "2/10"

    def test_financial_advice(self):
        """Test FinancialAdvice with a risk level."""
        advice = FinancialAdvice(
            summary="Peak in March",
            risk_level=RiskLevel.MEDIUM,
            tips=["Avoid new installments"],
        )
        assert advice.risk_level.value == "Medium"

    def test_imported_data_is_empty(self, nubank):
        """Test the is_empty check."""
        assert ImportedData().is_empty
        assert not ImportedData(cards=[nubank]).is_empty
        assert not ImportedData(payment_ledger={"c1-2024-01": True}).is_empty


class TestValidationModels:
    """Tests for validation models."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="total_amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than zero",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings(self):
        """Test that warnings are listed but are not errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="card_id",
                    issue_type="unknown_reference",
                    message="Unknown card",
                    severity="warning",
                ),
            ],
        )
        assert not result.has_errors
        assert result.warnings == ["Unknown card"]

    def test_validation_issue_rejects_unknown_severity(self):
        """Test that severity is limited to error/warning/info."""
        with pytest.raises(ValueError):
            ValidationIssue(
                field="x",
                issue_type="missing",
                message="x",
                severity="fatal",
            )


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.CARD_SAVED,
            description="Card saved",
        )
        assert event.event_type == AuditEventType.CARD_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            description="Test error",
            error_message="Something went wrong",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "storage_failed"
        assert log_dict["severity"] == "error"
        assert log_dict["error_message"] == "Something went wrong"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to the 11-column sheet row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.payment_status_updated(
            card_id="c1",
            month="2024-01",
            is_paid=True,
            correlation_id=correlation_id,
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[5] == "c1-2024-01"
        assert row[6] == str(correlation_id)
        assert json.loads(row[8])["is_paid"] is True

    def test_audit_builder_card_deleted_severity(self):
        """Test that deleting a card in use is a warning."""
        unused = AuditEventBuilder.card_deleted(card_id="c1", orphaned_purchases=0)
        in_use = AuditEventBuilder.card_deleted(card_id="c1", orphaned_purchases=2)
        assert unused.severity == AuditSeverity.INFO
        assert in_use.severity == AuditSeverity.WARNING
        assert in_use.details["orphaned_purchases"] == 2

    def test_audit_builder_purchase_saved(self):
        """Test purchase saved event."""
        event = AuditEventBuilder.purchase_saved(
            purchase_id="p1",
            title="Phone",
            amount="300.00",
            installments=3,
        )
        assert event.event_type == AuditEventType.PURCHASE_SAVED
        assert event.entity_type == "purchase"
        assert event.is_user_action
        assert "3x" in event.description

    def test_audit_builder_data_imported_with_failures(self):
        """Test that an import with failed writes is a warning."""
        event = AuditEventBuilder.data_imported(
            cards=1,
            purchases=2,
            payments=0,
            failed_writes=1,
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["failed_writes"] == 1
