"""Tests for joining the projection with the payment ledger."""

from datetime import date
from decimal import Decimal

import pytest

from creditflow.models.finance import InvoiceStatus, Purchase
from creditflow.projection.engine import build_projection
from creditflow.projection.ledger import (
    build_invoice_rows,
    compute_dashboard_metrics,
    invoice_status,
    is_paid,
    purchase_schedule,
    select_highlight_invoice,
    split_status_key,
    status_key,
)


UUID_CARD = "3f2b9c1e-8a4d-4e6f-9b2a-1c3d5e7f9a0b"


class TestStatusKeys:
    """Tests for ledger keys."""

    def test_status_key(self):
        """Test key format."""
        assert status_key("c1", "2024-01") == "c1-2024-01"

    def test_split_simple_key(self):
        """Test splitting a key with a plain card id."""
        assert split_status_key("c1-2024-01") == ("c1", "2024-01")

    def test_split_key_with_uuid_card(self):
        """Test that dashes inside the card id are preserved."""
        key = status_key(UUID_CARD, "2024-12")
        assert split_status_key(key) == (UUID_CARD, "2024-12")

    @pytest.mark.parametrize("key", ["", "2024-01", "c1-2024-13", "c1_2024-01", "c1-24-01"])
    def test_split_rejects_malformed(self, key):
        """Test that keys not ending in -YYYY-MM raise ValueError."""
        with pytest.raises(ValueError):
            split_status_key(key)

    def test_missing_key_means_unpaid(self):
        """Test the default of the ledger."""
        assert not is_paid({}, "c1", "2024-01")
        assert is_paid({"c1-2024-01": True}, "c1", "2024-01")
        assert not is_paid({"c1-2024-01": False}, "c1", "2024-01")


class TestDashboardMetrics:
    """Tests for compute_dashboard_metrics."""

    def test_nothing_paid(self, phone, sofa):
        """Test totals with an empty ledger."""
        metrics = compute_dashboard_metrics(build_projection([phone, sofa]), {})
        assert metrics.total_remaining == Decimal("500.00")
        assert metrics.months_with_debt == 3
        assert metrics.peak_month_total == Decimal("200.00")

    def test_partially_paid(self, phone):
        """Test that a paid month no longer counts."""
        metrics = compute_dashboard_metrics(
            build_projection([phone]),
            {"c1-2024-01": True},
        )
        assert metrics.total_remaining == Decimal("200.00")
        assert metrics.months_with_debt == 2

    def test_one_of_two_cards_paid(self, phone, sofa):
        """Test a month where only one card's invoice is paid."""
        metrics = compute_dashboard_metrics(
            build_projection([phone, sofa]),
            {"c1-2024-02": True},
        )
        assert metrics.total_remaining == Decimal("400.00")
        assert metrics.months_with_debt == 3

    def test_all_paid(self, phone):
        """Test that paying everything leaves nothing remaining."""
        ledger = {status_key("c1", month): True for month in ("2024-01", "2024-02", "2024-03")}
        metrics = compute_dashboard_metrics(build_projection([phone]), ledger)
        assert metrics.total_remaining == Decimal("0")
        assert metrics.months_with_debt == 0

    def test_gap_months_never_count(self):
        """Test that zero months don't count as months with debt."""
        projection = build_projection([
            Purchase(id="a", card_id="c1", title="A", total_amount=Decimal("10"),
                     installments=1, start_month="2024-01"),
            Purchase(id="b", card_id="c1", title="B", total_amount=Decimal("10"),
                     installments=1, start_month="2024-06"),
        ])
        metrics = compute_dashboard_metrics(projection, {})
        assert len(projection) == 6
        assert metrics.months_with_debt == 2

    def test_empty_projection(self):
        """Test metrics for no purchases."""
        metrics = compute_dashboard_metrics([], {})
        assert metrics.total_remaining == Decimal("0")
        assert metrics.months_with_debt == 0
        assert metrics.peak_month_total == Decimal("0")


class TestInvoiceStatus:
    """Tests for invoice_status."""

    def test_paid_wins(self):
        """Test that a paid invoice is never overdue."""
        assert invoice_status(True, date(2024, 1, 10), date(2024, 3, 1)) == InvoiceStatus.PAID

    def test_overdue_after_due_date(self):
        """Test an unpaid invoice past its due date."""
        assert invoice_status(False, date(2024, 1, 10), date(2024, 1, 11)) == InvoiceStatus.OVERDUE

    def test_pending_on_due_date(self):
        """Test that the due date itself is not overdue."""
        assert invoice_status(False, date(2024, 1, 10), date(2024, 1, 10)) == InvoiceStatus.PENDING


class TestInvoiceRows:
    """Tests for build_invoice_rows."""

    def test_rows_per_card_and_month(self, cards, phone, sofa):
        """Test one row per positive (month, card) in card order."""
        rows = build_invoice_rows(
            build_projection([phone, sofa]),
            cards,
            {"c1-2024-01": True},
            today=date(2024, 2, 7),
        )

        assert [(row.month, row.card.id) for row in rows] == [
            ("2024-01", "c1"),
            ("2024-02", "c1"),
            ("2024-02", "c2"),
            ("2024-03", "c1"),
            ("2024-03", "c2"),
        ]
        assert rows[0].status == InvoiceStatus.PAID
        # Inter is due on the 5th, Nubank on the 10th
        assert rows[2].status == InvoiceStatus.OVERDUE
        assert rows[1].status == InvoiceStatus.PENDING
        assert rows[1].days_until_due == 3
        assert rows[1].status_key == "c1-2024-02"

    def test_orphan_rows_use_placeholder(self, nubank, phone):
        """Test that a deleted card's invoices still show, as 'Unknown'."""
        orphan = Purchase(
            id="p9",
            card_id="gone",
            title="Old",
            total_amount=Decimal("50"),
            installments=1,
            start_month="2024-01",
        )
        rows = build_invoice_rows(
            build_projection([orphan, phone]),
            [nubank],
            {},
            today=date(2024, 1, 1),
        )

        january = [row for row in rows if row.month == "2024-01"]
        assert [row.card.id for row in january] == ["c1", "gone"]
        assert january[1].card.name == "Unknown"
        assert january[1].due_date == date(2024, 1, 10)

    def test_empty_projection_has_no_rows(self, cards):
        """Test no purchases, no invoices."""
        assert build_invoice_rows([], cards, {}, today=date(2024, 1, 1)) == []


class TestHighlightInvoice:
    """Tests for select_highlight_invoice."""

    def test_first_current_or_future(self, cards, phone):
        """Test that the current month's invoice is highlighted."""
        rows = build_invoice_rows(build_projection([phone]), cards, {}, today=date(2024, 2, 15))
        highlight = select_highlight_invoice(rows, today=date(2024, 2, 15))
        assert highlight.month == "2024-02"

    def test_falls_back_to_last(self, cards, phone):
        """Test that when everything is in the past, the last invoice is shown."""
        rows = build_invoice_rows(build_projection([phone]), cards, {}, today=date(2025, 1, 1))
        highlight = select_highlight_invoice(rows, today=date(2025, 1, 1))
        assert highlight.month == "2024-03"

    def test_no_rows(self):
        """Test that there is nothing to highlight without invoices."""
        assert select_highlight_invoice([], today=date(2024, 1, 1)) is None


class TestPurchaseSchedule:
    """Tests for purchase_schedule."""

    def test_schedule_statuses(self, cards, phone):
        """Test paid, overdue and pending installments of one purchase."""
        schedule = purchase_schedule(
            phone,
            cards,
            {"c1-2024-01": True},
            today=date(2024, 2, 15),
        )

        assert [item.label for item in schedule] == ["1/3", "2/3", "3/3"]
        assert [item.month for item in schedule] == ["2024-01", "2024-02", "2024-03"]
        assert schedule[0].is_paid and not schedule[0].is_overdue
        assert not schedule[1].is_paid and schedule[1].is_overdue
        assert not schedule[2].is_paid and not schedule[2].is_overdue
        assert all(item.amount == Decimal("100") for item in schedule)

    def test_schedule_uses_placeholder_due_day(self, phone):
        """Test an orphaned purchase schedule uses the placeholder due day."""
        schedule = purchase_schedule(phone, [], {}, today=date(2024, 1, 1))
        assert schedule[0].due_date == date(2024, 1, 10)
