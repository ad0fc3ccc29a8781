"""
Payment Ledger Join

Joins the monthly projection with the payment status ledger to produce
dashboard metrics and per-invoice rows.

The ledger maps "<card_id>-<YYYY-MM>" to a paid flag. A missing key
means unpaid. Card ids may themselves contain dashes (UUIDs), so keys
are always split from the right.
"""

from datetime import date
from typing import Mapping, Optional

from creditflow.models.finance import (
    Card,
    DashboardMetrics,
    InvoiceRow,
    InvoiceStatus,
    MonthlyProjection,
    Purchase,
    ScheduledInstallment,
    resolve_card,
)
from creditflow.projection.engine import ZERO
from creditflow.projection.months import (
    add_months,
    current_month,
    due_date_for,
    is_month_token,
)


PaymentLedger = Mapping[str, bool]


def status_key(card_id: str, month: str) -> str:
    """Ledger key for one card's invoice in one month."""
    return f"{card_id}-{month}"


def split_status_key(key: str) -> tuple[str, str]:
    """
    Split a ledger key back into (card_id, month).

    Raises ValueError if the key does not end in a month token.
    """
    if len(key) < 9 or key[-8] != "-" or not is_month_token(key[-7:]):
        raise ValueError(f"Invalid payment status key: {key!r}")
    return key[:-8], key[-7:]


def is_paid(ledger: PaymentLedger, card_id: str, month: str) -> bool:
    return bool(ledger.get(status_key(card_id, month), False))


def compute_dashboard_metrics(
    projection: list[MonthlyProjection],
    ledger: PaymentLedger,
) -> DashboardMetrics:
    """
    Outstanding totals across the projection.

    A month counts towards `months_with_debt` only if it has at least one
    positive card amount and at least one of those is unpaid. Empty
    months never count.
    """
    total_remaining = ZERO
    months_with_debt = 0

    for entry in projection:
        month_has_debt = False
        month_fully_paid = True

        for card_id, amount in entry.breakdown.items():
            if amount <= 0:
                continue
            month_has_debt = True
            if not is_paid(ledger, card_id, entry.month):
                total_remaining += amount
                month_fully_paid = False

        if month_has_debt and not month_fully_paid:
            months_with_debt += 1

    return DashboardMetrics(
        total_remaining=total_remaining,
        months_with_debt=months_with_debt,
        peak_month_total=max((entry.total_due for entry in projection), default=ZERO),
    )


def invoice_status(paid: bool, due_date: date, today: date) -> InvoiceStatus:
    """Paid wins; otherwise overdue strictly after the due date."""
    if paid:
        return InvoiceStatus.PAID
    if due_date < today:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING


def build_invoice_rows(
    projection: list[MonthlyProjection],
    cards: list[Card],
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> list[InvoiceRow]:
    """
    One row per (month, card) with a positive amount.

    Within a month, rows follow the card list order; amounts on card ids
    that are no longer in the list come last, under a placeholder card.
    """
    today = today or date.today()
    known_ids = [card.id for card in cards]
    rows = []

    for entry in projection:
        orphan_ids = sorted(card_id for card_id in entry.breakdown if card_id not in known_ids)
        for card_id in known_ids + orphan_ids:
            amount = entry.breakdown.get(card_id, ZERO)
            if amount <= 0:
                continue

            card = resolve_card(cards, card_id)
            due = due_date_for(entry.month, card.due_day)
            paid = is_paid(ledger, card_id, entry.month)
            rows.append(InvoiceRow(
                month=entry.month,
                display_label=entry.display_label,
                card=card,
                amount=amount,
                due_date=due,
                days_until_due=(due - today).days,
                status=invoice_status(paid, due, today),
                status_key=status_key(card_id, entry.month),
            ))

    return rows


def select_highlight_invoice(
    rows: list[InvoiceRow],
    today: Optional[date] = None,
) -> Optional[InvoiceRow]:
    """The first invoice of the current or a future month, else the latest one."""
    if not rows:
        return None
    this_month = current_month(today)
    return next((row for row in rows if row.month >= this_month), rows[-1])


def purchase_schedule(
    purchase: Purchase,
    cards: list[Card],
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> list[ScheduledInstallment]:
    """Installment-by-installment breakdown of a single purchase."""
    today = today or date.today()
    card = resolve_card(cards, purchase.card_id)
    amount = purchase.installment_amount
    schedule = []

    for index in range(purchase.installments):
        month = add_months(purchase.start_month, index)
        due = due_date_for(month, card.due_day)
        paid = is_paid(ledger, purchase.card_id, month)
        schedule.append(ScheduledInstallment(
            installment_number=index + 1,
            installment_count=purchase.installments,
            month=month,
            due_date=due,
            amount=amount,
            is_paid=paid,
            is_overdue=invoice_status(paid, due, today) == InvoiceStatus.OVERDUE,
        ))

    return schedule
