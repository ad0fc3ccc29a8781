"""
Session Store

Holds the user's cards, purchases, payment ledger and card selection as
one immutable object. Every change goes through a pure function that
returns a new session; nothing here performs I/O.

The dashboard is recomputed from scratch with build_dashboard() after
any change.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from creditflow.models.finance import (
    Card,
    DashboardMetrics,
    ImportedData,
    InvoiceRow,
    Purchase,
    find_card,
)
from creditflow.projection.ledger import (
    build_invoice_rows,
    compute_dashboard_metrics,
    is_paid,
    select_highlight_invoice,
    status_key,
)
from creditflow.projection.months import DEFAULT_LOCALE
from creditflow.projection.views import CardView, derive_card_view


class FinanceSession(BaseModel):
    """Everything the user owns in one logical session."""
    model_config = ConfigDict(frozen=True)

    cards: tuple[Card, ...] = ()
    purchases: tuple[Purchase, ...] = ()
    payment_ledger: dict[str, bool] = Field(default_factory=dict)
    selected_card_id: Optional[str] = None

    @property
    def selected_card(self) -> Optional[Card]:
        return find_card(list(self.cards), self.selected_card_id)


class Dashboard(BaseModel):
    """Derived state for one render of the dashboard."""

    view: CardView
    metrics: DashboardMetrics
    invoices: list[InvoiceRow] = Field(default_factory=list)
    highlight_invoice: Optional[InvoiceRow] = None


def _upsert(items: tuple, item) -> tuple:
    """Replace the element with the same id, or append."""
    if any(existing.id == item.id for existing in items):
        return tuple(item if existing.id == item.id else existing for existing in items)
    return items + (item,)


def upsert_card(session: FinanceSession, card: Card) -> FinanceSession:
    return session.model_copy(update={"cards": _upsert(session.cards, card)})


def remove_card(session: FinanceSession, card_id: str) -> FinanceSession:
    """
    Drop a card. Its purchases stay and render under a placeholder card.
    A selection pointing at the removed card is cleared.
    """
    selected = None if session.selected_card_id == card_id else session.selected_card_id
    return session.model_copy(update={
        "cards": tuple(card for card in session.cards if card.id != card_id),
        "selected_card_id": selected,
    })


def upsert_purchase(session: FinanceSession, purchase: Purchase) -> FinanceSession:
    return session.model_copy(update={"purchases": _upsert(session.purchases, purchase)})


def remove_purchase(session: FinanceSession, purchase_id: str) -> FinanceSession:
    return session.model_copy(update={
        "purchases": tuple(p for p in session.purchases if p.id != purchase_id),
    })


def set_payment_status(
    session: FinanceSession,
    card_id: str,
    month: str,
    paid: bool,
) -> FinanceSession:
    ledger = dict(session.payment_ledger)
    ledger[status_key(card_id, month)] = paid
    return session.model_copy(update={"payment_ledger": ledger})


def toggle_payment_status(
    session: FinanceSession,
    card_id: str,
    month: str,
) -> tuple[FinanceSession, bool]:
    """Flip one invoice's paid flag. Returns the new session and the new flag."""
    paid = not is_paid(session.payment_ledger, card_id, month)
    return set_payment_status(session, card_id, month, paid), paid


def select_card(session: FinanceSession, card_id: Optional[str]) -> FinanceSession:
    return session.model_copy(update={"selected_card_id": card_id or None})


def merge_imported(session: FinanceSession, data: ImportedData) -> FinanceSession:
    """Upsert imported cards and purchases by id; imported ledger keys win."""
    cards = session.cards
    for card in data.cards:
        cards = _upsert(cards, card)

    purchases = session.purchases
    for purchase in data.purchases:
        purchases = _upsert(purchases, purchase)

    ledger = dict(session.payment_ledger)
    ledger.update(data.payment_ledger)

    return session.model_copy(update={
        "cards": cards,
        "purchases": purchases,
        "payment_ledger": ledger,
    })


def build_dashboard(
    session: FinanceSession,
    today: Optional[date] = None,
    locale: str = DEFAULT_LOCALE,
) -> Dashboard:
    """Recompute every derived value of the dashboard from the session."""
    today = today or date.today()
    cards = list(session.cards)

    view = derive_card_view(
        cards,
        list(session.purchases),
        session.selected_card_id,
        locale=locale,
    )
    invoices = build_invoice_rows(view.projection, cards, session.payment_ledger, today)

    return Dashboard(
        view=view,
        metrics=compute_dashboard_metrics(view.projection, session.payment_ledger),
        invoices=invoices,
        highlight_invoice=select_highlight_invoice(invoices, today),
    )
