"""
In-memory storage.

Used when Google Sheets is not configured, and in tests. Data lives only
as long as the process.
"""

from typing import Optional

from creditflow.models.audit import AuditEvent
from creditflow.models.finance import Card, Purchase
from creditflow.projection.ledger import status_key
from creditflow.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Dict-backed storage; insertion order is creation order."""

    def __init__(
        self,
        cards: Optional[list[Card]] = None,
        purchases: Optional[list[Purchase]] = None,
        payment_ledger: Optional[dict[str, bool]] = None,
    ):
        self._cards: dict[str, Card] = {card.id: card for card in cards or []}
        self._purchases: dict[str, Purchase] = {p.id: p for p in purchases or []}
        self._ledger: dict[str, bool] = dict(payment_ledger or {})

    async def list_cards(self) -> list[Card]:
        return list(self._cards.values())

    async def list_purchases(self) -> list[Purchase]:
        return list(self._purchases.values())

    async def list_payment_status(self) -> dict[str, bool]:
        return dict(self._ledger)

    async def upsert_card(self, card: Card) -> bool:
        self._cards[card.id] = card
        return True

    async def delete_card(self, card_id: str) -> bool:
        return self._cards.pop(card_id, None) is not None

    async def upsert_purchase(self, purchase: Purchase) -> bool:
        self._purchases[purchase.id] = purchase
        return True

    async def delete_purchase(self, purchase_id: str) -> bool:
        return self._purchases.pop(purchase_id, None) is not None

    async def set_payment_status(self, card_id: str, month: str, paid: bool) -> bool:
        self._ledger[status_key(card_id, month)] = paid
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
