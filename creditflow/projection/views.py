"""
Card filter and view derivation.

Everything here is a pure function of (cards, purchases, selected card).
"""

from typing import Optional

from pydantic import BaseModel, Field

from creditflow.models.finance import Card, MonthlyProjection, Purchase
from creditflow.projection.engine import build_projection
from creditflow.projection.months import DEFAULT_LOCALE


class CardView(BaseModel):
    """What the dashboard shows for the current card selection."""

    selected_card_id: Optional[str] = None
    filtered_purchases: list[Purchase] = Field(default_factory=list)
    projection: list[MonthlyProjection] = Field(default_factory=list)
    visible_cards: list[Card] = Field(default_factory=list)


def filter_purchases(
    purchases: list[Purchase],
    selected_card_id: Optional[str],
) -> list[Purchase]:
    if not selected_card_id:
        return list(purchases)
    return [purchase for purchase in purchases if purchase.card_id == selected_card_id]


def visible_cards(
    cards: list[Card],
    selected_card_id: Optional[str],
    projection: list[MonthlyProjection],
) -> list[Card]:
    """
    Cards to draw in charts and lists.

    With a selection, just that card. Without one, every card that has a
    positive amount somewhere in the projection; when there is no
    projection at all, every card, so users without purchases still see
    their cards.
    """
    if selected_card_id:
        return [card for card in cards if card.id == selected_card_id]

    if not projection:
        return list(cards)

    active_ids = {
        card_id
        for entry in projection
        for card_id, amount in entry.breakdown.items()
        if amount > 0
    }
    return [card for card in cards if card.id in active_ids]


def derive_card_view(
    cards: list[Card],
    purchases: list[Purchase],
    selected_card_id: Optional[str] = None,
    locale: str = DEFAULT_LOCALE,
) -> CardView:
    filtered = filter_purchases(purchases, selected_card_id)
    projection = build_projection(filtered, locale=locale)
    return CardView(
        selected_card_id=selected_card_id,
        filtered_purchases=filtered,
        projection=projection,
        visible_cards=visible_cards(cards, selected_card_id, projection),
    )
