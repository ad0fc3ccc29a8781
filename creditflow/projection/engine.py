"""
Monthly Projection Engine

Expands purchases into a gapless calendar of amounts due per month,
broken down by card.

DESIGN DECISION: The projection is rebuilt from the source purchases on
every call. Nothing is cached or updated incrementally, so the output
depends only on the input list and recomputing it is always safe.

Rounding: only the per-month total and the per-card breakdown values are
rounded (half-up, 2 places). Line items keep the exact installment
amount, so for amounts that don't divide evenly the items of a month may
not add up to its displayed total to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from creditflow.models.finance import InstallmentItem, MonthlyProjection, Purchase
from creditflow.projection.months import (
    DEFAULT_LOCALE,
    add_months,
    format_display_label,
    month_range,
)


CENT = Decimal("0.01")
ZERO = Decimal("0")


def round_currency(amount: Decimal) -> Decimal:
    """Standard currency rounding: 2 places, halves away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def build_projection(
    purchases: Iterable[Purchase],
    locale: str = DEFAULT_LOCALE,
) -> list[MonthlyProjection]:
    """
    Build the month-by-month projection for a set of purchases.

    Covers every month from the first to the last installment across all
    purchases. Months with nothing due are emitted with a zero total and
    an empty breakdown. An empty input gives an empty projection.
    """
    totals: dict[str, Decimal] = {}
    breakdowns: dict[str, dict[str, Decimal]] = {}
    items: dict[str, list[InstallmentItem]] = {}
    first_month = None
    last_month = None

    for purchase in purchases:
        per_installment = purchase.installment_amount

        for index in range(purchase.installments):
            month = add_months(purchase.start_month, index)

            if first_month is None or month < first_month:
                first_month = month
            if last_month is None or month > last_month:
                last_month = month

            totals[month] = totals.get(month, ZERO) + per_installment
            breakdown = breakdowns.setdefault(month, {})
            breakdown[purchase.card_id] = breakdown.get(purchase.card_id, ZERO) + per_installment
            items.setdefault(month, []).append(InstallmentItem(
                title=purchase.title,
                installment_number=index + 1,
                amount=per_installment,
                card_id=purchase.card_id,
            ))

    if first_month is None:
        return []

    projection = []
    for month in month_range(first_month, last_month):
        if month in totals:
            projection.append(MonthlyProjection(
                month=month,
                display_label=format_display_label(month, locale),
                total_due=round_currency(totals[month]),
                breakdown={
                    card_id: round_currency(amount)
                    for card_id, amount in breakdowns[month].items()
                },
                items=items[month],
            ))
        else:
            projection.append(MonthlyProjection(
                month=month,
                display_label=format_display_label(month, locale),
            ))

    return projection
