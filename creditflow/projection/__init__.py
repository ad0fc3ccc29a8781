"""Monthly projection: calendar helpers, engine, ledger join and views."""

from creditflow.projection.engine import build_projection, round_currency
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
from creditflow.projection.months import (
    add_months,
    current_month,
    due_date_for,
    format_display_label,
    month_range,
    parse_month,
)
from creditflow.projection.views import (
    CardView,
    derive_card_view,
    filter_purchases,
    visible_cards,
)

__all__ = [
    "CardView",
    "add_months",
    "build_invoice_rows",
    "build_projection",
    "compute_dashboard_metrics",
    "current_month",
    "derive_card_view",
    "due_date_for",
    "filter_purchases",
    "format_display_label",
    "invoice_status",
    "is_paid",
    "month_range",
    "parse_month",
    "purchase_schedule",
    "round_currency",
    "select_highlight_invoice",
    "split_status_key",
    "status_key",
    "visible_cards",
]
