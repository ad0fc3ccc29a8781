"""
Streamlit Frontend for CreditFlow

The screen a user opens to answer one question: how much do my credit
cards take from me each month from here on?

DESIGN PRINCIPLES:
1. Every number on screen is recomputed from the session after each change
2. Forms validate before anything is saved
3. Storage problems are shown, never hidden
4. Deleting a card never deletes its purchases

The session lives in st.session_state and is only replaced through
FinanceFlow, which also writes to storage.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from creditflow.config import get_settings, validate_all_settings
from creditflow.models.finance import InvoiceStatus, RiskLevel
from creditflow.orchestrator import FinanceFlow, create_app_components
from creditflow.projection import current_month, purchase_schedule
from creditflow.services.spreadsheet import SpreadsheetParseError, backup_filename
from creditflow.session import FinanceSession, build_dashboard, select_card
from creditflow.validation import CardValidator


# Page configuration
st.set_page_config(
    page_title="CreditFlow",
    page_icon="💳",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .card-chip {
        display: inline-block;
        width: 12px;
        height: 12px;
        border-radius: 50%;
        margin-right: 6px;
    }
</style>
""", unsafe_allow_html=True)


CARD_PALETTE = [
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#f97316",  # orange
    "#10b981",  # emerald
    "#3b82f6",  # blue
    "#ef4444",  # red
    "#eab308",  # yellow
    "#14b8a6",  # teal
]

STATUS_BOXES = {
    InvoiceStatus.PAID: ("success-box", "✅ Paga"),
    InvoiceStatus.PENDING: ("info-box", "⏳ Em aberto"),
    InvoiceStatus.OVERDUE: ("error-box", "⚠️ Atrasada"),
}

RISK_BOXES = {
    RiskLevel.LOW: "success-box",
    RiskLevel.MEDIUM: "warning-box",
    RiskLevel.HIGH: "error-box",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def format_money(amount: Decimal) -> str:
    """R$ 1.234,56 for pt-BR, $ 1,234.56 otherwise."""
    app_settings = get_settings().app
    text = f"{amount:,.2f}"
    if app_settings.display_locale == "pt-BR":
        text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{app_settings.currency_symbol} {text}"


def get_session(flow: FinanceFlow) -> FinanceSession:
    """The current session, loaded from storage on first use."""
    if "finance_session" not in st.session_state:
        session, ok = run_async(flow.load_session())
        if not ok:
            st.warning("Could not load your data from storage. Changes may not be saved.")
        st.session_state.finance_session = session
    return st.session_state.finance_session


def apply(result: tuple[FinanceSession, bool], success: str) -> None:
    """Store the new session and report whether it reached storage."""
    session, ok = result
    st.session_state.finance_session = session
    if ok:
        st.session_state.flash = ("success", success)
    else:
        st.session_state.flash = (
            "warning",
            "Change applied on screen, but saving it failed. It may be lost on reload.",
        )
    st.rerun()


def show_flash() -> None:
    flash = st.session_state.pop("flash", None)
    if flash:
        kind, message = flash
        getattr(st, kind)(message)


def main():
    """Main application entry point."""
    flow, sheets_client = get_components()
    session = get_session(flow)

    st.sidebar.title("💳 CreditFlow")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "💳 Cards", "🛒 Purchases", "💾 Backup", "🤖 Advisor", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if sheets_client is None:
        st.sidebar.info("Running without Google Sheets: data lives only in this session.")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add your cards and their due day
        2. Add each installment purchase
        3. Mark invoices as paid when you pay them
        """
    )

    show_flash()

    if page == "📊 Dashboard":
        render_dashboard_page(flow, session)
    elif page == "💳 Cards":
        render_cards_page(flow, session)
    elif page == "🛒 Purchases":
        render_purchases_page(flow, session)
    elif page == "💾 Backup":
        render_backup_page(flow, session)
    elif page == "🤖 Advisor":
        render_advisor_page(flow, session)
    elif page == "⚙️ Settings":
        render_settings_page(flow)


def render_card_filter(session: FinanceSession) -> None:
    options = [None] + [card.id for card in session.cards]
    names = {card.id: card.name for card in session.cards}
    current = session.selected_card_id if session.selected_card_id in names else None

    selected = st.selectbox(
        "Card",
        options=options,
        index=options.index(current),
        format_func=lambda card_id: "All cards" if card_id is None else names[card_id],
    )
    if selected != session.selected_card_id:
        st.session_state.finance_session = select_card(session, selected)
        st.rerun()


def render_dashboard_page(flow: FinanceFlow, session: FinanceSession):
    """Render the projection dashboard."""
    st.title("📊 Dashboard")

    render_card_filter(session)
    dashboard = build_dashboard(session, locale=get_settings().app.display_locale)

    col1, col2, col3 = st.columns(3)
    col1.metric("Remaining to pay", format_money(dashboard.metrics.total_remaining))
    col2.metric("Months with debt", dashboard.metrics.months_with_debt)
    col3.metric("Highest month", format_money(dashboard.metrics.peak_month_total))

    if not dashboard.view.projection:
        st.info("No installments yet. Add a purchase on the 'Purchases' page.")
        return

    # Chart: one stacked series per visible card
    cards = dashboard.view.visible_cards
    chart = {"Month": [entry.display_label for entry in dashboard.view.projection]}
    for card in cards:
        chart[card.name] = [
            float(entry.breakdown.get(card.id, 0)) for entry in dashboard.view.projection
        ]
    if cards:
        st.bar_chart(
            chart,
            x="Month",
            y=[card.name for card in cards],
            color=[card.color for card in cards],
        )

    highlight = dashboard.highlight_invoice
    if highlight:
        css, label = STATUS_BOXES[highlight.status]
        st.markdown(f"""
        <div class="{css}">
            <h4>Next invoice: {highlight.card.name} - {highlight.display_label}</h4>
            <p><strong>{format_money(highlight.amount)}</strong>
               due {highlight.due_date.strftime('%d/%m/%Y')}
               ({highlight.days_until_due} days) - {label}</p>
        </div>
        """, unsafe_allow_html=True)

    st.markdown("### Invoices")
    this_month = current_month()
    show_past = st.checkbox("Show past months", value=False)

    for row in dashboard.invoices:
        if not show_past and row.month < this_month and row.is_paid:
            continue
        _, label = STATUS_BOXES[row.status]
        col1, col2, col3, col4 = st.columns([3, 2, 2, 2])
        col1.markdown(
            f'<span class="card-chip" style="background:{row.card.color}"></span>'
            f"**{row.card.name}** · {row.display_label}",
            unsafe_allow_html=True,
        )
        col2.markdown(format_money(row.amount))
        col3.markdown(f"{row.due_date.strftime('%d/%m/%Y')} · {label}")
        button = "Mark pending" if row.is_paid else "Mark paid"
        if col4.button(button, key=f"toggle-{row.status_key}"):
            apply(
                run_async(flow.toggle_invoice(session, row.card.id, row.month)),
                f"Invoice {row.display_label} updated.",
            )


def render_cards_page(flow: FinanceFlow, session: FinanceSession):
    """Render the card list and card form."""
    st.title("💳 Cards")

    editing_id = st.session_state.get("editing_card_id")
    editing = next((c for c in session.cards if c.id == editing_id), None)

    with st.form("card_form", clear_on_submit=editing is None):
        st.markdown("### " + ("Edit card" if editing else "New card"))
        name = st.text_input("Name", value=editing.name if editing else "")
        due_day = st.number_input(
            "Due day",
            min_value=1,
            max_value=31,
            value=editing.due_day if editing else get_settings().app.default_due_day,
        )
        palette_index = CARD_PALETTE.index(editing.color) if editing and editing.color in CARD_PALETTE else 0
        color = st.selectbox("Color", CARD_PALETTE, index=palette_index)
        submitted = st.form_submit_button("💾 Save card", type="primary")

    if submitted:
        result, card = CardValidator().validate(
            name=name,
            color=color,
            due_day=due_day,
            card_id=editing.id if editing else None,
        )
        if card is None:
            for issue in result.issues:
                st.error(issue.message)
        else:
            st.session_state.editing_card_id = None
            apply(run_async(flow.save_card(session, card)), f"Card '{card.name}' saved.")

    if editing and st.button("Cancel editing"):
        st.session_state.editing_card_id = None
        st.rerun()

    st.markdown("---")
    if not session.cards:
        st.info("No cards yet.")
        return

    for card in session.cards:
        in_use = sum(1 for p in session.purchases if p.card_id == card.id)
        col1, col2, col3 = st.columns([4, 1, 1])
        col1.markdown(
            f'<span class="card-chip" style="background:{card.color}"></span>'
            f"**{card.name}** · due day {card.due_day} · {in_use} purchases",
            unsafe_allow_html=True,
        )
        if col2.button("✏️ Edit", key=f"edit-card-{card.id}"):
            st.session_state.editing_card_id = card.id
            st.rerun()
        if col3.button("🗑️ Delete", key=f"delete-card-{card.id}"):
            apply(
                run_async(flow.remove_card(session, card.id)),
                f"Card '{card.name}' deleted. Its purchases now show as 'Unknown'."
                if in_use else f"Card '{card.name}' deleted.",
            )


def render_purchases_page(flow: FinanceFlow, session: FinanceSession):
    """Render the purchase list and purchase form."""
    st.title("🛒 Purchases")

    if not session.cards:
        st.info("Add a card first on the 'Cards' page.")

    editing_id = st.session_state.get("editing_purchase_id")
    editing = next((p for p in session.purchases if p.id == editing_id), None)
    names = {card.id: card.name for card in session.cards}
    card_options = [card.id for card in session.cards]
    if editing and editing.card_id not in names:
        card_options.append(editing.card_id)

    with st.form("purchase_form", clear_on_submit=editing is None):
        st.markdown("### " + ("Edit purchase" if editing else "New purchase"))
        title = st.text_input("Description", value=editing.title if editing else "")
        amount = st.text_input(
            "Total amount",
            value=str(editing.total_amount) if editing else "",
            placeholder="e.g. 1200,00",
        )
        installments = st.number_input(
            "Installments",
            min_value=1,
            max_value=120,
            value=editing.installments if editing else 1,
        )
        card_id = st.selectbox(
            "Card",
            options=card_options,
            index=card_options.index(editing.card_id) if editing else 0,
            format_func=lambda cid: names.get(cid, "Unknown"),
        ) if card_options else None
        start_month = st.text_input(
            "First installment month (YYYY-MM)",
            value=editing.start_month if editing else current_month(),
        )
        submitted = st.form_submit_button("💾 Save purchase", type="primary")

    if submitted:
        new_session, result, ok = run_async(flow.submit_purchase(
            session,
            title=title,
            total_amount=amount,
            installments=installments,
            card_id=card_id,
            start_month=start_month.strip(),
            purchase_id=editing.id if editing else None,
        ))
        for issue in result.issues:
            if issue.severity == "error":
                st.error(issue.message)
            elif issue.severity == "warning":
                st.warning(issue.message)
        if result.is_valid:
            st.session_state.editing_purchase_id = None
            apply((new_session, ok), f"Purchase '{title.strip()}' saved.")

    if editing and st.button("Cancel editing"):
        st.session_state.editing_purchase_id = None
        st.rerun()

    st.markdown("---")
    if not session.purchases:
        st.info("No purchases yet.")
        return

    cards = list(session.cards)
    for purchase in sorted(session.purchases, key=lambda p: p.start_month, reverse=True):
        card_name = names.get(purchase.card_id, "Unknown")
        header = (
            f"{purchase.title} · {format_money(purchase.total_amount)} "
            f"in {purchase.installments}x · {card_name}"
        )
        with st.expander(header):
            schedule = purchase_schedule(purchase, cards, session.payment_ledger, date.today())
            st.table([
                {
                    "Installment": item.label,
                    "Month": item.month,
                    "Due": item.due_date.strftime("%d/%m/%Y"),
                    "Amount": format_money(item.amount),
                    "Status": "Paid" if item.is_paid else ("Overdue" if item.is_overdue else "Pending"),
                }
                for item in schedule
            ])
            col1, col2 = st.columns(2)
            if col1.button("✏️ Edit", key=f"edit-purchase-{purchase.id}"):
                st.session_state.editing_purchase_id = purchase.id
                st.rerun()
            if col2.button("🗑️ Delete", key=f"delete-purchase-{purchase.id}"):
                apply(
                    run_async(flow.remove_purchase(session, purchase.id)),
                    f"Purchase '{purchase.title}' deleted.",
                )


def render_backup_page(flow: FinanceFlow, session: FinanceSession):
    """Render spreadsheet export and import."""
    st.title("💾 Backup")

    st.markdown("### Export")
    st.markdown("Download every card, purchase and paid flag as an Excel workbook.")
    if st.button("📦 Prepare backup"):
        st.session_state.backup_blob = run_async(flow.export_workbook(session))

    if st.session_state.get("backup_blob"):
        st.download_button(
            "⬇️ Download workbook",
            data=st.session_state.backup_blob,
            file_name=backup_filename(),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    st.markdown("---")
    st.markdown("### Import")
    st.markdown(
        "Records are matched by ID: existing ones are updated, new ones are added, "
        "nothing is deleted."
    )
    uploaded_file = st.file_uploader("Choose a backup workbook", type=["xlsx"])

    if uploaded_file and st.button("📥 Import", type="primary"):
        max_size = get_settings().app.max_import_size_bytes
        if uploaded_file.size > max_size:
            st.error(f"File too large. Maximum is {max_size // (1024 * 1024)} MB.")
            return
        try:
            result = run_async(flow.import_workbook(session, uploaded_file.read()))
        except SpreadsheetParseError as e:
            st.markdown(f"""
            <div class="error-box">
                <h4>Could not import this file</h4>
                <p>{e}</p>
            </div>
            """, unsafe_allow_html=True)
            return
        apply(result, "Backup imported.")


def render_advisor_page(flow: FinanceFlow, session: FinanceSession):
    """Render the AI advisor."""
    st.title("🤖 Advisor")

    if not flow.advisor_available:
        st.info("The advisor needs a Gemini API key. See the 'Settings' page.")
        return

    render_card_filter(session)
    st.markdown("The advisor looks at the projection for the selected cards only.")

    if st.button("💡 Get advice", type="primary"):
        with st.spinner("Analysing your installments..."):
            st.session_state.advice = run_async(flow.request_advice(session))
        st.session_state.advice_requested = True

    if not st.session_state.get("advice_requested"):
        return

    advice = st.session_state.get("advice")
    if advice is None:
        st.warning("Advice unavailable right now. Try again later.")
        return

    st.markdown(f"""
    <div class="{RISK_BOXES[advice.risk_level]}">
        <h4>Risk: {advice.risk_level.value}</h4>
        <p>{advice.summary}</p>
    </div>
    """, unsafe_allow_html=True)
    for tip in advice.tips:
        st.markdown(f"- {tip}")


def render_settings_page(flow: FinanceFlow):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (Advisor)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("gemini") and not get_settings().gemini.api_key:
        st.warning("Gemini API key is empty; the advisor is disabled.")

    st.markdown("---")
    st.markdown("### Recent Activity")

    events = run_async(flow.recent_activity(limit=20))
    if events:
        st.table([
            {
                "When": event.timestamp.strftime("%Y-%m-%d %H:%M"),
                "Event": event.event_type.value,
                "Description": event.description,
                "Error": event.error_message or "",
            }
            for event in events
        ])
    else:
        st.caption("No activity recorded yet.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
