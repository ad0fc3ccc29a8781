"""Flow tests for FinanceFlow against in-memory storage."""

from decimal import Decimal

import pytest

from creditflow.agents import AdvisorAgent
from creditflow.audit import AuditLogger
from creditflow.models.audit import AuditEventType
from creditflow.models.finance import Card, RiskLevel
from creditflow.orchestrator import FinanceFlow, create_app_components
from creditflow.services.spreadsheet import SpreadsheetParseError, SpreadsheetService
from creditflow.services.storage import (
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    StorageError,
)
from creditflow.session import FinanceSession, select_card

from tests.test_advisor import ADVICE_JSON, FakeModel


class BrokenStorage(InMemoryFinanceStorage):
    """Reads work, every write fails."""

    async def upsert_card(self, card):
        raise StorageError("sheet is read-only")

    async def upsert_purchase(self, purchase):
        raise StorageError("sheet is read-only")

    async def set_payment_status(self, card_id, month, paid):
        raise StorageError("sheet is read-only")


class UnreachableStorage(InMemoryFinanceStorage):
    async def list_cards(self):
        raise StorageError("network down")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def model():
    return FakeModel(ADVICE_JSON)


def make_flow(storage, audit_storage, model=None):
    return FinanceFlow(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        advisor=AdvisorAgent(model=model),
        spreadsheet=SpreadsheetService(default_due_day=10),
        locale="pt-BR",
    )


async def event_types(audit_storage):
    return [event.event_type for event in await audit_storage.get_recent_events()]


class TestLoading:
    """Tests for load_session."""

    @pytest.mark.asyncio
    async def test_load_session(self, audit_storage, cards, phone):
        """Test reading everything from storage."""
        storage = InMemoryFinanceStorage(cards, [phone], {"c1-2024-01": True})
        session, ok = await make_flow(storage, audit_storage).load_session()

        assert ok
        assert list(session.cards) == cards
        assert list(session.purchases) == [phone]
        assert session.payment_ledger == {"c1-2024-01": True}

    @pytest.mark.asyncio
    async def test_load_failure(self, audit_storage):
        """Test that an unreachable store gives an empty session and ok=False."""
        session, ok = await make_flow(UnreachableStorage(), audit_storage).load_session()

        assert not ok
        assert session == FinanceSession()
        assert AuditEventType.STORAGE_FAILED in await event_types(audit_storage)


class TestEditing:
    """Tests for card, purchase and invoice changes."""

    @pytest.mark.asyncio
    async def test_save_card(self, audit_storage, nubank):
        """Test that a saved card reaches storage and the audit log."""
        storage = InMemoryFinanceStorage()
        session, ok = await make_flow(storage, audit_storage).save_card(FinanceSession(), nubank)

        assert ok
        assert list(session.cards) == [nubank]
        assert await storage.list_cards() == [nubank]
        assert await event_types(audit_storage) == [AuditEventType.CARD_SAVED]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_change(self, audit_storage, nubank):
        """Test optimistic update: the change stays on screen, ok=False."""
        session, ok = await make_flow(BrokenStorage(), audit_storage).save_card(
            FinanceSession(), nubank
        )

        assert not ok
        assert list(session.cards) == [nubank]
        assert await event_types(audit_storage) == [AuditEventType.STORAGE_FAILED]

    @pytest.mark.asyncio
    async def test_remove_card_keeps_purchases(self, audit_storage, cards, phone):
        """Test that deleting a card leaves its purchases in storage."""
        storage = InMemoryFinanceStorage(cards, [phone])
        flow = make_flow(storage, audit_storage)
        session, _ = await flow.load_session()

        session, ok = await flow.remove_card(session, "c1")

        assert ok
        assert [card.id for card in session.cards] == ["c2"]
        assert list(session.purchases) == [phone]
        assert await storage.list_purchases() == [phone]
        events = await audit_storage.get_recent_events()
        assert events[0].details["orphaned_purchases"] == 1

    @pytest.mark.asyncio
    async def test_submit_purchase(self, audit_storage, cards):
        """Test the validated purchase form."""
        storage = InMemoryFinanceStorage()
        session = FinanceSession(cards=tuple(cards))

        session, result, ok = await make_flow(storage, audit_storage).submit_purchase(
            session,
            title="Notebook",
            total_amount="4.500,00",
            installments=10,
            card_id="c1",
            start_month="2024-03",
        )

        assert ok and result.is_valid
        assert session.purchases[0].total_amount == Decimal("4500.00")
        assert (await storage.list_purchases())[0].title == "Notebook"

    @pytest.mark.asyncio
    async def test_submit_invalid_purchase(self, audit_storage, cards):
        """Test that a rejected form changes nothing and is audited."""
        storage = InMemoryFinanceStorage()
        before = FinanceSession(cards=tuple(cards))

        after, result, ok = await make_flow(storage, audit_storage).submit_purchase(
            before,
            title="",
            total_amount="0",
            installments=1,
            card_id="c1",
            start_month="2024-03",
        )

        assert not ok and not result.is_valid
        assert after == before
        assert await storage.list_purchases() == []
        assert await event_types(audit_storage) == [AuditEventType.PURCHASE_REJECTED]

    @pytest.mark.asyncio
    async def test_submit_overlong_title(self, audit_storage, cards):
        """Test that a too-long description is rejected, not raised."""
        storage = InMemoryFinanceStorage()
        before = FinanceSession(cards=tuple(cards))

        after, result, ok = await make_flow(storage, audit_storage).submit_purchase(
            before,
            title="x" * 201,
            total_amount="100",
            installments=2,
            card_id="c1",
            start_month="2024-03",
        )

        assert not ok and not result.is_valid
        assert after == before
        assert await storage.list_purchases() == []

    @pytest.mark.asyncio
    async def test_remove_purchase(self, audit_storage, phone, sofa):
        """Test deleting a purchase."""
        storage = InMemoryFinanceStorage(purchases=[phone, sofa])
        flow = make_flow(storage, audit_storage)
        session, _ = await flow.load_session()

        session, ok = await flow.remove_purchase(session, "p1")

        assert ok
        assert list(session.purchases) == [sofa]
        assert await storage.list_purchases() == [sofa]

    @pytest.mark.asyncio
    async def test_toggle_invoice(self, audit_storage, cards, phone):
        """Test marking an invoice paid and back."""
        storage = InMemoryFinanceStorage(cards, [phone])
        flow = make_flow(storage, audit_storage)
        session, _ = await flow.load_session()

        session, ok = await flow.toggle_invoice(session, "c1", "2024-01")
        assert ok
        assert session.payment_ledger == {"c1-2024-01": True}
        assert await storage.list_payment_status() == {"c1-2024-01": True}

        session, ok = await flow.toggle_invoice(session, "c1", "2024-01")
        assert await storage.list_payment_status() == {"c1-2024-01": False}

    @pytest.mark.asyncio
    async def test_toggle_invoice_storage_failure(self, audit_storage):
        """Test that a failed flag write is reported but kept."""
        session, ok = await make_flow(BrokenStorage(), audit_storage).toggle_invoice(
            FinanceSession(), "c1", "2024-01"
        )
        assert not ok
        assert session.payment_ledger == {"c1-2024-01": True}
        events = await audit_storage.get_recent_events()
        assert events[0].entity_id == "c1-2024-01"


class TestBackup:
    """Tests for export and import through the flow."""

    @pytest.mark.asyncio
    async def test_export_then_import_into_empty_store(self, audit_storage, cards, phone, sofa):
        """Test moving all data to a fresh store through a workbook."""
        source = FinanceSession(
            cards=tuple(cards),
            purchases=(phone, sofa),
            payment_ledger={"c1-2024-01": True},
        )
        blob = await make_flow(InMemoryFinanceStorage(), audit_storage).export_workbook(source)

        target_storage = InMemoryFinanceStorage()
        session, ok = await make_flow(target_storage, audit_storage).import_workbook(
            FinanceSession(), blob
        )

        assert ok
        assert list(session.cards) == cards
        assert len(session.purchases) == 2
        assert await target_storage.list_payment_status() == {"c1-2024-01": True}
        assert len(await target_storage.list_cards()) == 2
        types = await event_types(audit_storage)
        assert AuditEventType.DATA_EXPORTED in types
        assert AuditEventType.DATA_IMPORTED in types

    @pytest.mark.asyncio
    async def test_import_merges(self, audit_storage, cards, phone):
        """Test that import upserts and keeps records not in the file."""
        blob = SpreadsheetService().export_workbook(
            [Card(id="c1", name="Nubank Novo", due_day=20)], [], {}
        )
        flow = make_flow(InMemoryFinanceStorage(cards, [phone]), audit_storage)
        session, _ = await flow.load_session()

        session, ok = await flow.import_workbook(session, blob)

        assert ok
        assert [card.name for card in session.cards] == ["Nubank Novo", "Inter"]
        assert list(session.purchases) == [phone]

    @pytest.mark.asyncio
    async def test_import_with_failed_writes(self, audit_storage, cards):
        """Test that write failures during import give ok=False."""
        blob = SpreadsheetService().export_workbook(cards, [], {})
        session, ok = await make_flow(BrokenStorage(), audit_storage).import_workbook(
            FinanceSession(), blob
        )

        assert not ok
        assert len(session.cards) == 2
        events = await audit_storage.get_recent_events()
        imported = [e for e in events if e.event_type == AuditEventType.DATA_IMPORTED]
        assert imported[0].details["failed_writes"] == 2

    @pytest.mark.asyncio
    async def test_import_unreadable_file(self, audit_storage):
        """Test that a broken file is raised and audited."""
        flow = make_flow(InMemoryFinanceStorage(), audit_storage)
        with pytest.raises(SpreadsheetParseError):
            await flow.import_workbook(FinanceSession(), b"garbage")
        assert await event_types(audit_storage) == [AuditEventType.IMPORT_FAILED]


class TestAdvice:
    """Tests for request_advice."""

    @pytest.mark.asyncio
    async def test_advice_uses_selected_card(self, audit_storage, model, cards, phone, sofa):
        """Test that only the filtered projection is sent."""
        flow = make_flow(InMemoryFinanceStorage(), audit_storage, model=model)
        session = select_card(
            FinanceSession(cards=tuple(cards), purchases=(phone, sofa)),
            "c2",
        )

        advice = await flow.request_advice(session)

        assert advice.risk_level == RiskLevel.MEDIUM
        assert "Sofa" in model.prompts[0]
        assert "Phone" not in model.prompts[0]
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.ADVICE_GENERATED
        assert events[0].details["months_analyzed"] == 2

    @pytest.mark.asyncio
    async def test_advice_unavailable(self, audit_storage, phone):
        """Test that a failed advice call is audited as unavailable."""
        flow = make_flow(
            InMemoryFinanceStorage(),
            audit_storage,
            model=FakeModel(error=RuntimeError("timeout")),
        )
        advice = await flow.request_advice(FinanceSession(purchases=(phone,)))

        assert advice is None
        assert await event_types(audit_storage) == [AuditEventType.ADVICE_UNAVAILABLE]


class TestFactory:
    """Tests for create_app_components."""

    def test_without_storage(self):
        """Test the in-memory setup."""
        flow, sheets_client = create_app_components(use_storage=False)
        assert isinstance(flow, FinanceFlow)
        assert sheets_client is None
        assert not flow.advisor_available

    def test_falls_back_when_sheets_not_configured(self):
        """Test that missing Sheets settings fall back to memory."""
        flow, sheets_client = create_app_components(use_storage=True)
        assert isinstance(flow, FinanceFlow)
        assert sheets_client is None

    @pytest.mark.asyncio
    async def test_in_memory_activity(self, nubank):
        """Test that the in-memory setup still records recent activity."""
        flow, _ = create_app_components(use_storage=False)
        await flow.save_card(FinanceSession(), nubank)

        events = await flow.recent_activity()
        assert [event.event_type for event in events] == [AuditEventType.CARD_SAVED]


class TestActivity:
    """Tests for recent_activity."""

    @pytest.mark.asyncio
    async def test_newest_first(self, audit_storage, nubank):
        """Test that the latest action comes first."""
        flow = make_flow(InMemoryFinanceStorage(), audit_storage)
        session, _ = await flow.save_card(FinanceSession(), nubank)
        await flow.toggle_invoice(session, "c1", "2024-01")

        events = await flow.recent_activity(limit=1)

        assert [event.event_type for event in events] == [AuditEventType.PAYMENT_STATUS_UPDATED]

    @pytest.mark.asyncio
    async def test_without_audit_store(self):
        """Test that a log-only audit logger has no activity to show."""
        flow = FinanceFlow(storage=InMemoryFinanceStorage(), audit_logger=AuditLogger())
        assert await flow.recent_activity() == []
