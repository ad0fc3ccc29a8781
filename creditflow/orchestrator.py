"""
Main Orchestrator for CreditFlow

This module ties the pure session functions to storage, the spreadsheet
service, the advisor and the audit log. It defines the flows for:
1. Editing (card / purchase / invoice flag → session → storage)
2. Backup (session → xlsx, xlsx → session → storage)
3. Advice (visible projection → advisor)

DESIGN DECISION: Updates are optimistic. The new session is computed and
returned first; storage is written afterwards. A failed write is audited
and reported with ok=False, but the change stays on screen. There is no
rollback: the next successful load from storage is the source of truth.
"""

from typing import Awaitable, Optional
from uuid import UUID

import structlog

from creditflow.agents import AdvisorAgent
from creditflow.audit import AuditLogger, create_correlation_id
from creditflow.config import get_settings
from creditflow.models.audit import AuditEvent
from creditflow.models.finance import (
    Card,
    FinancialAdvice,
    Purchase,
    ValidationResult,
)
from creditflow.projection.ledger import split_status_key, status_key
from creditflow.services.spreadsheet import SpreadsheetParseError, SpreadsheetService
from creditflow.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    StorageError,
)
from creditflow.session import (
    FinanceSession,
    build_dashboard,
    merge_imported,
    remove_card,
    remove_purchase,
    toggle_payment_status,
    upsert_card,
    upsert_purchase,
)
from creditflow.validation import PurchaseValidator


logger = structlog.get_logger(__name__)


class FinanceFlow:
    """
    Orchestrates every user action that touches storage.

    Each method takes the current session and returns the next one,
    plus whether persistence succeeded.
    """

    def __init__(
        self,
        storage: Optional[FinanceStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        advisor: Optional[AdvisorAgent] = None,
        spreadsheet: Optional[SpreadsheetService] = None,
        locale: Optional[str] = None,
    ):
        app_settings = get_settings().app
        self._storage = storage or InMemoryFinanceStorage()
        self._audit_logger = audit_logger or AuditLogger()
        self._advisor = advisor or AdvisorAgent()
        self._spreadsheet = spreadsheet or SpreadsheetService(
            default_due_day=app_settings.default_due_day
        )
        self._purchase_validator = PurchaseValidator()
        self._locale = locale or app_settings.display_locale

    @property
    def advisor_available(self) -> bool:
        return self._advisor.is_available

    async def _persist(
        self,
        operation: str,
        entity_id: Optional[str],
        write: Awaitable,
        correlation_id: UUID,
    ) -> bool:
        """Run one storage write; failures are audited, never raised."""
        try:
            await write
            return True
        except StorageError as e:
            await self._audit_logger.log_storage_failed(
                operation=operation,
                entity_id=entity_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_session(self) -> tuple[FinanceSession, bool]:
        """
        Read everything from storage into a fresh session.

        On failure an empty session is returned with ok=False.
        """
        try:
            cards = await self._storage.list_cards()
            purchases = await self._storage.list_purchases()
            ledger = await self._storage.list_payment_status()
        except StorageError as e:
            await self._audit_logger.log_storage_failed(
                operation="load",
                entity_id=None,
                error_message=str(e),
                correlation_id=create_correlation_id(),
            )
            return FinanceSession(), False

        return FinanceSession(
            cards=tuple(cards),
            purchases=tuple(purchases),
            payment_ledger=ledger,
        ), True

    # -------------------------------------------------------------------------
    # Cards
    # -------------------------------------------------------------------------

    async def save_card(
        self,
        session: FinanceSession,
        card: Card,
    ) -> tuple[FinanceSession, bool]:
        """Add or replace a card."""
        correlation_id = create_correlation_id()
        session = upsert_card(session, card)

        ok = await self._persist(
            "upsert_card", card.id, self._storage.upsert_card(card), correlation_id
        )
        if ok:
            await self._audit_logger.log_card_saved(
                card_id=card.id,
                name=card.name,
                due_day=card.due_day,
                correlation_id=correlation_id,
            )
        return session, ok

    async def remove_card(
        self,
        session: FinanceSession,
        card_id: str,
    ) -> tuple[FinanceSession, bool]:
        """
        Delete a card. Purchases on it are kept and show up under the
        placeholder card until they are moved or deleted.
        """
        correlation_id = create_correlation_id()
        orphaned = sum(1 for p in session.purchases if p.card_id == card_id)
        session = remove_card(session, card_id)

        ok = await self._persist(
            "delete_card", card_id, self._storage.delete_card(card_id), correlation_id
        )
        if ok:
            await self._audit_logger.log_card_deleted(
                card_id=card_id,
                orphaned_purchases=orphaned,
                correlation_id=correlation_id,
            )
        return session, ok

    # -------------------------------------------------------------------------
    # Purchases
    # -------------------------------------------------------------------------

    async def save_purchase(
        self,
        session: FinanceSession,
        purchase: Purchase,
    ) -> tuple[FinanceSession, bool]:
        """Add or replace an already validated purchase."""
        correlation_id = create_correlation_id()
        session = upsert_purchase(session, purchase)

        ok = await self._persist(
            "upsert_purchase",
            purchase.id,
            self._storage.upsert_purchase(purchase),
            correlation_id,
        )
        if ok:
            await self._audit_logger.log_purchase_saved(
                purchase_id=purchase.id,
                title=purchase.title,
                amount=str(purchase.total_amount),
                installments=purchase.installments,
                correlation_id=correlation_id,
            )
        return session, ok

    async def submit_purchase(
        self,
        session: FinanceSession,
        title: str,
        total_amount,
        installments,
        card_id: Optional[str],
        start_month: str,
        purchase_id: Optional[str] = None,
    ) -> tuple[FinanceSession, ValidationResult, bool]:
        """
        Validate the purchase form and save it.

        Returns (session, validation_result, ok). A rejected form leaves the
        session unchanged and ok=False.
        """
        result, purchase = self._purchase_validator.validate(
            title=title,
            total_amount=total_amount,
            installments=installments,
            card_id=card_id,
            start_month=start_month,
            known_card_ids=[card.id for card in session.cards],
            purchase_id=purchase_id,
        )
        if purchase is None:
            await self._audit_logger.log_purchase_rejected(
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ],
                correlation_id=create_correlation_id(),
            )
            return session, result, False

        session, ok = await self.save_purchase(session, purchase)
        return session, result, ok

    async def remove_purchase(
        self,
        session: FinanceSession,
        purchase_id: str,
    ) -> tuple[FinanceSession, bool]:
        correlation_id = create_correlation_id()
        session = remove_purchase(session, purchase_id)

        ok = await self._persist(
            "delete_purchase",
            purchase_id,
            self._storage.delete_purchase(purchase_id),
            correlation_id,
        )
        if ok:
            await self._audit_logger.log_purchase_deleted(
                purchase_id=purchase_id,
                correlation_id=correlation_id,
            )
        return session, ok

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    async def toggle_invoice(
        self,
        session: FinanceSession,
        card_id: str,
        month: str,
    ) -> tuple[FinanceSession, bool]:
        """Flip the paid flag of one card's invoice for one month."""
        correlation_id = create_correlation_id()
        session, paid = toggle_payment_status(session, card_id, month)

        ok = await self._persist(
            "set_payment_status",
            status_key(card_id, month),
            self._storage.set_payment_status(card_id, month, paid),
            correlation_id,
        )
        if ok:
            await self._audit_logger.log_payment_status(
                card_id=card_id,
                month=month,
                is_paid=paid,
                correlation_id=correlation_id,
            )
        return session, ok

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    async def export_workbook(self, session: FinanceSession) -> bytes:
        """Serialize the whole session (ignoring the card filter) to xlsx."""
        blob = self._spreadsheet.export_workbook(
            list(session.cards),
            list(session.purchases),
            session.payment_ledger,
        )
        await self._audit_logger.log_data_exported(
            cards=len(session.cards),
            purchases=len(session.purchases),
            payments=len(session.payment_ledger),
            correlation_id=create_correlation_id(),
        )
        return blob

    async def import_workbook(
        self,
        session: FinanceSession,
        blob: bytes,
    ) -> tuple[FinanceSession, bool]:
        """
        Merge a backup workbook into the session and write it to storage.

        Records are upserted by id; nothing is deleted. Returns ok=False if
        any single write failed.

        Raises:
            SpreadsheetParseError: the workbook can't be read (session untouched)
        """
        correlation_id = create_correlation_id()
        try:
            data = self._spreadsheet.import_workbook(blob)
        except SpreadsheetParseError as e:
            await self._audit_logger.log_import_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        session = merge_imported(session, data)

        failed_writes = 0
        for card in data.cards:
            if not await self._persist(
                "upsert_card", card.id, self._storage.upsert_card(card), correlation_id
            ):
                failed_writes += 1
        for purchase in data.purchases:
            if not await self._persist(
                "upsert_purchase",
                purchase.id,
                self._storage.upsert_purchase(purchase),
                correlation_id,
            ):
                failed_writes += 1
        for key, paid in data.payment_ledger.items():
            card_id, month = split_status_key(key)
            if not await self._persist(
                "set_payment_status",
                key,
                self._storage.set_payment_status(card_id, month, paid),
                correlation_id,
            ):
                failed_writes += 1

        await self._audit_logger.log_data_imported(
            cards=len(data.cards),
            purchases=len(data.purchases),
            payments=len(data.payment_ledger),
            failed_writes=failed_writes,
            correlation_id=correlation_id,
        )
        return session, failed_writes == 0

    # -------------------------------------------------------------------------
    # Advice
    # -------------------------------------------------------------------------

    async def request_advice(self, session: FinanceSession) -> Optional[FinancialAdvice]:
        """
        Ask the advisor about the projection currently on screen
        (the card filter applies).
        """
        projection = build_dashboard(session, locale=self._locale).view.projection
        advice = await self._advisor.generate_advice(projection)

        await self._audit_logger.log_advice(
            risk_level=advice.risk_level.value if advice else None,
            months_analyzed=sum(1 for entry in projection if entry.total_due > 0),
            correlation_id=create_correlation_id(),
        )
        return advice

    # -------------------------------------------------------------------------
    # Activity
    # -------------------------------------------------------------------------

    async def recent_activity(self, limit: int = 20) -> list[AuditEvent]:
        """Newest audit events, for the settings page."""
        return await self._audit_logger.recent_events(limit=limit)


def create_app_components(
    use_storage: bool = True,
) -> tuple[FinanceFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to keep everything in memory.

    Returns:
        (finance_flow, sheets_client)
    """
    sheets_client = None
    storage = None
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = None
            audit_logger = None

    flow = FinanceFlow(
        storage=storage or InMemoryFinanceStorage(),
        audit_logger=audit_logger or AuditLogger(InMemoryAuditStorage()),
    )
    return flow, sheets_client
