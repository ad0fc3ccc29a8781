"""
Audit Logger

DESIGN DECISION: Every change the user makes to cards, purchases and
invoice flags is logged, together with imports, exports and advice requests.
This gives:
1. A history the user can open in the audit sheet
2. Something to go on when a sheet write fails

The audit logger:
- Is async, like the storage it writes to
- Never raises (a failed audit write doesn't undo the user's change)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from creditflow.config import get_settings
from creditflow.models.audit import AuditEvent, AuditEventBuilder
from creditflow.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """Set up stdlib logging and structlog with JSON output."""
    level = (level or get_settings().app.log_level).upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (Google Sheets when configured)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("creditflow.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(self, limit: int = 20) -> list[AuditEvent]:
        """Newest events from the audit store; empty when there is none or it can't be read."""
        if not self._storage:
            return []
        try:
            return await self._storage.get_recent_events(limit=limit)
        except Exception as e:
            self._logger.error("audit_read_failed", error=str(e))
            return []

    async def log_card_saved(
        self,
        card_id: str,
        name: str,
        due_day: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.card_saved(
            card_id=card_id,
            name=name,
            due_day=due_day,
            correlation_id=correlation_id,
        ))

    async def log_card_deleted(
        self,
        card_id: str,
        orphaned_purchases: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.card_deleted(
            card_id=card_id,
            orphaned_purchases=orphaned_purchases,
            correlation_id=correlation_id,
        ))

    async def log_purchase_saved(
        self,
        purchase_id: str,
        title: str,
        amount: str,
        installments: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.purchase_saved(
            purchase_id=purchase_id,
            title=title,
            amount=amount,
            installments=installments,
            correlation_id=correlation_id,
        ))

    async def log_purchase_deleted(
        self,
        purchase_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.purchase_deleted(
            purchase_id=purchase_id,
            correlation_id=correlation_id,
        ))

    async def log_purchase_rejected(
        self,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a purchase form that failed validation."""
        await self.log(AuditEventBuilder.purchase_rejected(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_payment_status(
        self,
        card_id: str,
        month: str,
        is_paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payment_status_updated(
            card_id=card_id,
            month=month,
            is_paid=is_paid,
            correlation_id=correlation_id,
        ))

    async def log_data_exported(
        self,
        cards: int,
        purchases: int,
        payments: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.data_exported(
            cards=cards,
            purchases=purchases,
            payments=payments,
            correlation_id=correlation_id,
        ))

    async def log_data_imported(
        self,
        cards: int,
        purchases: int,
        payments: int,
        failed_writes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.data_imported(
            cards=cards,
            purchases=purchases,
            payments=payments,
            failed_writes=failed_writes,
            correlation_id=correlation_id,
        ))

    async def log_import_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.import_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_advice(
        self,
        risk_level: Optional[str],
        months_analyzed: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an advice request; risk_level None means no advice came back."""
        if risk_level is None:
            event = AuditEventBuilder.advice_unavailable(
                months_analyzed=months_analyzed,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.advice_generated(
                risk_level=risk_level,
                months_analyzed=months_analyzed,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_storage_failed(
        self,
        operation: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_failed(
            operation=operation,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. an import) and pass it
    through every event that action produces.
    """
    return uuid4()
