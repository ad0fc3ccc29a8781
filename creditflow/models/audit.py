"""
Audit Models for CreditFlow

Every user action that changes data, and every external call, is logged.
This provides:
1. Traceability of edits to cards, purchases and invoice status
2. Debugging information when persistence or the advisor fails
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Cards
    CARD_SAVED = "card_saved"
    CARD_DELETED = "card_deleted"

    # Purchases
    PURCHASE_SAVED = "purchase_saved"
    PURCHASE_DELETED = "purchase_deleted"
    PURCHASE_REJECTED = "purchase_rejected"

    # Payment status
    PAYMENT_STATUS_UPDATED = "payment_status_updated"

    # Spreadsheet backup
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    IMPORT_FAILED = "import_failed"

    # Advisor
    ADVICE_GENERATED = "advice_generated"
    ADVICE_UNAVAILABLE = "advice_unavailable"

    # System events
    STORAGE_FAILED = "storage_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'card', 'purchase', 'invoice')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all writes of one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.card_saved(card_id, name)
        event = AuditEventBuilder.payment_status_updated(card_id, month, True)
    """

    @staticmethod
    def card_saved(
        card_id: str,
        name: str,
        due_day: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CARD_SAVED,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Card saved: {name}",
            details={
                "name": name,
                "due_day": due_day,
            },
            is_user_action=True,
        )

    @staticmethod
    def card_deleted(
        card_id: str,
        orphaned_purchases: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CARD_DELETED,
            severity=AuditSeverity.WARNING if orphaned_purchases else AuditSeverity.INFO,
            entity_type="card",
            entity_id=card_id,
            correlation_id=correlation_id,
            description=f"Card deleted ({orphaned_purchases} purchases still reference it)",
            details={
                "orphaned_purchases": orphaned_purchases,
            },
            is_user_action=True,
        )

    @staticmethod
    def purchase_saved(
        purchase_id: str,
        title: str,
        amount: str,
        installments: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_SAVED,
            entity_type="purchase",
            entity_id=purchase_id,
            correlation_id=correlation_id,
            description=f"Purchase saved: {title} - {amount} in {installments}x",
            details={
                "title": title,
                "amount": amount,
                "installments": installments,
            },
            is_user_action=True,
        )

    @staticmethod
    def purchase_deleted(
        purchase_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_DELETED,
            entity_type="purchase",
            entity_id=purchase_id,
            correlation_id=correlation_id,
            description="Purchase deleted",
            is_user_action=True,
        )

    @staticmethod
    def purchase_rejected(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="purchase",
            correlation_id=correlation_id,
            description=f"Purchase form rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(
        card_id: str,
        month: str,
        is_paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type="invoice",
            entity_id=f"{card_id}-{month}",
            correlation_id=correlation_id,
            description=f"Invoice {month} marked as {'paid' if is_paid else 'pending'}",
            details={
                "card_id": card_id,
                "month": month,
                "is_paid": is_paid,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_exported(
        cards: int,
        purchases: int,
        payments: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="workbook",
            correlation_id=correlation_id,
            description=f"Exported {cards} cards and {purchases} purchases",
            details={
                "cards": cards,
                "purchases": purchases,
                "payments": payments,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_imported(
        cards: int,
        purchases: int,
        payments: int,
        failed_writes: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING if failed_writes else AuditSeverity.INFO,
            entity_type="workbook",
            correlation_id=correlation_id,
            description=f"Imported {cards} cards and {purchases} purchases",
            details={
                "cards": cards,
                "purchases": purchases,
                "payments": payments,
                "failed_writes": failed_writes,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="workbook",
            correlation_id=correlation_id,
            description="Workbook could not be imported",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(
        risk_level: str,
        months_analyzed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            entity_type="advice",
            correlation_id=correlation_id,
            description=f"Advice generated with risk level {risk_level}",
            details={
                "risk_level": risk_level,
                "months_analyzed": months_analyzed,
            },
        )

    @staticmethod
    def advice_unavailable(
        months_analyzed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_UNAVAILABLE,
            severity=AuditSeverity.WARNING,
            entity_type="advice",
            correlation_id=correlation_id,
            description="Advice unavailable",
            details={
                "months_analyzed": months_analyzed,
            },
        )

    @staticmethod
    def storage_failed(
        operation: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
