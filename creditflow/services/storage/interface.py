"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and for running unconfigured
3. Keep the session logic decoupled from storage implementation

The interface is intentionally simple - plain CRUD on cards, purchases
and invoice payment status. Every operation may fail with StorageError;
callers treat that as "report and let the user retry", never as fatal.
"""

from abc import ABC, abstractmethod

from creditflow.models.audit import AuditEvent
from creditflow.models.finance import Card, Purchase


class FinanceStorageInterface(ABC):
    """
    Abstract interface for card, purchase and payment storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_cards(self) -> list[Card]:
        """
        List all cards in creation order.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def list_purchases(self) -> list[Purchase]:
        """
        List all purchases in creation order.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def list_payment_status(self) -> dict[str, bool]:
        """
        Get the payment ledger.

        Returns:
            Mapping of "<card_id>-<YYYY-MM>" to paid flag
        """
        pass

    @abstractmethod
    async def upsert_card(self, card: Card) -> bool:
        """
        Insert a card, or replace the stored card with the same id.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> bool:
        """
        Delete a card by id. Purchases referencing it are left alone.

        Returns:
            True if a card was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def upsert_purchase(self, purchase: Purchase) -> bool:
        """Insert a purchase, or replace the stored purchase with the same id."""
        pass

    @abstractmethod
    async def delete_purchase(self, purchase_id: str) -> bool:
        """Delete a purchase by id."""
        pass

    @abstractmethod
    async def set_payment_status(self, card_id: str, month: str, paid: bool) -> bool:
        """
        Record whether one card's invoice for one month is paid.

        Upserts on (card_id, month).
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
