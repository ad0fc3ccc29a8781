"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (each write is one row operation)
- No query capabilities (we read whole sheets and filter in Python)

Each entity type gets its own worksheet, one row per entity:
- Cards:           id, name, color, due_day
- Purchases:       id, card_id, title, total_amount, installments, start_month
- InvoicePayments: card_id, month, is_paid
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from creditflow.config import get_settings
from creditflow.models.audit import AuditEvent, AuditEventType, AuditSeverity
from creditflow.models.finance import DEFAULT_DUE_DAY, PLACEHOLDER_CARD_COLOR, Card, Purchase
from creditflow.projection.ledger import status_key
from creditflow.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    StorageError,
)
from creditflow.validation.validator import clamp_due_day


logger = structlog.get_logger(__name__)


CARD_COLUMNS = ["id", "name", "color", "due_day"]

PURCHASE_COLUMNS = [
    "id",
    "card_id",
    "title",
    "total_amount",
    "installments",
    "start_month",
]

PAYMENT_COLUMNS = ["card_id", "month", "is_paid"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_cards_sheet(self) -> gspread.Worksheet:
        """Get or create the Cards worksheet."""
        return self._get_or_create_sheet(self._settings.cards_sheet_name, CARD_COLUMNS, 100)

    def get_purchases_sheet(self) -> gspread.Worksheet:
        """Get or create the Purchases worksheet."""
        return self._get_or_create_sheet(
            self._settings.purchases_sheet_name, PURCHASE_COLUMNS, 1000
        )

    def get_payments_sheet(self) -> gspread.Worksheet:
        """Get or create the InvoicePayments worksheet."""
        return self._get_or_create_sheet(
            self._settings.payments_sheet_name, PAYMENT_COLUMNS, 1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000
        )


def _find_row(all_rows: list[list], match: Callable[[list], bool]) -> Optional[int]:
    """1-based sheet row index of the first data row matching, or None."""
    for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is header
        if row and match(row):
            return idx
    return None


def _write_row(sheet: gspread.Worksheet, idx: int, values: list) -> None:
    for col_idx, value in enumerate(values, start=1):
        sheet.update_cell(idx, col_idx, value)


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of card, purchase and payment storage.

    Rows that can't be parsed are skipped with a warning, so one hand-edited
    cell doesn't take the whole dashboard down.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _card_to_row(card: Card) -> list:
        return [card.id, card.name, card.color, card.due_day]

    @staticmethod
    def _row_to_card(row: list) -> Card:
        return Card(
            id=row[0],
            name=row[1],
            color=row[2] or PLACEHOLDER_CARD_COLOR,
            due_day=clamp_due_day(row[3], default=DEFAULT_DUE_DAY),
        )

    @staticmethod
    def _purchase_to_row(purchase: Purchase) -> list:
        return [
            purchase.id,
            purchase.card_id,
            purchase.title,
            str(purchase.total_amount),
            purchase.installments,
            purchase.start_month,
        ]

    @staticmethod
    def _row_to_purchase(row: list) -> Purchase:
        return Purchase(
            id=row[0],
            card_id=row[1],
            title=row[2],
            total_amount=Decimal(row[3]),
            installments=int(row[4]),
            start_month=row[5],
        )

    def _read_rows(self, sheet: gspread.Worksheet, parse: Callable, entity: str) -> list:
        items = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                items.append(parse(row))
            except Exception as e:
                logger.warning("malformed_row_skipped", entity=entity, row=row, error=str(e))
        return items

    async def list_cards(self) -> list[Card]:
        try:
            sheet = self._client.get_cards_sheet()
            return self._read_rows(sheet, self._row_to_card, "card")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list cards: {e}")

    async def list_purchases(self) -> list[Purchase]:
        try:
            sheet = self._client.get_purchases_sheet()
            return self._read_rows(sheet, self._row_to_purchase, "purchase")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list purchases: {e}")

    async def list_payment_status(self) -> dict[str, bool]:
        try:
            sheet = self._client.get_payments_sheet()
            ledger = {}
            for row in sheet.get_all_values()[1:]:
                if len(row) < 3 or not row[0] or not row[1]:
                    continue
                ledger[status_key(row[0], row[1])] = row[2].strip().upper() == "TRUE"
            return ledger
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list payment status: {e}")

    async def _upsert(self, sheet: gspread.Worksheet, key: str, values: list) -> bool:
        all_rows = sheet.get_all_values()
        idx = _find_row(all_rows, lambda row: row[0] == key)
        if idx is None:
            sheet.append_row(values, value_input_option="RAW")
        else:
            _write_row(sheet, idx, values)
        return True

    async def _delete(self, sheet: gspread.Worksheet, key: str) -> bool:
        idx = _find_row(sheet.get_all_values(), lambda row: row[0] == key)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_card(self, card: Card) -> bool:
        try:
            sheet = self._client.get_cards_sheet()
            return await self._upsert(sheet, card.id, self._card_to_row(card))
        except Exception as e:
            raise StorageError(f"Failed to save card: {e}")

    async def delete_card(self, card_id: str) -> bool:
        try:
            return await self._delete(self._client.get_cards_sheet(), card_id)
        except Exception as e:
            raise StorageError(f"Failed to delete card: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_purchase(self, purchase: Purchase) -> bool:
        try:
            sheet = self._client.get_purchases_sheet()
            return await self._upsert(sheet, purchase.id, self._purchase_to_row(purchase))
        except Exception as e:
            raise StorageError(f"Failed to save purchase: {e}")

    async def delete_purchase(self, purchase_id: str) -> bool:
        try:
            return await self._delete(self._client.get_purchases_sheet(), purchase_id)
        except Exception as e:
            raise StorageError(f"Failed to delete purchase: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def set_payment_status(self, card_id: str, month: str, paid: bool) -> bool:
        try:
            sheet = self._client.get_payments_sheet()
            values = [card_id, month, "TRUE" if paid else "FALSE"]
            idx = _find_row(
                sheet.get_all_values(),
                lambda row: len(row) >= 2 and row[0] == card_id and row[1] == month,
            )
            if idx is None:
                sheet.append_row(values, value_input_option="RAW")
            else:
                _write_row(sheet, idx, values)
            return True
        except Exception as e:
            raise StorageError(f"Failed to update payment status: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("malformed_row_skipped", entity="audit_event", error=str(e))
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
