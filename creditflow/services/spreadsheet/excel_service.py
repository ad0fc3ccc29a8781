"""
Spreadsheet backup (xlsx export / import).

The workbook layout is fixed so that backups made by earlier versions
import cleanly:

    Cartões      ID, Nome, Cor, DiaVencimento
    Transações   ID, CardID, Descrição, ValorTotal, Parcelas, Inicio
    Pagamentos   CardID, Mês, Pago ("SIM" / "NÃO")

Import is lenient where the old exporter was (missing ids get a new one,
an unreadable due day becomes 10, the payments sheet is optional) and
strict where bad data would reach the projection engine (purchase rows
must have a positive amount and installment count).
"""

from datetime import date, datetime
from io import BytesIO
from typing import Any, Optional
from uuid import uuid4
from zipfile import BadZipFile

import structlog
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from creditflow.models.finance import PLACEHOLDER_CARD_COLOR, Card, ImportedData, Purchase
from creditflow.projection.ledger import split_status_key, status_key
from creditflow.projection.months import is_month_token, month_of
from creditflow.validation.validator import CardValidator, PurchaseValidator


logger = structlog.get_logger(__name__)


CARDS_SHEET = "Cartões"
PURCHASES_SHEET = "Transações"
PAYMENTS_SHEET = "Pagamentos"

CARD_HEADERS = ["ID", "Nome", "Cor", "DiaVencimento"]
PURCHASE_HEADERS = ["ID", "CardID", "Descrição", "ValorTotal", "Parcelas", "Inicio"]
PAYMENT_HEADERS = ["CardID", "Mês", "Pago"]

PAID_LABEL = "SIM"
UNPAID_LABEL = "NÃO"


class SpreadsheetError(Exception):
    """Base exception for spreadsheet operations."""
    pass


class SpreadsheetParseError(SpreadsheetError):
    """Workbook could not be read as a CreditFlow backup."""
    pass


def backup_filename(today: Optional[date] = None) -> str:
    """Download name for an export, e.g. CreditFlow_Backup_2024-05-01.xlsx."""
    return f"CreditFlow_Backup_{(today or date.today()).isoformat()}.xlsx"


class SpreadsheetService:
    """Converts between the user's data and an xlsx workbook."""

    def __init__(self, default_due_day: int = 10):
        self._card_validator = CardValidator(default_due_day=default_due_day)
        self._purchase_validator = PurchaseValidator()

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_workbook(
        self,
        cards: list[Card],
        purchases: list[Purchase],
        payment_ledger: dict[str, bool],
    ) -> bytes:
        """Serialize everything into one workbook and return its bytes."""
        wb = Workbook()
        bold = Font(bold=True)

        ws_cards = wb.active
        ws_cards.title = CARDS_SHEET
        ws_cards.append(CARD_HEADERS)
        for card in cards:
            ws_cards.append([card.id, card.name, card.color, card.due_day])

        ws_purchases = wb.create_sheet(PURCHASES_SHEET)
        ws_purchases.append(PURCHASE_HEADERS)
        for purchase in purchases:
            ws_purchases.append([
                purchase.id,
                purchase.card_id,
                purchase.title,
                float(purchase.total_amount),
                purchase.installments,
                purchase.start_month,
            ])

        ws_payments = wb.create_sheet(PAYMENTS_SHEET)
        ws_payments.append(PAYMENT_HEADERS)
        for key, paid in payment_ledger.items():
            try:
                card_id, month = split_status_key(key)
            except ValueError:
                logger.warning("ledger_key_skipped", key=key)
                continue
            ws_payments.append([card_id, month, PAID_LABEL if paid else UNPAID_LABEL])

        for ws in (ws_cards, ws_purchases, ws_payments):
            for cell in ws[1]:
                cell.font = bold

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def import_workbook(self, blob: bytes) -> ImportedData:
        """
        Read a backup workbook.

        Raises:
            SpreadsheetParseError: unreadable file, missing sheets,
                or rows that can't become valid cards/purchases
        """
        try:
            wb = load_workbook(BytesIO(blob), read_only=True, data_only=True)
        except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as e:
            raise SpreadsheetParseError(f"Not a readable xlsx workbook: {e}")

        try:
            for required in (CARDS_SHEET, PURCHASES_SHEET):
                if required not in wb.sheetnames:
                    raise SpreadsheetParseError(f"Missing sheet: {required}")

            cards = [
                self._parse_card(row, line)
                for line, row in self._read_records(wb[CARDS_SHEET])
            ]
            purchases = [
                self._parse_purchase(row, line)
                for line, row in self._read_records(wb[PURCHASES_SHEET])
            ]
            ledger = {}
            if PAYMENTS_SHEET in wb.sheetnames:
                for line, row in self._read_records(wb[PAYMENTS_SHEET]):
                    card_id, month, paid = self._parse_payment(row, line)
                    ledger[status_key(card_id, month)] = paid
        finally:
            wb.close()

        return ImportedData(cards=cards, purchases=purchases, payment_ledger=ledger)

    @staticmethod
    def _read_records(ws) -> list[tuple[int, dict[str, Any]]]:
        """Rows as header->value dicts, with their 1-based sheet line; blank rows dropped."""
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        names = [str(h).strip() if h is not None else "" for h in header]

        records = []
        for line, values in enumerate(rows, start=2):
            if values is None or all(v is None or str(v).strip() == "" for v in values):
                continue
            records.append((line, dict(zip(names, values))))
        return records

    @staticmethod
    def _text(value: Any) -> str:
        return "" if value is None else str(value).strip()

    @staticmethod
    def _month_text(value: Any) -> str:
        # Excel turns a typed "2024-01" into a date
        if isinstance(value, (datetime, date)):
            return month_of(value)
        return SpreadsheetService._text(value)

    def _parse_card(self, row: dict, line: int) -> Card:
        result, card = self._card_validator.validate(
            name=self._text(row.get("Nome")),
            color=self._text(row.get("Cor")) or PLACEHOLDER_CARD_COLOR,
            due_day=row.get("DiaVencimento"),
            card_id=self._text(row.get("ID")) or None,
        )
        if card is None:
            problems = "; ".join(issue.message for issue in result.issues if issue.severity == "error")
            raise SpreadsheetParseError(f"{CARDS_SHEET} line {line}: {problems}")
        return card

    def _parse_purchase(self, row: dict, line: int) -> Purchase:
        result, purchase = self._purchase_validator.validate(
            title=self._text(row.get("Descrição")),
            total_amount=row.get("ValorTotal"),
            installments=row.get("Parcelas"),
            card_id=self._text(row.get("CardID")),
            start_month=self._month_text(row.get("Inicio")),
            purchase_id=self._text(row.get("ID")) or None,
        )
        if purchase is None:
            problems = "; ".join(issue.message for issue in result.issues if issue.severity == "error")
            raise SpreadsheetParseError(f"{PURCHASES_SHEET} line {line}: {problems}")
        return purchase

    def _parse_payment(self, row: dict, line: int) -> tuple[str, str, bool]:
        card_id = self._text(row.get("CardID"))
        month = self._month_text(row.get("Mês"))
        if not card_id or not month:
            raise SpreadsheetParseError(f"{PAYMENTS_SHEET} line {line}: card or month missing")
        if not is_month_token(month):
            raise SpreadsheetParseError(f"{PAYMENTS_SHEET} line {line}: invalid month {month!r}")
        return card_id, month, self._text(row.get("Pago")).upper() == PAID_LABEL
