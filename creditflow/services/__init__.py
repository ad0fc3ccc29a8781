"""Services package."""

from creditflow.services.spreadsheet import (
    SpreadsheetError,
    SpreadsheetParseError,
    SpreadsheetService,
    backup_filename,
)
from creditflow.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    StorageError,
)

__all__ = [
    # Spreadsheet backup
    "SpreadsheetError",
    "SpreadsheetParseError",
    "SpreadsheetService",
    "backup_filename",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "FinanceStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    "StorageError",
]
