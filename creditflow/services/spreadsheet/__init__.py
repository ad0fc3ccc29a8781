"""Spreadsheet backup package."""

from creditflow.services.spreadsheet.excel_service import (
    SpreadsheetError,
    SpreadsheetParseError,
    SpreadsheetService,
    backup_filename,
)

__all__ = [
    "SpreadsheetError",
    "SpreadsheetParseError",
    "SpreadsheetService",
    "backup_filename",
]
