"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory backend is used
when Sheets is not configured and in tests.
"""

from creditflow.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStorageInterface,
    StorageError,
)
from creditflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
)
from creditflow.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinanceStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryFinanceStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
]
