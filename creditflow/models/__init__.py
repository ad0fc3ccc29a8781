"""
Data Models Package

This package contains all Pydantic models used in CreditFlow.
All data flowing through the system must conform to these schemas.
"""

from creditflow.models.finance import (
    MONTH_TOKEN_PATTERN,
    Card,
    DashboardMetrics,
    FinancialAdvice,
    ImportedData,
    InstallmentItem,
    InvoiceRow,
    InvoiceStatus,
    MonthlyProjection,
    Purchase,
    RiskLevel,
    ScheduledInstallment,
    ValidationIssue,
    ValidationResult,
    find_card,
    resolve_card,
)
from creditflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "MONTH_TOKEN_PATTERN",
    "Card",
    "DashboardMetrics",
    "FinancialAdvice",
    "ImportedData",
    "InstallmentItem",
    "InvoiceRow",
    "InvoiceStatus",
    "MonthlyProjection",
    "Purchase",
    "RiskLevel",
    "ScheduledInstallment",
    "ValidationIssue",
    "ValidationResult",
    "find_card",
    "resolve_card",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
