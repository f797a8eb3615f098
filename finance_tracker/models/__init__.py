"""
Data Models Package

This package contains all Pydantic models used by the finance tracker.
All data flowing between the store, the services and backups conforms
to these schemas.
"""

from finance_tracker.models.ledger import (
    DEFAULT_CATEGORIES,
    BackupSnapshot,
    BudgetState,
    BudgetStatus,
    Category,
    CategoryTotal,
    MonthlySummary,
    NotificationPriority,
    Transaction,
    TxType,
    ValidationIssue,
    epoch_ms,
    from_epoch_ms,
    now_ms,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "BackupSnapshot",
    "BudgetState",
    "BudgetStatus",
    "Category",
    "CategoryTotal",
    "MonthlySummary",
    "NotificationPriority",
    "Transaction",
    "TxType",
    "ValidationIssue",
    "epoch_ms",
    "from_epoch_ms",
    "now_ms",
]
