"""Services package."""

from finance_tracker.services.backup import (
    BackupCodec,
    BackupError,
    BackupLocation,
    BackupManager,
    RestoreRejected,
)
from finance_tracker.services.budget import (
    AlertPolicy,
    AlwaysAlert,
    BudgetAlertService,
    BudgetMonitor,
    CooldownAlert,
)
from finance_tracker.services.currency import CurrencyConverter
from finance_tracker.services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
)
from finance_tracker.services.security import PasscodeVault
from finance_tracker.services.storage import (
    CorruptState,
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    LedgerStore,
    StorageError,
    StorageUnavailable,
)

__all__ = [
    # Backup
    "BackupCodec",
    "BackupError",
    "BackupLocation",
    "BackupManager",
    "RestoreRejected",
    # Budget
    "AlertPolicy",
    "AlwaysAlert",
    "BudgetAlertService",
    "BudgetMonitor",
    "CooldownAlert",
    # Currency
    "CurrencyConverter",
    # Notifications
    "LoggingNotificationSink",
    "NotificationSink",
    # Security
    "PasscodeVault",
    # Storage
    "CorruptState",
    "InMemoryBackend",
    "JsonFileBackend",
    "KeyValueBackend",
    "LedgerStore",
    "StorageError",
    "StorageUnavailable",
]
