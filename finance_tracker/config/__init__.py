"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    BackupSettings,
    BudgetSettings,
    LedgerSettings,
    ReminderSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "BudgetSettings",
    "LedgerSettings",
    "ReminderSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
