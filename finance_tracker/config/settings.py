"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable of the ledger (where it persists, how long I/O may take,
when the daily reminder fires, where backups land) is visible in one
place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key/value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".finance_tracker",
        description="Directory holding the persisted ledger state"
    )
    state_file_name: str = Field(
        default="finance_tracker_prefs.json",
        min_length=1,
        description="File name of the persisted key/value document"
    )
    io_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Upper bound for a single storage operation, retries included"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made for a transient I/O failure"
    )

    @property
    def state_path(self) -> Path:
        return self.data_dir / self.state_file_name


class LedgerSettings(BaseSettings):
    """Ledger-wide defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        min_length=1,
        description="Currency code reported when none has been stored"
    )
    sentinel_title: str = Field(
        default="Test Expense",
        description="Transactions with exactly this title are purged on first load"
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()


class ReminderSettings(BaseSettings):
    """Daily reminder configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REMINDER_",
        extra="ignore"
    )

    default_hour: int = Field(
        default=20,
        ge=0,
        le=23,
        description="Reminder hour (24-hour clock) used until the user picks one"
    )
    default_minute: int = Field(
        default=0,
        ge=0,
        le=59,
        description="Reminder minute used until the user picks one"
    )
    period_hours: int = Field(
        default=24,
        ge=1,
        description="Period of the approximate repeating timers"
    )
    allow_exact_timers: bool = Field(
        default=True,
        description="Whether the host grants precise one-shot timers"
    )


class BudgetSettings(BaseSettings):
    """Budget alert configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_",
        extra="ignore"
    )

    approaching_alert_enabled: bool = Field(
        default=False,
        description="Send a soft warning before the budget is exceeded"
    )
    approaching_threshold_percent: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Percentage of budget that triggers the soft warning"
    )
    alert_cooldown_minutes: int = Field(
        default=0,
        ge=0,
        description="Minimum minutes between two exceeded alerts (0 = every check)"
    )


class BackupSettings(BaseSettings):
    """Backup file locations."""

    model_config = SettingsConfigDict(
        env_prefix="BACKUP_",
        extra="ignore"
    )

    internal_dir: Path = Field(
        default=Path.home() / ".finance_tracker" / "backups",
        description="App-private backup directory"
    )
    external_dir: Path = Field(
        default=Path.home() / "Downloads",
        description="User-visible backup directory"
    )
    file_prefix: str = Field(
        default="FinanceTracker_backup_",
        min_length=1,
        description="Prefix of backup file names"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level written to the log"
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON lines (console rendering otherwise)"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def upper_level(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if isinstance(v, str) else v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def reminder(self) -> ReminderSettings:
        return ReminderSettings()

    @property
    def budget(self) -> BudgetSettings:
        return BudgetSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings groups.

    Returns a dict of {group_name: is_valid}, plus "<group>_error"
    entries carrying the message of any group that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "ledger", "reminder", "budget", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
