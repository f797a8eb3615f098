"""
Structured Logger

DESIGN DECISION: Every component logs through structlog with a bound
``component`` field, so one log stream can be filtered per subsystem.

Logging is a side channel. Components that fail still raise; the log
line only records that it happened. The one exception is the reminder
scheduler, which degrades to "no reminder" and logs instead of raising.
"""

import logging
import sys
from enum import Enum

import structlog


class LogEvent(str, Enum):
    """Event names used across the ledger."""
    # Store
    STORE_LOADED = "store_loaded"
    STORE_WRITE = "store_write"
    STORE_WRITE_FAILED = "store_write_failed"
    STORE_READ_FAILED = "store_read_failed"
    SENTINEL_PURGED = "sentinel_transactions_purged"
    CURRENCY_CHANGED = "currency_changed"

    # Budget
    BUDGET_EVALUATED = "budget_evaluated"
    BUDGET_EXCEEDED = "budget_exceeded"
    BUDGET_ALERT_SUPPRESSED = "budget_alert_suppressed"

    # Reminders
    REMINDER_ARMED = "reminder_armed"
    REMINDER_FALLBACK = "reminder_fallback"
    REMINDER_UNAVAILABLE = "reminder_unavailable"
    REMINDER_FIRED = "reminder_fired"
    REMINDER_FAILED = "reminder_failed"
    REMINDER_CANCELLED = "reminder_cancelled"
    REMINDER_SKIPPED = "reminder_skipped"

    # Backup
    BACKUP_CREATED = "backup_created"
    BACKUP_FAILED = "backup_failed"
    RESTORE_APPLIED = "restore_applied"
    RESTORE_REJECTED = "restore_rejected"

    # Notifications
    NOTIFICATION_SENT = "notification_sent"

    # Security
    PASSCODE_CHANGED = "passcode_changed"


def _shared_processors() -> list:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _configure_structlog(json_logs: bool) -> None:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=_shared_processors() + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to a component name (e.g. "ledger_store")."""
    return structlog.get_logger(f"finance_tracker.{component}").bind(
        component=component
    )


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure stdlib logging and structlog for the application.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )
    _configure_structlog(json_logs)


# Library default: JSON rendering through whatever stdlib handlers the
# host has installed. The application handle calls configure_logging().
_configure_structlog(json_logs=True)
