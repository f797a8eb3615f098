"""Daily check-in run by the reminder timers."""

import threading
from datetime import date, datetime
from typing import Optional

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.models.ledger import NotificationPriority
from finance_tracker.services.budget import BudgetAlertService
from finance_tracker.services.notifications import NotificationSink
from finance_tracker.services.storage.ledger_store import LedgerStore

REMINDER_TITLE = "Transaction Reminder"
REMINDER_BODY = "Don't forget to record your daily transactions"


def format_reminder_time(hour: int, minute: int) -> str:
    """12-hour display form, e.g. 20:00 -> "8:00 PM"."""
    suffix = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {suffix}"


class DailyReminderJob:
    """
    Nudges the user to record today's transactions and re-checks the budget.

    Runs at most once per local day, so the primary and backup timers
    firing close together deliver a single reminder.
    """

    def __init__(
        self,
        store: LedgerStore,
        sink: NotificationSink,
        budget_service: BudgetAlertService,
    ):
        self._store = store
        self._sink = sink
        self._budget = budget_service
        self._lock = threading.Lock()
        self._last_run: Optional[date] = None
        self._logger = get_logger("daily_reminder")

    @property
    def last_run(self) -> Optional[date]:
        return self._last_run

    def run(self, now: Optional[datetime] = None) -> bool:
        """
        Returns False if today's check-in already happened.

        Raises:
            StorageUnavailable, CorruptState: If the ledger cannot be read.
                The day is not marked, so a later firing retries.
        """
        now = now or datetime.now()
        today = now.date()

        with self._lock:
            if self._last_run == today:
                self._logger.info(
                    LogEvent.REMINDER_SKIPPED.value,
                    reason="already_delivered",
                    day=today.isoformat(),
                )
                return False

            recorded_today = any(
                tx.occurred_at.date() == today for tx in self._store.load_transactions()
            )
            if recorded_today:
                self._logger.info(
                    LogEvent.REMINDER_SKIPPED.value,
                    reason="recorded_today",
                    day=today.isoformat(),
                )
            else:
                self._sink.send(REMINDER_TITLE, REMINDER_BODY, NotificationPriority.HIGH)

            self._budget.check(now)
            self._last_run = today
            return True
