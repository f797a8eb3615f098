"""
Application Handle for Finance Tracker

FinanceTracker is constructed once at process start and passed to
whatever needs it. It owns the wiring:

    backend -> LedgerStore -> BudgetAlertService -> NotificationSink
                    |                  ^
                    |                  |
                    +-> DailyReminderJob <- ReminderScheduler <- TimerHost
                    |
                    +-> BackupManager (BackupCodec)

DESIGN DECISION: There is no module-level "init" step. Building the
handle opens the store (which runs the sentinel purge) and nothing is
usable before that, so no component ever checks "am I initialized?".

The facade methods are what a UI collaborator calls. They validate,
write through the store, and re-check the budget where the original
action could have changed spend.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from finance_tracker.config import Settings, get_settings
from finance_tracker.logs import LogEvent, configure_logging, get_logger
from finance_tracker.models.ledger import BudgetStatus, Transaction, TxType
from finance_tracker.services.backup import (
    BackupCodec,
    BackupLocation,
    BackupManager,
    RestoredLedger,
)
from finance_tracker.services.budget import BudgetAlertService
from finance_tracker.services.currency import CurrencyConverter
from finance_tracker.services.notifications import LoggingNotificationSink, NotificationSink
from finance_tracker.services.reminders import (
    DailyReminderJob,
    ReminderScheduler,
    ThreadingTimerHost,
    TimerHost,
)
from finance_tracker.services.security import PasscodeVault
from finance_tracker.services.storage import JsonFileBackend, KeyValueBackend, LedgerStore
from finance_tracker.validation import LedgerValidator, raise_if_errors


class FinanceTracker:
    """Explicit handle over every ledger component."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[KeyValueBackend] = None,
        timer_host: Optional[TimerHost] = None,
        sink: Optional[NotificationSink] = None,
        converter: Optional[CurrencyConverter] = None,
        clock: Callable[[], datetime] = datetime.now,
        configure_logs: bool = True,
    ):
        settings = settings or get_settings()
        app = settings.app
        if configure_logs:
            configure_logging(
                level="DEBUG" if app.debug_mode else app.log_level,
                json_logs=app.json_logs,
            )
        self._logger = get_logger("app")
        self._clock = clock

        storage = settings.storage
        reminder = settings.reminder
        self.backend = backend or JsonFileBackend(
            storage.state_path,
            timeout_seconds=storage.io_timeout_seconds,
            retry_attempts=storage.retry_attempts,
        )
        self.store = LedgerStore.open(
            self.backend,
            settings=settings.ledger,
            reminder_settings=reminder,
            lock_timeout=storage.io_timeout_seconds,
        )
        self.validator = LedgerValidator()
        self.converter = converter or CurrencyConverter()
        self.sink = sink or LoggingNotificationSink()
        self.budget = BudgetAlertService(
            self.store,
            self.sink,
            settings=settings.budget,
            converter=self.converter,
        )
        self.reminder_job = DailyReminderJob(self.store, self.sink, self.budget)
        self.timer_host = timer_host or ThreadingTimerHost(
            allow_exact=reminder.allow_exact_timers,
            clock=clock,
        )
        self.scheduler = ReminderScheduler(
            self.timer_host,
            self.reminder_job.run,
            period=timedelta(hours=reminder.period_hours),
            clock=clock,
        )
        self.backups = BackupManager(
            self.store,
            settings=settings.backup,
            codec=BackupCodec(self.converter),
        )
        self.passcode = PasscodeVault(self.store)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def startup(self, now: Optional[datetime] = None) -> BudgetStatus:
        """
        Re-arm the daily reminder from the persisted time and check the budget.

        A reminder that cannot be armed is logged and skipped; startup
        continues.

        Raises:
            StorageUnavailable, CorruptState: If the ledger cannot be read
        """
        now = now or self._clock()
        self.arm_reminder(now)
        return self.budget.check(now)

    def arm_reminder(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Schedule the reminder at the stored time. Returns None if that failed."""
        try:
            hour, minute = self.store.get_reminder_time()
            return self.scheduler.schedule(hour, minute, now=now)
        except Exception as e:
            self._logger.error(
                LogEvent.REMINDER_UNAVAILABLE.value,
                error=str(e),
                exc_info=True,
            )
            return None

    def shutdown(self) -> None:
        self.scheduler.cancel()
        if isinstance(self.timer_host, ThreadingTimerHost):
            self.timer_host.shutdown()

    # =========================================================================
    # FACADE
    # =========================================================================

    def record_transaction(
        self,
        *,
        title: Optional[str],
        amount: Any,
        category: str,
        type: TxType,
        date: Optional[int] = None,
        note: Optional[str] = "",
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Validate and store a new transaction, then re-check the budget.

        Raises:
            ValidationError: If the input is rejected
        """
        transaction = self.validator.build_transaction(
            title=title,
            amount=amount,
            category=category,
            type=type,
            date=date,
            note=note,
        )
        self.store.add_transaction(transaction)
        self.budget.check(now or self._clock())
        return transaction

    def change_currency(self, new_code: str) -> float:
        """Switch currency and rebase all amounts. Returns the factor applied."""
        return self.store.change_currency(new_code, self.converter)

    def set_budget(self, amount: Any, currency: Optional[str] = None) -> float:
        """
        Set the monthly budget, optionally entered in another currency.

        An amount in another currency is converted into the ledger
        currency before it is stored.

        Returns:
            The stored budget, in the ledger currency

        Raises:
            ValidationError: If the amount or currency is rejected
        """
        raise_if_errors(self.validator.budget_issues(amount))
        value = float(amount)
        ledger_currency = self.store.get_currency()
        if currency and currency != ledger_currency:
            value = self.converter.convert_amount(value, currency, ledger_currency)
        return self.store.set_budget(value)

    def set_reminder_time(
        self,
        hour: int,
        minute: int,
        now: Optional[datetime] = None,
    ) -> Optional[datetime]:
        """Persist the reminder time and re-arm. Returns the next trigger, if armed."""
        self.store.set_reminder_time(hour, minute)
        return self.arm_reminder(now)

    def backup(self, location: Optional[BackupLocation] = None) -> Path:
        return self.backups.create_backup(location, now=self._clock())

    def restore(self, path: Path) -> RestoredLedger:
        """
        Replace the ledger from a backup file.

        Raises:
            RestoreRejected: If the file is not a usable backup
        """
        return self.backups.restore_from_file(path)
