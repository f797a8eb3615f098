"""
Budget Monitoring

BudgetMonitor is pure: given transactions, a budget and "now", it
computes spend-versus-budget for the current calendar month.

BudgetAlertService is the side-effecting half: it reads the store,
evaluates, and hands alerts to the notification sink. Whether a repeat
alert is sent is decided by an AlertPolicy, so a cooldown can be
plugged in without touching the evaluation.

RULES:
- budget <= 0 means UNSET; no alert ever fires.
- Only EXPENSE transactions dated inside the current calendar month
  count (not a rolling 30-day window).
- percentage = round-half-up(spent / budget * 100), reported even above 100.
- spent > budget means EXCEEDED, and with the default policy every
  check while exceeded alerts again (no deduplication).
"""

import math
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from finance_tracker.config.settings import BudgetSettings
from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.models.ledger import (
    BudgetState,
    BudgetStatus,
    Category,
    CategoryTotal,
    MonthlySummary,
    NotificationPriority,
    Transaction,
    TxType,
)
from finance_tracker.services.currency import CurrencyConverter
from finance_tracker.services.notifications import NotificationSink
from finance_tracker.services.storage.ledger_store import LedgerStore


def _in_month(transaction: Transaction, now: datetime) -> bool:
    occurred = datetime.fromtimestamp(transaction.date / 1000, tz=now.tzinfo)
    return occurred.year == now.year and occurred.month == now.month


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BudgetMonitor:
    """Computes BudgetStatus for the current calendar month."""

    def evaluate(
        self,
        transactions: Iterable[Transaction],
        budget: float,
        now: Optional[datetime] = None,
    ) -> BudgetStatus:
        now = now or datetime.now()
        spent = sum(
            tx.amount
            for tx in transactions
            if tx.type == TxType.EXPENSE and _in_month(tx, now)
        )

        if budget <= 0:
            return BudgetStatus(
                spent=spent,
                budget=budget,
                percentage=0,
                state=BudgetState.UNSET,
                evaluated_at=now,
            )

        return BudgetStatus(
            spent=spent,
            budget=budget,
            percentage=_round_half_up(spent / budget * 100),
            state=BudgetState.EXCEEDED if spent > budget else BudgetState.OK,
            evaluated_at=now,
        )

    def monthly_summary(
        self,
        transactions: Iterable[Transaction],
        now: Optional[datetime] = None,
        categories: Iterable[Category] = (),
    ) -> MonthlySummary:
        """Income/expense totals for the current month, with per-category breakdowns."""
        now = now or datetime.now()
        emojis = {(c.name, c.type): c.emoji for c in categories}
        totals: dict[TxType, dict[str, float]] = {
            TxType.INCOME: defaultdict(float),
            TxType.EXPENSE: defaultdict(float),
        }

        for tx in transactions:
            if _in_month(tx, now):
                totals[tx.type][tx.category] += tx.amount

        def breakdown(kind: TxType) -> list[CategoryTotal]:
            rows = [
                CategoryTotal(name=name, amount=amount, emoji=emojis.get((name, kind), ""))
                for name, amount in totals[kind].items()
            ]
            return sorted(rows, key=lambda row: row.amount, reverse=True)

        return MonthlySummary(
            year=now.year,
            month=now.month,
            income=sum(totals[TxType.INCOME].values()),
            expense=sum(totals[TxType.EXPENSE].values()),
            expense_by_category=breakdown(TxType.EXPENSE),
            income_by_category=breakdown(TxType.INCOME),
        )


# =============================================================================
# ALERT POLICIES
# =============================================================================

class AlertPolicy(ABC):
    """Decides whether an EXCEEDED status is announced again."""

    @abstractmethod
    def should_alert(self, status: BudgetStatus, now: datetime) -> bool:
        pass

    def record_alert(self, now: datetime) -> None:
        """Called after an alert was handed to the sink."""
        pass


class AlwaysAlert(AlertPolicy):
    """Every evaluation while over budget alerts. Callers debounce if they want to."""

    def should_alert(self, status: BudgetStatus, now: datetime) -> bool:
        return status.is_exceeded


class CooldownAlert(AlertPolicy):
    """At most one exceeded alert per cooldown window."""

    def __init__(self, cooldown: timedelta):
        self._cooldown = cooldown
        self._last_alert: Optional[datetime] = None
        self._lock = threading.Lock()

    def should_alert(self, status: BudgetStatus, now: datetime) -> bool:
        if not status.is_exceeded:
            return False
        with self._lock:
            return self._last_alert is None or now - self._last_alert >= self._cooldown

    def record_alert(self, now: datetime) -> None:
        with self._lock:
            self._last_alert = now


def policy_from_settings(settings: BudgetSettings) -> AlertPolicy:
    if settings.alert_cooldown_minutes > 0:
        return CooldownAlert(timedelta(minutes=settings.alert_cooldown_minutes))
    return AlwaysAlert()


# =============================================================================
# ALERT SERVICE
# =============================================================================

class BudgetAlertService:
    """
    Reads the ledger, evaluates the budget and dispatches alerts.

    The optional "approaching" tier is a soft warning only; it is off
    unless enabled in BudgetSettings.
    """

    def __init__(
        self,
        store: LedgerStore,
        sink: NotificationSink,
        monitor: Optional[BudgetMonitor] = None,
        policy: Optional[AlertPolicy] = None,
        settings: Optional[BudgetSettings] = None,
        converter: Optional[CurrencyConverter] = None,
    ):
        self._store = store
        self._sink = sink
        self._monitor = monitor or BudgetMonitor()
        self._settings = settings or BudgetSettings()
        self._policy = policy or policy_from_settings(self._settings)
        self._converter = converter or CurrencyConverter()
        self._logger = get_logger("budget")

    def status(self, now: Optional[datetime] = None) -> BudgetStatus:
        return self._monitor.evaluate(
            self._store.load_transactions(),
            self._store.get_budget(),
            now,
        )

    def check(self, now: Optional[datetime] = None) -> BudgetStatus:
        """
        Evaluate the current month and notify if needed.

        Raises:
            StorageUnavailable, CorruptState: If the ledger cannot be read
        """
        now = now or datetime.now()
        status = self.status(now)
        self._logger.debug(
            LogEvent.BUDGET_EVALUATED.value,
            spent=status.spent,
            budget=status.budget,
            percentage=status.percentage,
            state=status.state.value,
        )

        if status.state == BudgetState.UNSET:
            return status

        if status.is_exceeded:
            if self._policy.should_alert(status, now):
                self._notify_exceeded(status)
                self._policy.record_alert(now)
            else:
                self._logger.info(
                    LogEvent.BUDGET_ALERT_SUPPRESSED.value,
                    percentage=status.percentage,
                )
        elif (
            self._settings.approaching_alert_enabled
            and status.percentage >= self._settings.approaching_threshold_percent
        ):
            self._notify_approaching(status)

        return status

    def _fmt(self, amount: float) -> str:
        return self._converter.format_amount(amount, self._store.get_currency())

    def _notify_exceeded(self, status: BudgetStatus) -> None:
        message = (
            f"You have exceeded your monthly budget by {self._fmt(status.overrun)}! "
            f"({self._fmt(status.spent)} of {self._fmt(status.budget)})"
        )
        self._logger.warning(
            LogEvent.BUDGET_EXCEEDED.value,
            spent=status.spent,
            budget=status.budget,
            percentage=status.percentage,
        )
        self._sink.send("Budget Exceeded", message, NotificationPriority.HIGH)

    def _notify_approaching(self, status: BudgetStatus) -> None:
        message = (
            f"You've used {status.percentage}% of your monthly budget "
            f"({self._fmt(status.spent)} of {self._fmt(status.budget)})"
        )
        self._sink.send("Budget Alert", message, NotificationPriority.DEFAULT)
