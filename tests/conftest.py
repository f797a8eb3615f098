"""
Shared fixtures for Finance Tracker tests.

No real timers and no real clock: time is passed in explicitly and the
timer host records what was armed so tests can fire it by hand.
"""

from datetime import datetime, timedelta
from typing import Optional

import pytest

from finance_tracker.config import BackupSettings, LedgerSettings, ReminderSettings
from finance_tracker.models.ledger import (
    NotificationPriority,
    Transaction,
    TxType,
    epoch_ms,
)
from finance_tracker.services.notifications import NotificationSink
from finance_tracker.services.reminders.timers import SchedulingDenied, TimerHost
from finance_tracker.services.storage import InMemoryBackend, LedgerStore


class RecordingSink(NotificationSink):
    """Keeps every notification instead of delivering it."""

    def __init__(self):
        self.sent: list[tuple[str, str, NotificationPriority]] = []

    def send(self, title: str, body: str, priority: NotificationPriority) -> None:
        self.sent.append((title, body, priority))

    @property
    def titles(self) -> list[str]:
        return [title for title, _, _ in self.sent]


class FakeTimerHost(TimerHost):
    """
    Records armed timers. Nothing fires unless a test calls fire().

    Set ``allow_exact`` False to deny precise timers, or
    ``fail_repeating`` True to make approximate timers blow up.
    """

    def __init__(self, allow_exact: bool = True):
        self.allow_exact = allow_exact
        self.fail_repeating = False
        self.armed: dict[str, dict] = {}
        self.cancelled: list[str] = []

    def can_schedule_exact(self) -> bool:
        return self.allow_exact

    def set_exact(self, identity, trigger_at, callback) -> None:
        if not self.allow_exact:
            raise SchedulingDenied("exact timers denied")
        self.armed[identity] = {
            "kind": "exact",
            "trigger_at": trigger_at,
            "period": None,
            "callback": callback,
        }

    def set_repeating(self, identity, first_trigger_at, period, callback) -> None:
        if self.fail_repeating:
            raise RuntimeError("timer service unavailable")
        self.armed[identity] = {
            "kind": "repeating",
            "trigger_at": first_trigger_at,
            "period": period,
            "callback": callback,
        }

    def cancel(self, identity: str) -> bool:
        self.cancelled.append(identity)
        return self.armed.pop(identity, None) is not None

    def fire(self, identity: str) -> None:
        """Deliver the timer as the host would. One-shot timers are consumed."""
        entry = self.armed[identity]
        if entry["kind"] == "exact":
            del self.armed[identity]
        entry["callback"]()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 14, 5)


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend) -> LedgerStore:
    return LedgerStore.open(
        backend,
        settings=LedgerSettings(),
        reminder_settings=ReminderSettings(),
        lock_timeout=1.0,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def timer_host() -> FakeTimerHost:
    return FakeTimerHost()


@pytest.fixture
def backup_settings(tmp_path) -> BackupSettings:
    return BackupSettings(
        internal_dir=tmp_path / "internal",
        external_dir=tmp_path / "external",
    )


def make_tx(
    amount: float,
    when: datetime,
    type: TxType = TxType.EXPENSE,
    category: str = "Food",
    title: str = "Lunch",
    id: Optional[str] = None,
) -> Transaction:
    fields = {
        "title": title,
        "amount": amount,
        "category": category,
        "type": type,
        "date": epoch_ms(when),
    }
    if id is not None:
        fields["id"] = id
    return Transaction(**fields)


def days_ago(moment: datetime, days: int) -> datetime:
    return moment - timedelta(days=days)
