"""Tests for the daily reminder: fallback chains, scheduler, job and timer host."""

import threading
from datetime import datetime, timedelta

import pytest
from structlog.testing import capture_logs

from conftest import FakeTimerHost, make_tx
from finance_tracker.models.ledger import NotificationPriority
from finance_tracker.services.budget import BudgetAlertService
from finance_tracker.services.reminders import (
    BACKUP_TIMER,
    PRIMARY_TIMER,
    ApproximateRepeating,
    DailyReminderJob,
    ExactOneShot,
    FallbackChain,
    ReminderScheduler,
    SchedulingDenied,
    ThreadingTimerHost,
    TimerState,
    format_reminder_time,
)
from finance_tracker.validation import ValidationError


class Clock:
    """Settable clock for the scheduler."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment


@pytest.fixture
def clock(now) -> Clock:
    return Clock(now)


@pytest.fixture
def fired() -> list:
    return []


@pytest.fixture
def scheduler(timer_host, clock, fired) -> ReminderScheduler:
    return ReminderScheduler(timer_host, fired.append, clock=clock)


class TestNextTrigger:
    """Tests for trigger time computation."""

    def test_later_today(self, now):
        """Test that a time still ahead today is used today."""
        assert ReminderScheduler.next_trigger(20, 0, now) == datetime(2026, 10, 19, 20, 0)

    def test_past_time_goes_to_tomorrow(self, now):
        """Test that a time already past today arms for tomorrow."""
        assert ReminderScheduler.next_trigger(9, 0, now) == datetime(2026, 10, 20, 9, 0)

    def test_current_minute_goes_to_tomorrow(self, now):
        """Test that "now" itself is not in the future."""
        assert ReminderScheduler.next_trigger(14, 5, now) == datetime(2026, 10, 20, 14, 5)

    def test_month_rollover(self):
        """Test tomorrow across a month end."""
        moment = datetime(2026, 10, 31, 23, 0)
        assert ReminderScheduler.next_trigger(8, 0, moment) == datetime(2026, 11, 1, 8, 0)


class TestFallbackChain:
    """Tests for ordered arming strategies."""

    def test_exact_first(self, timer_host, now):
        """Test that the exact strategy wins when allowed."""
        chain = FallbackChain([ExactOneShot(), ApproximateRepeating()])
        used = chain.arm(timer_host, "x", now, timedelta(hours=24), lambda: None)
        assert isinstance(used, ExactOneShot)
        assert timer_host.armed["x"]["kind"] == "exact"

    def test_denied_falls_back(self, now):
        """Test that a denied exact timer falls back to approximate."""
        host = FakeTimerHost(allow_exact=False)
        chain = FallbackChain([ExactOneShot(), ApproximateRepeating()])
        used = chain.arm(host, "x", now, timedelta(hours=24), lambda: None)
        assert isinstance(used, ApproximateRepeating)
        assert host.armed["x"]["period"] == timedelta(hours=24)
        assert host.armed["x"]["trigger_at"] == now

    def test_unexpected_error_falls_back(self, now):
        """Test that any host failure moves on to the next strategy."""

        class BrokenExactHost(FakeTimerHost):
            def set_exact(self, identity, trigger_at, callback):
                raise RuntimeError("alarm service crashed")

        host = BrokenExactHost()
        used = FallbackChain([ExactOneShot(), ApproximateRepeating()]).arm(
            host, "x", now, timedelta(hours=24), lambda: None
        )
        assert isinstance(used, ApproximateRepeating)

    def test_exhausted_chain_returns_none(self, now):
        """Test that running out of strategies is reported, not raised."""
        host = FakeTimerHost(allow_exact=False)
        host.fail_repeating = True
        chain = FallbackChain([ExactOneShot(), ApproximateRepeating()])
        assert chain.arm(host, "x", now, timedelta(hours=24), lambda: None) is None
        assert host.armed == {}

    def test_exact_strategy_checks_permission(self, now):
        """Test that the exact strategy raises SchedulingDenied itself."""
        host = FakeTimerHost(allow_exact=False)
        with pytest.raises(SchedulingDenied):
            ExactOneShot().arm(host, "x", now, timedelta(hours=24), lambda: None)


class TestReminderScheduler:
    """Tests for the two-timer scheduler."""

    def test_schedule_arms_both_timers(self, scheduler, timer_host, now):
        """Test that primary and backup are armed under distinct identities."""
        trigger = scheduler.schedule(20, 0, now)
        assert trigger == datetime(2026, 10, 19, 20, 0)
        assert timer_host.armed[PRIMARY_TIMER]["kind"] == "exact"
        assert timer_host.armed[BACKUP_TIMER]["kind"] == "repeating"
        assert timer_host.armed[BACKUP_TIMER]["period"] == timedelta(hours=24)
        assert scheduler.state(PRIMARY_TIMER) == TimerState.ARMED
        assert scheduler.state(BACKUP_TIMER) == TimerState.ARMED

    def test_past_time_arms_tomorrow(self, scheduler, timer_host, now):
        """Test that a reminder time already past today arms for tomorrow."""
        scheduler.schedule(8, 30, now)
        tomorrow = datetime(2026, 10, 20, 8, 30)
        assert timer_host.armed[PRIMARY_TIMER]["trigger_at"] == tomorrow
        assert timer_host.armed[BACKUP_TIMER]["trigger_at"] == tomorrow

    def test_denied_exact_uses_approximate_primary(self, clock, fired, now):
        """Test the primary fallback when precise timers are denied."""
        host = FakeTimerHost(allow_exact=False)
        scheduler = ReminderScheduler(host, fired.append, clock=clock)
        scheduler.schedule(20, 0, now)
        assert host.armed[PRIMARY_TIMER]["kind"] == "repeating"
        assert isinstance(scheduler.armed_with(PRIMARY_TIMER), ApproximateRepeating)
        assert BACKUP_TIMER in host.armed

    def test_reschedule_cancels_previous(self, scheduler, timer_host, now):
        """Test that scheduling again replaces both timers."""
        scheduler.schedule(20, 0, now)
        old_callback = timer_host.armed[PRIMARY_TIMER]["callback"]
        scheduler.schedule(21, 15, now)
        assert PRIMARY_TIMER in timer_host.cancelled
        assert BACKUP_TIMER in timer_host.cancelled
        assert timer_host.armed[PRIMARY_TIMER]["trigger_at"] == datetime(2026, 10, 19, 21, 15)
        assert scheduler.scheduled_time == (21, 15)

        old_callback()
        assert scheduler.state(PRIMARY_TIMER) == TimerState.ARMED

    def test_cancel_before_schedule_is_noop(self, scheduler):
        """Test that cancel() with nothing armed returns quietly."""
        scheduler.cancel()
        assert scheduler.state(PRIMARY_TIMER) == TimerState.IDLE
        assert scheduler.state(BACKUP_TIMER) == TimerState.IDLE

    def test_cancel_disarms_both(self, scheduler, timer_host, now):
        """Test that cancel() removes both timers."""
        scheduler.schedule(20, 0, now)
        scheduler.cancel()
        assert timer_host.armed == {}
        assert scheduler.scheduled_time is None

    def test_no_delivery_after_cancel(self, scheduler, timer_host, fired, now):
        """Test that a callback captured before cancel() does nothing after it."""
        scheduler.schedule(20, 0, now)
        primary = timer_host.armed[PRIMARY_TIMER]["callback"]
        backup = timer_host.armed[BACKUP_TIMER]["callback"]
        scheduler.cancel()
        primary()
        backup()
        assert fired == []

    def test_primary_fire_rearms_next_day(self, scheduler, timer_host, clock, fired, now):
        """Test the self-perpetuating primary chain."""
        scheduler.schedule(20, 0, now)
        clock.moment = datetime(2026, 10, 19, 20, 0)
        timer_host.fire(PRIMARY_TIMER)

        assert fired == [datetime(2026, 10, 19, 20, 0)]
        assert timer_host.armed[PRIMARY_TIMER]["kind"] == "exact"
        assert timer_host.armed[PRIMARY_TIMER]["trigger_at"] == datetime(2026, 10, 20, 20, 0)
        assert scheduler.state(PRIMARY_TIMER) == TimerState.ARMED

    def test_early_approximate_fire_still_moves_a_day(self, clock, fired, now):
        """Test that an early inexact delivery does not re-arm for the same day."""
        host = FakeTimerHost(allow_exact=False)
        scheduler = ReminderScheduler(host, fired.append, clock=clock)
        scheduler.schedule(20, 0, now)
        clock.moment = datetime(2026, 10, 19, 19, 52)
        host.fire(PRIMARY_TIMER)
        assert scheduler.planned_trigger(PRIMARY_TIMER) == datetime(2026, 10, 20, 20, 0)

    def test_backup_fire(self, scheduler, timer_host, clock, fired, now):
        """Test that the backup fires the callback and stays armed."""
        scheduler.schedule(20, 0, now)
        clock.moment = datetime(2026, 10, 19, 20, 3)
        timer_host.fire(BACKUP_TIMER)
        assert fired == [datetime(2026, 10, 19, 20, 3)]
        assert scheduler.state(BACKUP_TIMER) == TimerState.ARMED
        assert scheduler.planned_trigger(BACKUP_TIMER) == datetime(2026, 10, 20, 20, 0)

    def test_callback_error_does_not_break_chain(self, timer_host, clock, now):
        """Test that a failing reminder callback is contained."""

        def explode(moment):
            raise RuntimeError("boom")

        scheduler = ReminderScheduler(timer_host, explode, clock=clock)
        scheduler.schedule(20, 0, now)
        clock.moment = datetime(2026, 10, 19, 20, 0)
        timer_host.fire(PRIMARY_TIMER)
        assert timer_host.armed[PRIMARY_TIMER]["trigger_at"] == datetime(2026, 10, 20, 20, 0)

    def test_callback_error_logged_as_failure(self, timer_host, clock, now):
        """Test that a failing callback is logged under its own event."""

        def explode(moment):
            raise RuntimeError("boom")

        with capture_logs() as logs:
            scheduler = ReminderScheduler(timer_host, explode, clock=clock)
            scheduler.schedule(20, 0, now)
            clock.moment = datetime(2026, 10, 19, 20, 0)
            timer_host.fire(PRIMARY_TIMER)

        failures = [entry for entry in logs if entry["event"] == "reminder_failed"]
        assert len(failures) == 1
        assert failures[0]["error"] == "boom"
        assert [entry["event"] for entry in logs].count("reminder_fired") == 1

    def test_all_tiers_fail_quietly(self, clock, fired, now):
        """Test that an unarmable reminder degrades to absent without raising."""
        host = FakeTimerHost(allow_exact=False)
        host.fail_repeating = True
        scheduler = ReminderScheduler(host, fired.append, clock=clock)
        scheduler.schedule(20, 0, now)
        assert scheduler.state(PRIMARY_TIMER) == TimerState.IDLE
        assert scheduler.state(BACKUP_TIMER) == TimerState.IDLE
        assert host.armed == {}

    def test_invalid_time_rejected(self, scheduler, now):
        """Test that an impossible time of day is a validation error."""
        with pytest.raises(ValidationError):
            scheduler.schedule(24, 0, now)

    def test_unknown_identity(self, scheduler):
        """Test that fire() only accepts the two reminder identities."""
        with pytest.raises(KeyError):
            scheduler.fire("something_else")


class TestDailyReminderJob:
    """Tests for the daily check-in."""

    @pytest.fixture
    def job(self, store, sink) -> DailyReminderJob:
        return DailyReminderJob(store, sink, BudgetAlertService(store, sink))

    def test_reminds_when_nothing_recorded_today(self, job, sink, now):
        """Test the reminder notification."""
        assert job.run(now) is True
        assert sink.sent == [(
            "Transaction Reminder",
            "Don't forget to record your daily transactions",
            NotificationPriority.HIGH,
        )]

    def test_skips_when_recorded_today(self, job, store, sink, now):
        """Test that a transaction dated today suppresses the reminder."""
        store.add_transaction(make_tx(5, now.replace(hour=9)))
        job.run(now)
        assert sink.sent == []

    def test_yesterday_does_not_count(self, job, store, sink, now):
        """Test that only today's transactions suppress the reminder."""
        store.add_transaction(make_tx(5, now - timedelta(days=1)))
        job.run(now)
        assert sink.titles == ["Transaction Reminder"]

    def test_once_per_day(self, job, sink, now):
        """Test that a second firing on the same day does nothing."""
        job.run(now)
        assert job.run(now + timedelta(minutes=3)) is False
        assert job.run(now + timedelta(days=1)) is True
        assert sink.titles == ["Transaction Reminder", "Transaction Reminder"]

    def test_checks_budget(self, job, store, sink, now):
        """Test that the check-in also re-evaluates the budget."""
        store.add_transaction(make_tx(150, now - timedelta(days=2)))
        store.set_budget(100)
        job.run(now)
        assert sink.titles == ["Transaction Reminder", "Budget Exceeded"]

    def test_storage_failure_allows_retry(self, job, backend, sink, now):
        """Test that a failed run does not mark the day as done."""
        from finance_tracker.services.storage import StorageUnavailable

        backend.available = False
        with pytest.raises(StorageUnavailable):
            job.run(now)
        backend.available = True
        assert job.run(now) is True

    def test_both_timers_deliver_once(self, job, timer_host, sink, now):
        """Test primary and backup firing close together."""
        clock = Clock(now)
        scheduler = ReminderScheduler(timer_host, job.run, clock=clock)
        scheduler.schedule(20, 0, now)
        clock.moment = datetime(2026, 10, 19, 20, 0)
        timer_host.fire(PRIMARY_TIMER)
        clock.moment = datetime(2026, 10, 19, 20, 4)
        timer_host.fire(BACKUP_TIMER)
        assert sink.titles == ["Transaction Reminder"]

    @pytest.mark.parametrize("hour,minute,expected", [
        (20, 0, "8:00 PM"),
        (0, 5, "12:05 AM"),
        (12, 30, "12:30 PM"),
        (9, 7, "9:07 AM"),
    ])
    def test_format_reminder_time(self, hour, minute, expected):
        """Test 12-hour display of the reminder time."""
        assert format_reminder_time(hour, minute) == expected


class TestThreadingTimerHost:
    """Tests for the in-process timer host."""

    def test_denies_exact_when_disallowed(self, now):
        """Test that precise timers can be withheld."""
        host = ThreadingTimerHost(allow_exact=False)
        assert host.can_schedule_exact() is False
        with pytest.raises(SchedulingDenied):
            host.set_exact("x", now, lambda: None)

    def test_cancel_unknown(self):
        """Test that cancelling nothing reports False."""
        assert ThreadingTimerHost().cancel("x") is False

    def test_cancel_armed(self):
        """Test arming a far-future timer and cancelling it."""
        host = ThreadingTimerHost()
        host.set_exact("x", datetime.now() + timedelta(days=1), lambda: None)
        assert host.armed_identities() == ["x"]
        assert host.cancel("x") is True
        assert host.armed_identities() == []

    def test_exact_fires(self):
        """Test that a due timer runs its callback."""
        host = ThreadingTimerHost()
        done = threading.Event()
        host.set_exact("x", datetime.now(), done.set)
        assert done.wait(2)

    def test_rearming_replaces(self):
        """Test that arming the same identity twice keeps one timer."""
        host = ThreadingTimerHost()
        later = datetime.now() + timedelta(days=1)
        host.set_repeating("x", later, timedelta(hours=24), lambda: None)
        host.set_repeating("x", later, timedelta(hours=24), lambda: None)
        assert host.armed_identities() == ["x"]
        host.shutdown()
        assert host.armed_identities() == []
