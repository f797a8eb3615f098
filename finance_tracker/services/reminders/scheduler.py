"""
Daily Reminder Scheduler

Arranges for the daily check-in callback to run once a day at a
user-chosen local time.

Two timers run side by side under distinct identities:

    daily_reminder.primary   precise one-shot if the host grants it,
                             otherwise approximate repeating
    daily_reminder.backup    always approximate repeating

Each timer moves independently through IDLE -> ARMED -> FIRED and back
to ARMED when it is re-armed for the next day. Cancelling one identity
never touches the other.

DESIGN DECISION: Every schedule() and cancel() bumps a generation
counter, and the callbacks handed to the host carry the generation they
were armed under. A callback from a superseded generation is ignored,
so once cancel() returns no stale timer can deliver again, even if its
thread was already running.

Arming failures never leave this module. The fallback chains log and
report None; the scheduler records the timer as IDLE and carries on.
"""

import threading
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Callable, Optional

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.services.reminders.strategies import (
    ArmingStrategy,
    FallbackChain,
    backup_chain as default_backup_chain,
    primary_chain as default_primary_chain,
)
from finance_tracker.services.reminders.timers import TimerHost
from finance_tracker.validation import LedgerValidator, raise_if_errors

PRIMARY_TIMER = "daily_reminder.primary"
BACKUP_TIMER = "daily_reminder.backup"


class TimerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"


class ReminderScheduler:
    """
    Owns the primary and backup timers for the daily reminder.

    ``on_fire`` receives the firing time. It must be idempotent: both
    timers may fire close together and the host may run them on any
    thread.
    """

    def __init__(
        self,
        host: TimerHost,
        on_fire: Callable[[datetime], object],
        primary_chain: Optional[FallbackChain] = None,
        backup_chain: Optional[FallbackChain] = None,
        period: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._host = host
        self._on_fire = on_fire
        self._chains = {
            PRIMARY_TIMER: primary_chain or default_primary_chain(),
            BACKUP_TIMER: backup_chain or default_backup_chain(),
        }
        self._period = period
        self._clock = clock
        self._validator = LedgerValidator()
        self._lock = threading.RLock()
        self._generation = 0
        self._time: Optional[tuple[int, int]] = None
        self._states = {PRIMARY_TIMER: TimerState.IDLE, BACKUP_TIMER: TimerState.IDLE}
        self._planned: dict[str, Optional[datetime]] = {PRIMARY_TIMER: None, BACKUP_TIMER: None}
        self._strategies: dict[str, Optional[ArmingStrategy]] = {
            PRIMARY_TIMER: None,
            BACKUP_TIMER: None,
        }
        self._logger = get_logger("reminders")

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @staticmethod
    def next_trigger(hour: int, minute: int, now: datetime) -> datetime:
        """Nearest future occurrence of hour:minute; tomorrow if today's has passed."""
        candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if candidate <= now:
            tomorrow = now.date() + timedelta(days=1)
            candidate = datetime.combine(tomorrow, time(hour, minute), tzinfo=now.tzinfo)
        return candidate

    def state(self, identity: str) -> TimerState:
        with self._lock:
            return self._states[identity]

    def planned_trigger(self, identity: str) -> Optional[datetime]:
        with self._lock:
            return self._planned[identity]

    def armed_with(self, identity: str) -> Optional[ArmingStrategy]:
        """The strategy that armed ``identity`` most recently, if any."""
        with self._lock:
            return self._strategies[identity]

    @property
    def scheduled_time(self) -> Optional[tuple[int, int]]:
        with self._lock:
            return self._time

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def schedule(self, hour: int, minute: int, now: Optional[datetime] = None) -> datetime:
        """
        Arm both timers for the next occurrence of hour:minute.

        Previously armed timers are cancelled first.

        Returns:
            The first trigger instant

        Raises:
            ValidationError: If hour/minute is not a valid time of day
        """
        raise_if_errors(self._validator.reminder_time_issues(hour, minute))
        now = now or self._clock()
        trigger_at = self.next_trigger(hour, minute, now)

        with self._lock:
            self._disarm_all()
            self._generation += 1
            self._time = (hour, minute)
            for identity in (PRIMARY_TIMER, BACKUP_TIMER):
                self._arm(identity, trigger_at)

        return trigger_at

    def cancel(self) -> None:
        """Disarm both timers. Safe to call when nothing is armed."""
        with self._lock:
            self._generation += 1
            self._disarm_all()
            self._time = None
        self._logger.info(LogEvent.REMINDER_CANCELLED.value)

    def fire(
        self,
        identity: str,
        generation: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Entry point for "this timer fired now".

        Host callbacks pass the generation they were armed under; a
        callback from a superseded schedule is dropped. Returns True if
        the reminder callback ran.
        """
        if identity not in self._states:
            raise KeyError(f"Unknown reminder timer: {identity}")
        now = now or self._clock()

        with self._lock:
            if generation is not None and generation != self._generation:
                self._logger.info(
                    LogEvent.REMINDER_SKIPPED.value,
                    identity=identity,
                    reason="stale_generation",
                )
                return False
            self._states[identity] = TimerState.FIRED
            current = self._generation

        self._logger.info(LogEvent.REMINDER_FIRED.value, identity=identity, fired_at=now.isoformat())
        try:
            self._on_fire(now)
        except Exception as e:
            self._logger.error(
                LogEvent.REMINDER_FAILED.value,
                identity=identity,
                error=str(e),
                exc_info=True,
            )

        with self._lock:
            if current != self._generation or self._time is None:
                return True
            if identity == PRIMARY_TIMER:
                self._rearm_primary(now)
            else:
                planned = self._planned[BACKUP_TIMER]
                self._planned[BACKUP_TIMER] = (planned or now) + self._period
                self._states[BACKUP_TIMER] = TimerState.ARMED
        return True

    # =========================================================================
    # INTERNALS (callers hold self._lock)
    # =========================================================================

    def _callback(self, identity: str, generation: int) -> Callable[[], None]:
        def fired() -> None:
            self.fire(identity, generation)

        return fired

    def _arm(self, identity: str, trigger_at: datetime) -> None:
        strategy = self._chains[identity].arm(
            self._host,
            identity,
            trigger_at,
            self._period,
            self._callback(identity, self._generation),
        )
        self._strategies[identity] = strategy
        if strategy is None:
            self._states[identity] = TimerState.IDLE
            self._planned[identity] = None
        else:
            self._states[identity] = TimerState.ARMED
            self._planned[identity] = trigger_at

    def _rearm_primary(self, now: datetime) -> None:
        hour, minute = self._time
        next_at = self.next_trigger(hour, minute, now)
        planned = self._planned[PRIMARY_TIMER]
        if planned is not None and next_at < planned + timedelta(days=1):
            next_at = planned + timedelta(days=1)
        self._arm(PRIMARY_TIMER, next_at)

    def _disarm_all(self) -> None:
        for identity in (PRIMARY_TIMER, BACKUP_TIMER):
            try:
                self._host.cancel(identity)
            except Exception as e:
                self._logger.error(
                    LogEvent.REMINDER_CANCELLED.value,
                    identity=identity,
                    error=str(e),
                    exc_info=True,
                )
            self._states[identity] = TimerState.IDLE
            self._planned[identity] = None
            self._strategies[identity] = None
