"""Daily reminder scheduling: timer hosts, fallback chains and the check-in job."""

from finance_tracker.services.reminders.job import DailyReminderJob, format_reminder_time
from finance_tracker.services.reminders.scheduler import (
    BACKUP_TIMER,
    PRIMARY_TIMER,
    ReminderScheduler,
    TimerState,
)
from finance_tracker.services.reminders.strategies import (
    ApproximateRepeating,
    ArmingStrategy,
    ExactOneShot,
    FallbackChain,
    backup_chain,
    primary_chain,
)
from finance_tracker.services.reminders.timers import (
    SchedulingDenied,
    SchedulingError,
    ThreadingTimerHost,
    TimerHost,
)

__all__ = [
    "ApproximateRepeating",
    "ArmingStrategy",
    "BACKUP_TIMER",
    "DailyReminderJob",
    "ExactOneShot",
    "FallbackChain",
    "PRIMARY_TIMER",
    "ReminderScheduler",
    "SchedulingDenied",
    "SchedulingError",
    "ThreadingTimerHost",
    "TimerHost",
    "TimerState",
    "backup_chain",
    "format_reminder_time",
    "primary_chain",
]
