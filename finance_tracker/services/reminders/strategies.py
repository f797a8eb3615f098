"""
Timer Arming Strategies

DESIGN DECISION: Instead of nesting try/except blocks around each kind
of timer, the fallback chain is an ordered list of strategies. Each one
either arms its timer or raises; the chain moves to the next strategy
on any failure and reports which one succeeded. Every strategy can be
tested against a fake host without real timers.

The chain itself never raises: exhausting it is logged and reported as
None, and the reminder is simply absent.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional, Sequence

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.services.reminders.timers import (
    SchedulingDenied,
    TimerCallback,
    TimerHost,
)


class ArmingStrategy(ABC):
    """One way of getting a callback delivered at (or near) an instant."""

    name: str = "strategy"

    @abstractmethod
    def arm(
        self,
        host: TimerHost,
        identity: str,
        trigger_at: datetime,
        period: timedelta,
        callback: TimerCallback,
    ) -> None:
        """
        Arm the timer.

        Raises:
            SchedulingDenied: If the host does not grant this kind of timer
            Exception: Any host failure; the chain treats it as "try next"
        """
        pass


class ExactOneShot(ArmingStrategy):
    """Precise, single delivery at trigger_at. Needs the host's permission."""

    name = "exact_one_shot"

    def arm(self, host, identity, trigger_at, period, callback) -> None:
        if not host.can_schedule_exact():
            raise SchedulingDenied("Host does not grant precise timers")
        host.set_exact(identity, trigger_at, callback)


class ApproximateRepeating(ArmingStrategy):
    """Inexact delivery starting at trigger_at, repeating every period."""

    name = "approximate_repeating"

    def arm(self, host, identity, trigger_at, period, callback) -> None:
        host.set_repeating(identity, trigger_at, period, callback)


class FallbackChain:
    """Ordered strategies tried until one arms successfully."""

    def __init__(self, strategies: Sequence[ArmingStrategy]):
        self._strategies = list(strategies)
        self._logger = get_logger("reminder_chain")

    @property
    def strategies(self) -> list[ArmingStrategy]:
        return list(self._strategies)

    def arm(
        self,
        host: TimerHost,
        identity: str,
        trigger_at: datetime,
        period: timedelta,
        callback: TimerCallback,
    ) -> Optional[ArmingStrategy]:
        """Returns the strategy that armed the timer, or None if all failed."""
        for strategy in self._strategies:
            try:
                strategy.arm(host, identity, trigger_at, period, callback)
            except SchedulingDenied as e:
                self._logger.info(
                    LogEvent.REMINDER_FALLBACK.value,
                    identity=identity,
                    strategy=strategy.name,
                    reason=str(e),
                )
                continue
            except Exception as e:
                self._logger.error(
                    LogEvent.REMINDER_FALLBACK.value,
                    identity=identity,
                    strategy=strategy.name,
                    error=str(e),
                    exc_info=True,
                )
                continue

            self._logger.info(
                LogEvent.REMINDER_ARMED.value,
                identity=identity,
                strategy=strategy.name,
                trigger_at=trigger_at.isoformat(),
            )
            return strategy

        self._logger.error(
            LogEvent.REMINDER_UNAVAILABLE.value,
            identity=identity,
            tried=[s.name for s in self._strategies],
        )
        return None


def primary_chain() -> FallbackChain:
    return FallbackChain([ExactOneShot(), ApproximateRepeating()])


def backup_chain() -> FallbackChain:
    return FallbackChain([ApproximateRepeating()])
