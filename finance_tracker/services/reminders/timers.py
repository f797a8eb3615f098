"""
Timer Hosts

The host environment owns real timers. The scheduler only needs three
things from it: a precise one-shot timer, an approximate repeating
timer, and cancellation by identity. Arming an identity that is already
armed replaces the earlier timer.

ThreadingTimerHost is the in-process implementation built on
threading.Timer. It can be told that precise timers are not granted,
which exercises the scheduler's fallback path exactly as a host that
denies them would.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable

TimerCallback = Callable[[], None]


class SchedulingError(Exception):
    """Base exception for timer arming."""
    pass


class SchedulingDenied(SchedulingError):
    """The host refused to arm the requested kind of timer."""
    pass


class TimerHost(ABC):
    """Abstract provider of wall-clock timers."""

    @abstractmethod
    def can_schedule_exact(self) -> bool:
        """Whether precise one-shot timers are currently permitted."""
        pass

    @abstractmethod
    def set_exact(self, identity: str, trigger_at: datetime, callback: TimerCallback) -> None:
        """
        Arm a precise one-shot timer.

        Raises:
            SchedulingDenied: If precise timers are not permitted
        """
        pass

    @abstractmethod
    def set_repeating(
        self,
        identity: str,
        first_trigger_at: datetime,
        period: timedelta,
        callback: TimerCallback,
    ) -> None:
        """Arm an approximate timer that fires at first_trigger_at and then every period."""
        pass

    @abstractmethod
    def cancel(self, identity: str) -> bool:
        """Disarm ``identity``. Returns False when nothing was armed."""
        pass


class _Armed:
    def __init__(self, timer: threading.Timer, generation: int):
        self.timer = timer
        self.generation = generation


class ThreadingTimerHost(TimerHost):
    """TimerHost backed by daemon threading.Timer objects."""

    def __init__(
        self,
        allow_exact: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._allow_exact = allow_exact
        self._clock = clock
        self._armed: dict[str, _Armed] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def can_schedule_exact(self) -> bool:
        return self._allow_exact

    def _delay_until(self, moment: datetime) -> float:
        return max(0.0, (moment - self._clock()).total_seconds())

    def _start(self, identity: str, delay: float, target: Callable[[int], None]) -> None:
        # Caller holds self._lock.
        previous = self._armed.pop(identity, None)
        if previous is not None:
            previous.timer.cancel()
        self._generation += 1
        generation = self._generation
        timer = threading.Timer(delay, target, args=(generation,))
        timer.daemon = True
        self._armed[identity] = _Armed(timer, generation)
        timer.start()

    def _is_current(self, identity: str, generation: int) -> bool:
        armed = self._armed.get(identity)
        return armed is not None and armed.generation == generation

    def set_exact(self, identity: str, trigger_at: datetime, callback: TimerCallback) -> None:
        if not self._allow_exact:
            raise SchedulingDenied("Precise timers are not permitted on this host")

        def run(generation: int) -> None:
            with self._lock:
                if not self._is_current(identity, generation):
                    return
                del self._armed[identity]
            callback()

        with self._lock:
            self._start(identity, self._delay_until(trigger_at), run)

    def set_repeating(
        self,
        identity: str,
        first_trigger_at: datetime,
        period: timedelta,
        callback: TimerCallback,
    ) -> None:
        schedule = {"next": first_trigger_at}

        def run(generation: int) -> None:
            with self._lock:
                if not self._is_current(identity, generation):
                    return
                schedule["next"] = schedule["next"] + period
                while schedule["next"] <= self._clock():
                    schedule["next"] = schedule["next"] + period
                self._start(identity, self._delay_until(schedule["next"]), run)
            callback()

        with self._lock:
            self._start(identity, self._delay_until(first_trigger_at), run)

    def cancel(self, identity: str) -> bool:
        with self._lock:
            armed = self._armed.pop(identity, None)
        if armed is None:
            return False
        armed.timer.cancel()
        return True

    def armed_identities(self) -> list[str]:
        with self._lock:
            return sorted(self._armed)

    def shutdown(self) -> None:
        """Cancel every armed timer."""
        with self._lock:
            armed, self._armed = self._armed, {}
        for entry in armed.values():
            entry.timer.cancel()
