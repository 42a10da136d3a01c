"""
Timer Coordinator

Owns every periodic and one-shot callback of the platform on a single
SimPy timeline:
- Monitoring ticks (metrics, charts, refresh countdown, auto-save)
- Attack stage timers, visualization and elapsed-time ticks
- Replay playback ticks

Time is measured in epoch milliseconds. Tests drive a plain
simpy.Environment; the dashboard uses a RealtimeEnvironment paced to the
wall clock.

Timers are registered under a purpose name. Registering a name again
replaces (cancels) the previous timer with that name.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import simpy

logger = logging.getLogger(__name__)

DEFAULT_START_MS = 1_700_000_000_000.0
# Real seconds per simulated millisecond
REALTIME_FACTOR = 0.001


def simulated_environment(start_ms: float = DEFAULT_START_MS) -> simpy.Environment:
    """Environment that only moves when advanced (tests, offline runs)"""
    return simpy.Environment(initial_time=start_ms)


def realtime_environment(start_ms: Optional[float] = None) -> simpy.RealtimeEnvironment:
    """Environment paced to the wall clock, starting at the current epoch time"""
    if start_ms is None:
        start_ms = time.time() * 1000.0
    return simpy.RealtimeEnvironment(initial_time=start_ms, factor=REALTIME_FACTOR, strict=False)


@dataclass(eq=False)
class Timer:
    """A scheduled callback; repeating when interval_ms is set"""
    name: str
    due_ms: float
    callback: Callable[[], None]
    interval_ms: Optional[float] = None
    cancelled: bool = False
    runs: int = 0
    process: Optional[simpy.Process] = None

    @property
    def repeating(self) -> bool:
        return self.interval_ms is not None


class Scheduler:
    """
    Named timer registry on top of a SimPy environment.

    Each timer is a SimPy process waiting on env.timeout(); cancelling a
    timer interrupts its process. Callbacks fire in deadline order and
    timers with equal deadlines fire in the order they were scheduled.
    A cancelled timer is never invoked.
    """

    def __init__(self, env: Optional[simpy.Environment] = None):
        self.env = env if env is not None else simulated_environment()
        self._timers: Dict[str, Timer] = {}
        self._fired = 0

    @property
    def realtime(self) -> bool:
        return isinstance(self.env, simpy.RealtimeEnvironment)

    def now_ms(self) -> float:
        return float(self.env.now)

    def call_later(self, name: str, delay_ms: float, callback: Callable[[], None]) -> Timer:
        """
        Schedule a one-shot callback.

        Args:
            name: Purpose key (e.g. "attack.detection")
            delay_ms: Delay from now in milliseconds
            callback: Zero-argument callable

        Returns:
            The registered Timer
        """
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        timer = Timer(name=name, due_ms=self.now_ms() + delay_ms, callback=callback)
        self._register(timer)
        return timer

    def call_every(
        self,
        name: str,
        period_ms: float,
        callback: Callable[[], None],
        first_delay_ms: Optional[float] = None
    ) -> Timer:
        """
        Schedule a repeating callback.

        Args:
            name: Purpose key (e.g. "monitor.metrics")
            period_ms: Interval between runs in milliseconds
            callback: Zero-argument callable
            first_delay_ms: Delay of the first run (defaults to period_ms)
        """
        if period_ms <= 0:
            raise ValueError(f"period_ms must be > 0, got {period_ms}")
        first = period_ms if first_delay_ms is None else first_delay_ms
        timer = Timer(
            name=name,
            due_ms=self.now_ms() + first,
            callback=callback,
            interval_ms=period_ms
        )
        self._register(timer)
        return timer

    def _register(self, timer: Timer) -> None:
        previous = self._timers.get(timer.name)
        if previous is not None:
            self._cancel_timer(previous)
        self._timers[timer.name] = timer
        timer.process = self.env.process(self._run_timer(timer))
        logger.debug(f"Scheduled timer {timer.name} at {timer.due_ms:.0f}")

    def _run_timer(self, timer: Timer):
        """SimPy process body of one timer"""
        try:
            delay = timer.due_ms - self.env.now
            while True:
                yield self.env.timeout(max(0.0, delay))
                if timer.cancelled:
                    return

                if timer.repeating:
                    timer.due_ms = self.env.now + timer.interval_ms
                else:
                    # deregister first so the callback may reuse its own name
                    self._forget(timer)
                self._fire(timer)

                if not timer.repeating or timer.cancelled:
                    return
                delay = timer.interval_ms
        except simpy.Interrupt:
            logger.debug(f"Timer {timer.name} interrupted")

    def _fire(self, timer: Timer) -> None:
        timer.runs += 1
        self._fired += 1
        try:
            timer.callback()
        except Exception:
            logger.exception(f"Timer {timer.name} callback failed")

    def _forget(self, timer: Timer) -> None:
        if self._timers.get(timer.name) is timer:
            del self._timers[timer.name]

    def _cancel_timer(self, timer: Timer) -> None:
        if timer.cancelled:
            return
        timer.cancelled = True
        process = timer.process
        # a timer cancelling itself just stops after its callback returns
        if process is not None and process.is_alive and process is not self.env.active_process:
            process.interrupt("cancelled")

    def get(self, name: str) -> Optional[Timer]:
        return self._timers.get(name)

    def is_scheduled(self, name: str) -> bool:
        return name in self._timers

    def active_names(self) -> List[str]:
        return sorted(self._timers)

    def cancel(self, name: str) -> bool:
        """Cancel a timer by name. Returns False if nothing was scheduled."""
        timer = self._timers.pop(name, None)
        if timer is None:
            return False
        self._cancel_timer(timer)
        return True

    def cancel_prefix(self, prefix: str) -> List[str]:
        """Cancel every timer whose name starts with prefix"""
        names = [name for name in self._timers if name.startswith(prefix)]
        for name in names:
            self.cancel(name)
        return names

    def cancel_all(self) -> int:
        """Cancel every outstanding timer"""
        names = list(self._timers)
        for name in names:
            self.cancel(name)
        if names:
            logger.info(f"Cancelled {len(names)} timers")
        return len(names)

    def next_due_ms(self) -> Optional[float]:
        if not self._timers:
            return None
        return min(timer.due_ms for timer in self._timers.values())

    def _wall_now_ms(self) -> float:
        env = self.env
        return env.env_start + (time.monotonic() - env.real_start) / env.factor

    def _run_until(self, target_ms: float) -> None:
        """Process every event due at or before target_ms, then move the clock there"""
        while self.env.peek() <= target_ms:
            self.env.step()
        if target_ms > self.env.now:
            self.env.run(until=target_ms)

    def run_pending(self) -> int:
        """
        Fire every callback that is due now.

        On a realtime environment "now" is the wall clock, so this also
        moves simulated time forward; the dashboard pump calls it.

        Returns:
            Number of callbacks invoked
        """
        fired_before = self._fired
        target = self._wall_now_ms() if self.realtime else self.now_ms()
        self._run_until(target)
        return self._fired - fired_before

    def advance(self, ms: float) -> int:
        """
        Move a simulated environment forward, firing callbacks at their own deadlines.

        Args:
            ms: Milliseconds to advance

        Returns:
            Number of callbacks invoked
        """
        if self.realtime:
            raise TypeError("advance() requires a simulated environment")
        if ms < 0:
            raise ValueError(f"Cannot advance by a negative amount: {ms}")

        fired_before = self._fired
        self._run_until(self.now_ms() + ms)
        return self._fired - fired_before
