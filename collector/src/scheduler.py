"""
Interval-aligned sample scheduler.

Sample instants sit on a fixed grid of ``k * interval`` seconds on the raw
monotonic clock.  After a cycle the scheduler moves the target to the next
grid point strictly after "now" and reports how long to sleep.  Execution
drift never accumulates, and after a stall spanning several intervals the
target jumps straight to the next boundary instead of firing once per missed
interval.

CHANGELOG:
- 2026-10-18: remaining() for sleeping on the scheduler clock
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from collector.src.errors import ClockUnavailableError

logger = logging.getLogger(__name__)


def monotonic_raw() -> float:
    """Read the raw monotonic clock in seconds.

    Uses ``CLOCK_MONOTONIC_RAW`` (not slewed by NTP) where the platform has
    it, otherwise :func:`time.monotonic`.
    """
    clock_id = getattr(time, "CLOCK_MONOTONIC_RAW", None)
    if clock_id is None:
        return time.monotonic()
    return time.clock_gettime(clock_id)


def check_clock(clock: Callable[[], float] = monotonic_raw) -> float:
    """Read *clock* once to prove it is usable.

    Raises:
        ClockUnavailableError: If the clock cannot be read.
    """
    try:
        return clock()
    except OSError as exc:
        raise ClockUnavailableError(f"monotonic clock unavailable: {exc}") from exc


def next_instant(target: float, interval: float, now: float) -> tuple[float, float]:
    """Compute the next sample instant and the wait until it.

    Args:
        target: Previously scheduled instant (monotonic seconds).
        interval: Sample interval in seconds; must be positive.
        now: Current monotonic clock reading.

    Returns:
        ``(new_target, wait)`` where ``new_target > now`` and
        ``wait = new_target - now > 0``.  A target that is already in the
        future is kept; otherwise it moves to the first grid point
        ``k * interval`` strictly after *now*, however many intervals were
        missed.
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    if target <= now:
        target = (math.floor(now / interval) + 1) * interval
        # floor() on a value just below a boundary can land on now itself
        if target <= now:
            target += interval
    return target, target - now


class Scheduler:
    """Keeps the scheduled instant for the sampling loop.

    Args:
        interval: Sample interval in seconds.
        clock: Monotonic clock callable, injectable for tests.

    Raises:
        ValueError: If *interval* is not positive.
        ClockUnavailableError: If the clock cannot be read.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = monotonic_raw,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._interval = interval
        self._clock = clock
        self._target = check_clock(clock)
        self._aligned = False

    @property
    def interval(self) -> float:
        """Sample interval in seconds."""
        return self._interval

    @property
    def target(self) -> float:
        """Currently scheduled instant on the monotonic clock."""
        return self._target

    def remaining(self) -> float:
        """Seconds until the current target on the scheduler clock, or 0."""
        return max(0.0, self._target - self._clock())

    def advance(self) -> float:
        """Move to the next aligned instant and return the wait in seconds."""
        now = self._clock()
        previous = self._target
        self._target, wait = next_instant(previous, self._interval, now)
        if self._aligned and previous <= now:
            missed = round((self._target - previous) / self._interval) - 1
            if missed > 0:
                logger.warning(
                    "Sampling fell behind: skipping %d missed interval(s)", missed
                )
        self._aligned = True
        return wait
