"""
Fixed-period pacing for replay loops.

run_paced() calls an action once per item and sleeps so that item k
finishes no earlier than start + (k + 1) * period. Deadlines follow the
original schedule rather than the actual wake time, so jitter does not
accumulate. After an action overruns its slot the following items run
without sleeping until the schedule is met again.

    stats = run_paced(0.001, packets, sender.send)

The clock and sleep functions are injectable for tests.
"""

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar('T')

Period = Union[float, int, timedelta]


@dataclass
class PacingStats:
    """Outcome of a paced run."""
    items: int = 0
    overruns: int = 0
    max_lag: float = 0.0     # Worst deadline miss in seconds
    elapsed: float = 0.0

    @property
    def rate(self) -> float:
        """Achieved items per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.items / self.elapsed

    def to_dict(self) -> dict:
        return {
            'items': self.items,
            'overruns': self.overruns,
            'max_lag_s': self.max_lag,
            'elapsed_s': self.elapsed,
            'rate_per_s': self.rate,
        }


def _seconds(period: Period) -> float:
    if isinstance(period, timedelta):
        period = period.total_seconds()
    if period < 0:
        raise ValueError(f"Period must be >= 0, got {period}")
    return float(period)


class _Pacer:
    """Deadline bookkeeping shared by the run_paced* functions."""

    def __init__(self, period: float, clock: Callable[[], float], sleep: Callable[[float], None]):
        self.period = period
        self.clock = clock
        self.sleep = sleep
        self.stats = PacingStats()
        self.start = clock()
        self.deadline = self.start + period

    def wait(self) -> None:
        self.stats.items += 1
        remaining = self.deadline - self.clock()
        if remaining > 0:
            self.sleep(remaining)
        elif remaining < 0:
            self.stats.overruns += 1
            self.stats.max_lag = max(self.stats.max_lag, -remaining)
        self.deadline += self.period

    def finish(self) -> PacingStats:
        self.stats.elapsed = self.clock() - self.start
        if self.stats.overruns:
            logger.debug(
                f"{self.stats.overruns}/{self.stats.items} items overran their "
                f"slot (worst {self.stats.max_lag * 1e3:.3f} ms)"
            )
        return self.stats


def run_paced(
    period: Period,
    items: Iterable[T],
    action: Callable[[T], object],
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PacingStats:
    """
    Apply action to each item, one item per period.

    Args:
        period: Seconds (or timedelta) between items
        items: Finite iterable of items
        action: Called once per item; an exception aborts the run
        clock: Monotonic clock in seconds
        sleep: Sleep function taking seconds

    Returns:
        PacingStats for the run

    Raises:
        Whatever action raises. Remaining items are not processed.
    """
    pacer = _Pacer(_seconds(period), clock, sleep)
    for item in items:
        action(item)
        pacer.wait()
    return pacer.finish()


def run_paced_while(
    period: Period,
    condition: Callable[[], bool],
    action: Callable[[], object],
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PacingStats:
    """Call action once per period for as long as condition() is true."""
    pacer = _Pacer(_seconds(period), clock, sleep)
    while condition():
        action()
        pacer.wait()
    return pacer.finish()
