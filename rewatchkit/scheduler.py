"""
Cooperative timer scheduling for ReWatchKit.

All tracker behaviour is driven by one-shot and repeating timers that run on
the caller's thread whenever ``run_due`` is pumped. Debouncing is done by
cancelling the pending timer and scheduling a new one.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Timer:
    """Handle for a scheduled callback."""

    __slots__ = ("due", "callback", "interval", "cancelled", "name")

    def __init__(self, due: float, callback: Callable[[], None],
                 interval: Optional[float] = None, name: str = ""):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.name = name

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else f"due={self.due:.3f}"
        return f"<Timer {self.name or self.callback!r} {state}>"


class Scheduler:
    """
    Single-threaded timer queue.

    Args:
        clock: Callable returning the current time in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue: List[Tuple[float, int, Timer]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "") -> Timer:
        if delay < 0:
            delay = 0.0
        timer = Timer(self.now() + delay, callback, name=name)
        self._push(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None], name: str = "") -> Timer:
        if interval <= 0:
            raise ValueError(f"Repeating timer interval must be positive, got {interval}")
        timer = Timer(self.now() + interval, callback, interval=interval, name=name)
        self._push(timer)
        return timer

    def cancel(self, timer: Optional[Timer]) -> None:
        if timer is not None:
            timer.cancelled = True

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def next_due(self) -> Optional[float]:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
        return self._queue[0][0] if self._queue else None

    def run_due(self) -> int:
        """
        Run every timer whose due time has passed.

        Returns:
            Number of callbacks invoked
        """
        ran = 0
        now = self.now()
        while self._queue and self._queue[0][0] <= now:
            _, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            if timer.interval is not None:
                timer.due += timer.interval
                self._push(timer)
            else:
                timer.cancelled = True
            ran += 1
            try:
                timer.callback()
            except Exception as e:
                logger.exception(f"Timer callback {timer!r} failed: {e}")
        return ran

    def clear(self) -> None:
        for _, _, timer in self._queue:
            timer.cancelled = True
        self._queue.clear()

    def _push(self, timer: Timer) -> None:
        heapq.heappush(self._queue, (timer.due, next(self._counter), timer))


class ManualScheduler(Scheduler):
    """
    Scheduler whose clock only moves when ``advance`` is called.

    Timers fire in chronological order, each seeing the clock at its own due
    time, which makes debounce windows easy to exercise in tests.

    Example:
        >>> scheduler = ManualScheduler()
        >>> fired = []
        >>> _ = scheduler.call_later(2.0, lambda: fired.append(scheduler.now()))
        >>> scheduler.advance(5.0)
        >>> fired
        [2.0]
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        super().__init__(clock=lambda: self._now)

    def advance(self, seconds: float) -> None:
        target = self._now + max(0.0, seconds)
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            self._now = max(self._now, due)
            self.run_due()
        self._now = target
