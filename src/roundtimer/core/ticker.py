"""Tick sources -- deliver one callback per second to the engine."""

from __future__ import annotations

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class Ticker:
    """A repeating 1-second tick source.

    Subclasses decide *when* ticks happen; this base class only tracks the
    subscribed callback.  ``stop()`` is synchronous: once it returns, no
    further tick is delivered.
    """

    def __init__(self) -> None:
        self._callback: TickCallback | None = None

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        """Begin delivering ticks to *callback*, replacing any previous one."""
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def _fire(self) -> None:
        callback = self._callback
        if callback is not None:
            callback()


class ManualTicker(Ticker):
    """A ticker driven explicitly by the caller, for tests and simulations."""

    def advance(self, seconds: int = 1) -> int:
        """Deliver up to *seconds* ticks; return how many were delivered.

        Stops early once the ticker is stopped, e.g. when the run completes
        or a tick pauses it.
        """
        delivered = 0
        for _ in range(seconds):
            if not self.running:
                break
            self._fire()
            delivered += 1
        return delivered


class MonotonicTicker(Ticker):
    """Blocking wall-time ticker using ``time.monotonic()`` deadlines.

    Deadlines are computed from the start of the loop rather than from the
    previous tick, so slow callbacks do not make the timer drift.
    """

    def __init__(
        self,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__()
        self._interval = interval
        self._clock = clock
        self._sleep = sleep

    def run(self, until: Callable[[], bool]) -> None:
        """Tick on the calling thread until *until()* returns true."""
        next_deadline = self._clock() + self._interval
        while not until():
            delay = next_deadline - self._clock()
            if delay > 0:
                self._sleep(delay)
            if self.running:
                self._fire()
            else:
                # Re-anchor while idle so a resumed timer gets a full second.
                next_deadline = self._clock()
            next_deadline += self._interval
        logger.debug("Ticker loop finished")
