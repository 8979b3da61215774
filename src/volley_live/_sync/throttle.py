# Area: Sync
"""
volley_live._sync.throttle — Leading-edge coalescing throttle
=============================================================

Runs an action at most once per window. A request arriving inside the
window schedules one deferred run at the window's end, replacing any
run already pending, so the action always sees the latest state and a
burst of requests collapses into a single run.

Timer and clock are injectable so tests can drive time by hand.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger("volley_live.sync.throttle")

TimerFactory = Callable[..., Any]


class CoalescingThrottle:
    """
    Throttles calls to ``action`` to one per ``window_seconds``.

    ``timer_factory`` must accept ``(interval, function, args=...)`` and
    return an object with ``start()`` and ``cancel()``; the default is
    ``threading.Timer``.
    """

    def __init__(
        self,
        window_seconds: float,
        action: Callable[[], None],
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
        name: str = "throttle",
    ) -> None:
        self.window_seconds = window_seconds
        self.name = name
        self._action = action
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._generation = 0
        self._last_fired: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def last_fired(self) -> Optional[float]:
        return self._last_fired

    def mark_fired(self) -> None:
        """Treat *now* as the last run, so the next request opens a fresh window."""
        with self._lock:
            self._last_fired = self._clock()

    def request(self) -> bool:
        """
        Ask for the action to run.

        Returns True when it ran immediately, False when a deferred run
        was scheduled.
        """
        with self._lock:
            now = self._clock()
            self._cancel_locked()
            if self._last_fired is None or now - self._last_fired >= self.window_seconds:
                self._last_fired = now
                run_now = True
            else:
                delay = self.window_seconds - (now - self._last_fired)
                timer = self._timer_factory(delay, self._on_timer, args=(self._generation,))
                timer.daemon = True
                self._timer = timer
                timer.start()
                logger.debug("%s: deferred %.3fs", self.name, delay)
                run_now = False
        if run_now:
            self._action()
        return run_now

    def flush(self) -> None:
        """Drop any pending run and run the action now."""
        with self._lock:
            self._cancel_locked()
            self._last_fired = self._clock()
        self._action()

    def cancel(self) -> None:
        """Drop any pending run. No-op if none."""
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug("%s: pending run cancelled", self.name)

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._last_fired = self._clock()
        self._action()
