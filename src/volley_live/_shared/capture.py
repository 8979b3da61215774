# Area: Shared
"""
volley_live._shared.capture — Voice capture safety timeout
==========================================================

Wraps an externally driven capture (speech-to-text runs elsewhere) with
a wall-clock cap. When the cap expires the capture is force-stopped and
whatever transcript was collected is handed downstream. The hand-off
happens exactly once, whether the capture ends by timeout, by an
explicit stop, or both.

Uses ``threading.Timer`` rather than SIGALRM so it works off the main
thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

logger = logging.getLogger("volley_live.capture")

DEFAULT_MAX_SECONDS = 30.0


class CaptureSession:
    """
    One capture with a forced stop after ``max_seconds``.

    Usable as a context manager: entering starts the timer, leaving
    stops the capture if it is still running.
    """

    def __init__(
        self,
        on_complete: Callable[[str], None],
        max_seconds: float = DEFAULT_MAX_SECONDS,
        on_force_stop: Optional[Callable[[], None]] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self.max_seconds = max_seconds
        self._on_complete = on_complete
        self._on_force_stop = on_force_stop
        self._timer_factory = timer_factory
        self._timer: Optional[Any] = None
        self._fragments: List[str] = []
        self._lock = threading.Lock()
        self._started = False
        self._finished = False
        self.timed_out = False

    @property
    def transcript(self) -> str:
        with self._lock:
            return " ".join(f for f in self._fragments if f).strip()

    @property
    def is_active(self) -> bool:
        return self._started and not self._finished

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
            timer = self._timer_factory(self.max_seconds, self._expire)
            timer.daemon = True
            self._timer = timer
        timer.start()
        logger.debug("Capture started (max %.0fs)", self.max_seconds)

    def add_fragment(self, text: str) -> None:
        """Append recognised text. Ignored once the capture has ended."""
        with self._lock:
            if not self._finished:
                self._fragments.append(text.strip())

    def replace_transcript(self, text: str) -> None:
        """Replace all fragments with a recogniser's running full transcript."""
        with self._lock:
            if not self._finished:
                self._fragments = [text.strip()]

    def stop(self) -> bool:
        """End the capture and hand off the transcript. Returns False if already ended."""
        return self._finish(timed_out=False)

    def _expire(self) -> None:
        logger.info("Capture hit the %.0fs limit; forcing stop", self.max_seconds)
        if self._on_force_stop is not None:
            self._on_force_stop()
        self._finish(timed_out=True)

    def _finish(self, timed_out: bool) -> bool:
        with self._lock:
            if self._finished:
                return False
            self._finished = True
            self.timed_out = timed_out
            timer, self._timer = self._timer, None
            transcript = " ".join(f for f in self._fragments if f).strip()
        if timer is not None and not timed_out:
            timer.cancel()
        self._on_complete(transcript)
        return True

    def __enter__(self) -> "CaptureSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False  # Don't suppress exceptions
