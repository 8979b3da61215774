# Area: Sync
"""
volley_live._sync.publisher — Throttled broadcast of engine state
=================================================================

Mirrors the engine's state to a BroadcastStore for remote viewers.

Flow:
1. ``start()`` creates the broadcast document and subscribes to the engine
2. Each engine change whose viewer-visible fields changed asks the
   throttle for a push; bursts collapse into one push per window
3. Pushes run on a single worker thread so the scorer never waits and
   pushes land in order; each carries an increasing revision
4. A ``completed`` status skips the throttle and is retried with backoff
5. ``stop()`` / ``finalize()`` end the broadcast

Push failures are never raised; the last one is kept in ``error``.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Optional

from ..errors import BroadcastAuthorizationError, BroadcastNetworkError
from .._engine.enums import BroadcastStatus
from .._engine.rally_engine import RallyEngine
from .snapshot import broadcast_fingerprint, build_snapshot
from .stores import BroadcastStore, StartResult
from .throttle import CoalescingThrottle, TimerFactory

logger = logging.getLogger("volley_live.sync.publisher")


class BroadcastPublisher:
    """Publishes one engine's match to one broadcast document."""

    def __init__(
        self,
        engine: RallyEngine,
        store: BroadcastStore,
        owner_id: Optional[str],
        window_seconds: float = 1.0,
        terminal_retry_attempts: int = 3,
        retry_base_delay: float = 0.5,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = engine
        self.store = store
        self.owner_id = owner_id
        self.terminal_retry_attempts = max(1, terminal_retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.match_code: Optional[str] = None
        self.error: Optional[str] = None

        self._throttle = CoalescingThrottle(
            window_seconds, self._push_latest,
            timer_factory=timer_factory, clock=clock, name="publisher",
        )
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="volley-push"
        )
        self._sleep = sleep
        self._lock = threading.Lock()
        self._revision = 0
        self._broadcasting = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._last_fingerprint: Optional[tuple] = None
        self._completed_pushed = False

    @property
    def is_broadcasting(self) -> bool:
        return self._broadcasting

    @property
    def revision(self) -> int:
        return self._revision

    def _next_revision(self) -> int:
        with self._lock:
            self._revision += 1
            return self._revision

    # ── Lifecycle ────────────────────────────────────────────

    def start(self) -> StartResult:
        """Create the broadcast. Returns a failure result rather than raising."""
        if self._broadcasting:
            return StartResult(True, code=self.match_code)
        if not self.owner_id:
            self.error = str(BroadcastAuthorizationError())
            logger.warning("Broadcast not started: %s", self.error)
            return StartResult(False, error=self.error)

        self.error = None
        self._completed_pushed = False
        with self.engine.lock:
            state = self.engine.state
            status = self.engine.broadcast_status()
            snapshot = build_snapshot(state, status, self._next_revision())
            fingerprint = broadcast_fingerprint(state, status)
            match_id = state.match_id

        try:
            result = self.store.start(self.owner_id, match_id, snapshot)
        except Exception as exc:
            self.error = str(BroadcastNetworkError("start", None, str(exc)))
            logger.error("Broadcast start failed: %s", self.error)
            return StartResult(False, error=self.error)

        if not result.success:
            self.error = result.error or "Failed to start sharing"
            logger.error("Broadcast start rejected: %s", self.error)
            return result

        self.match_code = result.code
        self._broadcasting = True
        self._last_fingerprint = fingerprint
        self._throttle.mark_fired()
        self._unsubscribe = self.engine.subscribe(self._on_engine_change)
        logger.info("Broadcasting match %s as %s", match_id, self.match_code)
        return result

    def stop(self) -> None:
        """End the broadcast, leaving the document in place but inactive."""
        self._throttle.cancel()
        code = self._end()
        if code is None:
            return
        self._executor.submit(self._do_stop, code).result()

    def finalize(self) -> bool:
        """Push the final ``completed`` state and end the broadcast."""
        if not self._broadcasting:
            return False
        self._throttle.cancel()
        ok = self._executor.submit(
            self._do_push, BroadcastStatus.COMPLETED, True
        ).result()
        self._end()
        return ok

    def close(self) -> None:
        if self._broadcasting:
            self.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def _end(self) -> Optional[str]:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        code = self.match_code
        self._broadcasting = False
        self.match_code = None
        return code

    # ── Change handling ──────────────────────────────────────

    def _on_engine_change(self, state) -> None:
        if not self._broadcasting:
            return
        status = self.engine.broadcast_status()
        fingerprint = broadcast_fingerprint(state, status)
        if fingerprint == self._last_fingerprint:
            return
        self._last_fingerprint = fingerprint

        if status is BroadcastStatus.COMPLETED:
            self._throttle.cancel()
            self._executor.submit(self._do_push, BroadcastStatus.COMPLETED, True)
            return
        self._throttle.request()

    def _push_latest(self) -> None:
        self._executor.submit(self._do_push)

    def _do_push(
        self, status: Optional[BroadcastStatus] = None, terminal: bool = False
    ) -> bool:
        code = self.match_code
        if code is None:
            return False
        if terminal and self._completed_pushed:
            return True
        with self.engine.lock:
            status = status or self.engine.broadcast_status()
            snapshot = build_snapshot(self.engine.state, status, self._next_revision())

        attempts = self.terminal_retry_attempts if terminal else 1
        for attempt in range(1, attempts + 1):
            try:
                result = self.store.update(code, self.owner_id, snapshot, status)
                reason = None if result.success else (result.error or "Push failed")
            except Exception as exc:
                reason = str(exc)

            if reason is None:
                self.error = None
                if status is BroadcastStatus.COMPLETED:
                    self._completed_pushed = True
                logger.debug("Pushed revision %d (%s)", snapshot["revision"], status.value)
                return True

            self.error = str(BroadcastNetworkError("update", code, reason))
            logger.warning("Push failed (attempt %d/%d): %s", attempt, attempts, self.error)
            if attempt < attempts:
                self._sleep(self.retry_base_delay * 2 ** (attempt - 1))

        # Any later change, even one viewers would not see, retries
        self._last_fingerprint = None
        return False

    def _do_stop(self, code: str) -> None:
        try:
            self.store.stop(code, self.owner_id)
        except Exception as exc:
            self.error = str(BroadcastNetworkError("stop", code, str(exc)))
            logger.warning("Broadcast stop failed: %s", self.error)
