# Area: Scorer
"""
volley_live.scorer — Scorer session wiring
==========================================

ScorerSession assembles one scorer device: the engine, its persistence,
the broadcast publisher, the viewer interactions feed, and the voice
path (capture -> producer -> batch commit).

The engine state is saved after every change, so a restarted session
can ``resume()`` where it left off.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor
from typing import Any, Callable, Dict, List, Optional

from ._engine.batch_committer import ActionBatchCommitter
from ._engine.enums import BroadcastStatus
from ._engine.match_record import MatchRecord, MatchRecordSink
from ._engine.rally_engine import RallyEngine
from ._engine.state import LineupSlot, MatchConfig, MatchState, Player
from ._shared.capture import CaptureSession
from ._shared.logging_config import log_batch_error
from ._sync.ingestor import InteractionIngestor
from ._sync.publisher import BroadcastPublisher
from ._sync.stores import (
    BroadcastStore,
    InMemoryBroadcastStore,
    InMemoryInteractionsStore,
    InteractionsStore,
    StartResult,
)
from ._sync.throttle import TimerFactory
from .config import DEFAULTS, resolve_preset
from .errors import BatchCommitError
from .persistence import (
    DEFAULT_STATE_KEY,
    MatchStateStore,
    SqliteMatchRecordRepository,
    SqliteMatchStateStore,
)
from .producers import ActionProducer, KeywordActionProducer, ParseContext

logger = logging.getLogger("volley_live.scorer")


class ScorerSession:
    """
    One scorer device.

    Every collaborator is injectable; anything omitted falls back to
    the SQLite stores at ``config["db_path"]`` and in-memory broadcast
    stores.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        state_store: Optional[MatchStateStore] = None,
        record_sink: Optional[MatchRecordSink] = None,
        broadcast_store: Optional[BroadcastStore] = None,
        interactions_store: Optional[InteractionsStore] = None,
        producer: Optional[ActionProducer] = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
        state_key: str = DEFAULT_STATE_KEY,
    ) -> None:
        self.config = dict(DEFAULTS)
        self.config.update(config or {})
        self.state_key = state_key

        db_path = self.config["db_path"]
        self.state_store = state_store or SqliteMatchStateStore(db_path)
        self.record_sink = record_sink or SqliteMatchRecordRepository(db_path)
        self.engine = RallyEngine(record_sink=self.record_sink)
        self.committer = ActionBatchCommitter(self.engine)
        self.producer = producer or KeywordActionProducer()
        self._timer_factory = timer_factory

        self.publisher = BroadcastPublisher(
            self.engine,
            broadcast_store or InMemoryBroadcastStore(),
            self.config.get("owner_id"),
            window_seconds=self.config["push_window_seconds"],
            terminal_retry_attempts=self.config["terminal_retry_attempts"],
            timer_factory=timer_factory,
            clock=clock,
            executor=executor,
        )
        self.ingestor = InteractionIngestor(
            interactions_store or InMemoryInteractionsStore(),
            window_seconds=self.config["interactions_window_seconds"],
            alerts_enabled=self.config["alerts_enabled"],
            timer_factory=timer_factory,
            clock=clock,
        )
        self.last_capture_error: Optional[BatchCommitError] = None
        self._unsubscribe_autosave = self.engine.subscribe(self._autosave)

    # ── Match lifecycle ──────────────────────────────────────

    def new_match(
        self,
        my_team_name: str,
        opponent_name: str,
        config: Optional[MatchConfig] = None,
        lineups: Optional[Dict[int, List[LineupSlot]]] = None,
        roster: Optional[List[Player]] = None,
        **kwargs: Any,
    ) -> MatchState:
        return self.engine.new_match(
            my_team_name,
            opponent_name,
            config=config or resolve_preset(self.config),
            lineups=lineups,
            roster=roster,
            **kwargs,
        )

    def resume(self) -> bool:
        """Load the saved live match, if any. Returns True when one was restored."""
        state = self.state_store.load(self.state_key)
        if state is None:
            return False
        self.engine.load_state(state)
        return True

    def _autosave(self, state: MatchState) -> None:
        self.state_store.save(self.state_key, state)

    def end_set(self) -> Optional[MatchRecord]:
        """
        Close the current set. When that decides the match, the match
        is finalized, the broadcast completed, and the record returned.
        """
        record = self.engine.start_next_set()
        if self.engine.state.status is BroadcastStatus.COMPLETED:
            self._finish_broadcast()
        return record

    def finalize(self) -> Optional[MatchRecord]:
        record = self.engine.finalize_match()
        self._finish_broadcast()
        return record

    # ── Broadcast ────────────────────────────────────────────

    def start_broadcast(self) -> StartResult:
        result = self.publisher.start()
        if result.success and result.code:
            self.ingestor.start(result.code)
        return result

    def stop_broadcast(self) -> None:
        self.ingestor.stop()
        self.publisher.stop()

    def _finish_broadcast(self) -> None:
        if self.publisher.is_broadcasting:
            self.ingestor.stop()
            self.publisher.finalize()

    # ── Voice path ───────────────────────────────────────────

    def commit_transcript(self, transcript: str) -> int:
        """
        Parse *transcript* and apply the resulting actions atomically.

        Raises:
            BatchCommitError: an action failed; nothing was applied
        """
        actions = self.producer.parse(transcript, ParseContext.from_state(self.engine.state))
        if not actions:
            logger.info("No actions recognised in %r", transcript)
            return 0
        try:
            return self.committer.commit(actions)
        except BatchCommitError as e:
            log_batch_error(e)
            raise

    def capture(self) -> CaptureSession:
        """A capture whose transcript is committed when it ends or times out."""
        return CaptureSession(
            on_complete=self._on_capture_complete,
            max_seconds=self.config["voice_capture_max_seconds"],
            timer_factory=self._timer_factory,
        )

    def _on_capture_complete(self, transcript: str) -> None:
        if not transcript:
            return
        try:
            self.commit_transcript(transcript)
            self.last_capture_error = None
        except BatchCommitError as e:
            # Already logged; the scorer sees it on the next poll
            self.last_capture_error = e

    def close(self) -> None:
        if self.publisher.is_broadcasting:
            self.stop_broadcast()
        self.publisher.close()
        self._unsubscribe_autosave()
