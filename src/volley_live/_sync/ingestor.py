# Area: Sync
"""
volley_live._sync.ingestor — Viewer interactions feed
=====================================================

Streams the viewer-written interactions document back to the scorer:
presence, viewer count, cheers and score-correction alerts.

Incoming documents are coalesced; only the latest one is processed, at
most once per window. Each alert is surfaced at most once; when alerts
are muted they are marked seen and dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import BroadcastNetworkError
from .stores import InteractionsStore
from .throttle import CoalescingThrottle, TimerFactory

logger = logging.getLogger("volley_live.sync.ingestor")


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SuggestedScore(_WireModel):
    my_team: int = 0
    opponent: int = 0


class ViewerPresence(_WireModel):
    device_id: str
    name: str = "Fan"
    cheering_for: List[str] = Field(default_factory=list)
    joined_at: int = 0
    last_seen: int = 0


class ViewerAlert(_WireModel):
    id: str
    type: str = "score_correction"
    sender_device_id: str = ""
    sender_name: str = ""
    timestamp: int = 0
    suggested_score: Optional[SuggestedScore] = None
    current_set: Optional[int] = None
    message: Optional[str] = None
    acknowledged: bool = False


class InteractionsDocument(_WireModel):
    spectators: Dict[str, ViewerPresence] = Field(default_factory=dict)
    spectator_alerts: List[ViewerAlert] = Field(default_factory=list)
    cheer_count: int = 0
    last_cheer_at: Optional[int] = None


class InteractionIngestor:
    """Coach-side consumer of one match's interactions document."""

    def __init__(
        self,
        store: InteractionsStore,
        window_seconds: float = 5.0,
        alerts_enabled: bool = True,
        on_alerts: Optional[Callable[[List[ViewerAlert]], None]] = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.alerts_enabled = alerts_enabled
        self.on_alerts = on_alerts
        self.match_code: Optional[str] = None
        self.error: Optional[str] = None

        self.viewers: Dict[str, ViewerPresence] = {}
        self.viewer_count = 0
        self.cheer_count = 0
        self.pending_alerts: List[ViewerAlert] = []

        self._seen_alert_ids: set = set()
        self._latest: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._throttle = CoalescingThrottle(
            window_seconds, self._process_latest,
            timer_factory=timer_factory, clock=clock, name="ingestor",
        )

    def start(self, match_code: str) -> None:
        if self._unsubscribe is not None:
            self.stop()
        self.match_code = match_code
        self._unsubscribe = self.store.subscribe_interactions(
            match_code, self._on_data, self._on_error
        )
        logger.info("Listening for viewer interactions on %s", match_code)

    def stop(self) -> None:
        """Drop pending processing, then unsubscribe."""
        self._throttle.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._latest = None

    # ── Incoming ─────────────────────────────────────────────

    def _on_data(self, document: Dict[str, Any]) -> None:
        with self._lock:
            self._latest = document
        self._throttle.request()

    def _on_error(self, message: str) -> None:
        self.error = str(BroadcastNetworkError("subscribe", self.match_code, message))
        logger.warning("Interactions feed error: %s", self.error)

    def _process_latest(self) -> None:
        with self._lock:
            raw, self._latest = self._latest, None
        if raw is None:
            return
        try:
            document = InteractionsDocument.model_validate(raw)
        except ValidationError as exc:
            self.error = f"Malformed interactions document: {exc.error_count()} error(s)"
            logger.warning(self.error)
            return
        self.error = None
        self._apply(document)

    def _apply(self, document: InteractionsDocument) -> None:
        self.viewers = dict(document.spectators)
        self.viewer_count = len(self.viewers)
        self.cheer_count = document.cheer_count

        fresh = [
            alert for alert in document.spectator_alerts
            if not alert.acknowledged and alert.id not in self._seen_alert_ids
        ]
        if not fresh:
            return
        self._seen_alert_ids.update(alert.id for alert in fresh)
        if not self.alerts_enabled:
            logger.debug("Dropped %d alert(s) while muted", len(fresh))
            return

        self.pending_alerts.extend(fresh)
        logger.info("%d new viewer alert(s)", len(fresh))
        if self.on_alerts is not None:
            self.on_alerts(fresh)

    # ── Coach actions ────────────────────────────────────────

    def set_alerts_enabled(self, enabled: bool) -> None:
        self.alerts_enabled = enabled

    def dismiss_alert(self, alert_id: str) -> None:
        self.pending_alerts = [a for a in self.pending_alerts if a.id != alert_id]

    def dismiss_all(self) -> None:
        """Clear pending alerts and mark them acknowledged in the store (best-effort)."""
        alerts, self.pending_alerts = self.pending_alerts, []
        if not alerts or self.match_code is None:
            return
        try:
            self.store.acknowledge(
                self.match_code, [a.model_dump(by_alias=True) for a in alerts]
            )
        except Exception as exc:
            self.error = str(BroadcastNetworkError("acknowledge", self.match_code, str(exc)))
            logger.warning("Acknowledge failed: %s", self.error)
