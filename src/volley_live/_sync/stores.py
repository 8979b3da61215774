# Area: Sync
"""
volley_live._sync.stores — Shared store interfaces and in-memory stores
=======================================================================

The broadcast document (written only by the scorer) and the
interactions document (written only by viewers) are separate, so the
two sides never contend for the same record.

The in-memory implementations deliver subscription callbacks
synchronously on the writer's thread. They back the demo CLI and the
test suite.
"""

from __future__ import annotations

import copy
import logging
import random
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .._engine.enums import BroadcastStatus

logger = logging.getLogger("volley_live.sync.stores")

# Excludes the look-alikes 0/O and 1/I/L
CODE_CHARS = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5
MAX_ALERTS = 20
STALE_THRESHOLD_SECONDS = 2 * 60 * 60

_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")

SnapshotCallback = Callable[[Dict[str, Any]], None]
ErrorCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class StartResult:
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class UpdateResult:
    success: bool
    error: Optional[str] = None


class BroadcastStore(Protocol):
    """Shared store holding one broadcast document per match code."""

    def start(self, owner_id: str, match_id: str, initial_state: Dict[str, Any]) -> StartResult: ...

    def update(
        self, code: str, owner_id: str, state: Dict[str, Any], status: BroadcastStatus
    ) -> UpdateResult: ...

    def stop(self, code: str, owner_id: str) -> None: ...

    def subscribe(
        self, code: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe: ...


class InteractionsStore(Protocol):
    """Shared store holding the viewer-written interactions document."""

    def subscribe_interactions(
        self, code: str, on_data: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe: ...

    def acknowledge(self, code: str, alerts: List[Dict[str, Any]]) -> None: ...


def generate_match_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(CODE_CHARS) for _ in range(CODE_LENGTH))


def is_valid_match_code(code: str) -> bool:
    return bool(_CODE_PATTERN.match(code or ""))


def _empty_interactions() -> Dict[str, Any]:
    return {
        "spectators": {},
        "spectatorCount": 0,
        "spectatorAlerts": [],
        "cheerCount": 0,
        "lastCheerAt": None,
    }


class _Subscribers:
    """Per-code callback registry shared by the in-memory stores."""

    def __init__(self) -> None:
        self._by_code: Dict[str, List[Tuple[SnapshotCallback, ErrorCallback]]] = {}

    def add(self, code: str, on_data: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        pair = (on_data, on_error)
        self._by_code.setdefault(code, []).append(pair)

        def unsubscribe() -> None:
            listeners = self._by_code.get(code, [])
            if pair in listeners:
                listeners.remove(pair)

        return unsubscribe

    def publish(self, code: str, document: Dict[str, Any]) -> None:
        for on_data, _ in list(self._by_code.get(code, [])):
            on_data(copy.deepcopy(document))

    def fail(self, code: str, message: str) -> None:
        for _, on_error in list(self._by_code.get(code, [])):
            on_error(message)


class InMemoryBroadcastStore:
    """BroadcastStore kept in a dict, with owner checks and stale-revision guard."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._subscribers = _Subscribers()
        self._lock = threading.RLock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def start(self, owner_id: str, match_id: str, initial_state: Dict[str, Any]) -> StartResult:
        if not owner_id:
            return StartResult(False, error="Sign in to share your match")
        with self._lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_match_code(self._rng)
                if code not in self._docs:
                    break
                logger.debug("Match code collision on %s", code)
            else:
                return StartResult(False, error="Could not generate unique match code")

            now = self._now_ms()
            self._docs[code] = {
                "matchCode": code,
                "coachUid": owner_id,
                "matchId": match_id,
                "isActive": True,
                "createdAt": now,
                "lastUpdated": now,
                "currentState": copy.deepcopy(initial_state),
            }
            logger.info("Broadcast %s started for match %s", code, match_id)
            self._subscribers.publish(code, self._docs[code])
        return StartResult(True, code=code)

    def update(
        self, code: str, owner_id: str, state: Dict[str, Any], status: BroadcastStatus
    ) -> UpdateResult:
        with self._lock:
            doc = self._docs.get(code)
            if doc is None:
                return UpdateResult(False, error="Match not found")
            if doc["coachUid"] != owner_id:
                return UpdateResult(False, error="Not authorized to update this match")

            stored = doc["currentState"].get("revision")
            incoming = state.get("revision")
            if stored is not None and incoming is not None and incoming < stored:
                logger.debug("Ignoring stale revision %s < %s on %s", incoming, stored, code)
                return UpdateResult(True)

            current = copy.deepcopy(state)
            current["status"] = status.value
            doc["currentState"] = current
            doc["isActive"] = status is not BroadcastStatus.COMPLETED
            doc["lastUpdated"] = self._now_ms()
            self._subscribers.publish(code, doc)
        return UpdateResult(True)

    def stop(self, code: str, owner_id: str) -> None:
        with self._lock:
            doc = self._docs.get(code)
            if doc is None or doc["coachUid"] != owner_id:
                return
            doc["isActive"] = False
            self._subscribers.publish(code, doc)
        logger.info("Broadcast %s stopped", code)

    def subscribe(
        self, code: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe:
        with self._lock:
            unsubscribe = self._subscribers.add(code, on_snapshot, on_error)
            doc = self._docs.get(code)
        if doc is None:
            on_error("Match not found")
        else:
            on_snapshot(copy.deepcopy(doc))
        return unsubscribe

    def get(self, code: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(code)
            return copy.deepcopy(doc) if doc is not None else None

    def cleanup_stale_broadcasts(self, owner_id: str) -> int:
        """Deactivate this owner's active broadcasts idle for over two hours."""
        cutoff = self._now_ms() - STALE_THRESHOLD_SECONDS * 1000
        cleaned = 0
        with self._lock:
            for code, doc in self._docs.items():
                if doc["coachUid"] == owner_id and doc["isActive"] and doc["lastUpdated"] < cutoff:
                    doc["isActive"] = False
                    cleaned += 1
                    self._subscribers.publish(code, doc)
        return cleaned


class InMemoryInteractionsStore:
    """
    InteractionsStore kept in a dict.

    Also carries the viewer-side writers so a demo or test can play
    the part of the audience.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._subscribers = _Subscribers()
        self._lock = threading.RLock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _doc(self, code: str) -> Dict[str, Any]:
        return self._docs.setdefault(code, _empty_interactions())

    def subscribe_interactions(
        self, code: str, on_data: SnapshotCallback, on_error: ErrorCallback
    ) -> Unsubscribe:
        with self._lock:
            unsubscribe = self._subscribers.add(code, on_data, on_error)
            doc = copy.deepcopy(self._docs.get(code) or _empty_interactions())
        on_data(doc)
        return unsubscribe

    def acknowledge(self, code: str, alerts: List[Dict[str, Any]]) -> None:
        ids = {alert.get("id") for alert in alerts}
        with self._lock:
            doc = self._doc(code)
            doc["spectatorAlerts"] = [
                dict(alert, acknowledged=True) if alert.get("id") in ids else alert
                for alert in doc["spectatorAlerts"]
            ]
            self._subscribers.publish(code, doc)

    # ── Viewer-side writers ──────────────────────────────────

    def register_viewer(
        self, code: str, device_id: str, name: str = "", cheering_for: Optional[List[str]] = None
    ) -> None:
        now = self._now_ms()
        with self._lock:
            doc = self._doc(code)
            if device_id not in doc["spectators"]:
                doc["spectatorCount"] += 1
            doc["spectators"][device_id] = {
                "deviceId": device_id,
                "name": name or "Fan",
                "cheeringFor": list(cheering_for or []),
                "joinedAt": now,
                "lastSeen": now,
            }
            self._subscribers.publish(code, doc)

    def touch_viewer(self, code: str, device_id: str) -> None:
        with self._lock:
            viewer = self._doc(code)["spectators"].get(device_id)
            if viewer is not None:
                viewer["lastSeen"] = self._now_ms()

    def unregister_viewer(self, code: str, device_id: str) -> None:
        with self._lock:
            doc = self._doc(code)
            if doc["spectators"].pop(device_id, None) is not None:
                doc["spectatorCount"] = max(0, doc["spectatorCount"] - 1)
                self._subscribers.publish(code, doc)

    def send_alert(
        self,
        code: str,
        sender_device_id: str,
        sender_name: str = "",
        suggested_score: Optional[Dict[str, int]] = None,
        current_set: Optional[int] = None,
        message: Optional[str] = None,
        alert_type: str = "score_correction",
    ) -> Dict[str, Any]:
        now = self._now_ms()
        alert = {
            "id": f"alert_{now}_{sender_device_id[:6]}",
            "type": alert_type,
            "senderDeviceId": sender_device_id,
            "senderName": sender_name or "A spectator",
            "timestamp": now,
            "suggestedScore": suggested_score,
            "currentSet": current_set,
            "message": message,
            "acknowledged": False,
        }
        with self._lock:
            doc = self._doc(code)
            doc["spectatorAlerts"] = (doc["spectatorAlerts"] + [alert])[-MAX_ALERTS:]
            self._subscribers.publish(code, doc)
        return alert

    def send_cheer(self, code: str) -> None:
        with self._lock:
            doc = self._doc(code)
            doc["cheerCount"] += 1
            doc["lastCheerAt"] = self._now_ms()
            self._subscribers.publish(code, doc)
