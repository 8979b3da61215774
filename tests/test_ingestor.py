# Area: Sync Tests
"""Tests for the viewer interactions feed: coalescing, alert dedupe and mute."""

from unittest.mock import Mock

import pytest

from volley_live._sync.ingestor import InteractionIngestor, ViewerAlert
from volley_live._sync.stores import InMemoryInteractionsStore

CODE = "ABC234"


@pytest.fixture
def store(clock):
    return InMemoryInteractionsStore(clock=clock)


@pytest.fixture
def received():
    return []


@pytest.fixture
def ingestor(store, clock, timers, received):
    return InteractionIngestor(
        store, window_seconds=5.0, on_alerts=received.extend,
        timer_factory=timers, clock=clock,
    )


class TestPresence:
    """Viewer count and cheers follow the latest processed document."""

    def test_initial_document_processed_on_start(self, store, ingestor):
        store.register_viewer(CODE, "device-1", "Grandma")
        store.send_cheer(CODE)
        ingestor.start(CODE)
        assert ingestor.viewer_count == 1
        assert ingestor.viewers["device-1"].name == "Grandma"
        assert ingestor.cheer_count == 1

    def test_updates_coalesce_within_window(self, store, ingestor, clock, timers):
        ingestor.start(CODE)
        for n in range(3):
            clock.advance(0.5)
            store.register_viewer(CODE, f"device-{n}")
        assert ingestor.viewer_count == 0

        timers.advance(5.0)
        assert ingestor.viewer_count == 3

    def test_unregister_reduces_count(self, store, ingestor, clock, timers):
        store.register_viewer(CODE, "device-1")
        store.register_viewer(CODE, "device-2")
        ingestor.start(CODE)
        store.unregister_viewer(CODE, "device-2")
        timers.advance(5.0)
        assert ingestor.viewer_count == 1

    def test_stop_drops_pending_document(self, store, ingestor, timers):
        ingestor.start(CODE)
        store.send_cheer(CODE)
        ingestor.stop()
        timers.advance(10.0)
        assert ingestor.cheer_count == 0
        store.send_cheer(CODE)
        timers.advance(10.0)
        assert ingestor.cheer_count == 0


class TestAlerts:
    """Each unacknowledged alert surfaces once; muted alerts are dropped."""

    def test_new_alert_surfaces_once(self, store, ingestor, clock, timers, received):
        ingestor.start(CODE)
        clock.advance(1.0)
        store.send_alert(CODE, "device-1", "Grandma", {"myTeam": 10, "opponent": 8}, 1)
        timers.advance(5.0)
        assert [a.sender_name for a in received] == ["Grandma"]
        assert received[0].suggested_score.my_team == 10

        # Another document carrying the same alert does not repeat it
        store.send_cheer(CODE)
        timers.advance(5.0)
        assert len(received) == 1
        assert len(ingestor.pending_alerts) == 1

    def test_muted_alerts_are_dropped_for_good(self, store, ingestor, clock, timers, received):
        ingestor.set_alerts_enabled(False)
        ingestor.start(CODE)
        clock.advance(1.0)
        store.send_alert(CODE, "device-1", message="wrong score")
        timers.advance(5.0)
        assert received == []

        ingestor.set_alerts_enabled(True)
        store.send_cheer(CODE)
        timers.advance(5.0)
        assert received == []
        assert ingestor.pending_alerts == []

    def test_acknowledged_alerts_are_ignored(self, store, ingestor, received):
        alert = store.send_alert(CODE, "device-1")
        store.acknowledge(CODE, [alert])
        ingestor.start(CODE)
        assert received == []

    def test_dismiss_all_acknowledges_in_store(self, store, ingestor, clock, timers):
        store.send_alert(CODE, "device-1")
        clock.advance(1.0)
        store.send_alert(CODE, "device-2")
        ingestor.start(CODE)
        assert len(ingestor.pending_alerts) == 2

        ingestor.dismiss_all()
        assert ingestor.pending_alerts == []
        seen = []
        store.subscribe_interactions(CODE, seen.append, Mock())
        assert all(a["acknowledged"] for a in seen[0]["spectatorAlerts"])

    def test_dismiss_single_alert(self, store, ingestor, clock):
        first = store.send_alert(CODE, "device-1")
        clock.advance(1.0)
        store.send_alert(CODE, "device-2")
        ingestor.start(CODE)
        ingestor.dismiss_alert(first["id"])
        assert [a.sender_device_id for a in ingestor.pending_alerts] == ["device-2"]

    def test_dismiss_all_failure_is_captured(self, clock, timers):
        store = Mock()
        store.acknowledge.side_effect = ConnectionError("offline")
        ingestor = InteractionIngestor(store, timer_factory=timers, clock=clock)
        ingestor.start(CODE)
        ingestor.pending_alerts = [ViewerAlert(id="a1")]
        ingestor.dismiss_all()
        assert "offline" in ingestor.error
        assert ingestor.pending_alerts == []


class TestMalformedInput:
    def test_malformed_document_sets_error(self, clock, timers):
        store = Mock()
        ingestor = InteractionIngestor(store, timer_factory=timers, clock=clock)
        ingestor.start(CODE)
        on_data = store.subscribe_interactions.call_args[0][1]
        on_data({"spectators": "not-a-map", "cheerCount": "many"})
        assert ingestor.error.startswith("Malformed interactions document")
        assert ingestor.viewer_count == 0

    def test_subscription_error_is_captured(self, clock, timers):
        store = Mock()
        ingestor = InteractionIngestor(store, timer_factory=timers, clock=clock)
        ingestor.start(CODE)
        on_error = store.subscribe_interactions.call_args[0][2]
        on_error("permission denied")
        assert "permission denied" in ingestor.error
