# Area: Sync Tests
"""Tests for BroadcastPublisher throttling, terminal pushes and failures."""

import pytest

from volley_live._engine.enums import BroadcastStatus, Team
from volley_live._sync.publisher import BroadcastPublisher
from volley_live._sync.stores import InMemoryBroadcastStore, UpdateResult


class RecordingStore(InMemoryBroadcastStore):
    """In-memory store that records every update and can be told to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.updates = []
        self.stops = []
        self.fail_with = None
        self.reject_with = None

    def update(self, code, owner_id, state, status):
        self.updates.append((state, status))
        if self.fail_with is not None:
            raise self.fail_with
        if self.reject_with is not None:
            return UpdateResult(False, error=self.reject_with)
        return super().update(code, owner_id, state, status)

    def stop(self, code, owner_id):
        self.stops.append(code)
        super().stop(code, owner_id)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def publisher(engine, store, clock, timers, executor, sleeps):
    return BroadcastPublisher(
        engine, store, "coach-1",
        window_seconds=1.0,
        terminal_retry_attempts=3,
        retry_base_delay=0.5,
        timer_factory=timers,
        clock=clock,
        executor=executor,
        sleep=sleeps.append,
    )


def pushed_score(state):
    return state["scores"][-1]


class TestStart:
    """Starting a broadcast creates the document with the current state."""

    def test_start_returns_code_and_writes_initial_state(self, engine, publisher, store):
        result = publisher.start()
        assert result.success
        assert publisher.match_code == result.code
        assert publisher.is_broadcasting
        doc = store.get(result.code)
        assert doc["coachUid"] == "coach-1"
        assert doc["matchId"] == engine.state.match_id
        assert doc["currentState"]["revision"] == 1
        assert doc["currentState"]["status"] == "live"

    def test_start_without_owner_fails_cleanly(self, engine, store, executor):
        publisher = BroadcastPublisher(engine, store, None, executor=executor)
        result = publisher.start()
        assert not result.success
        assert result.error == "Sign in to share your match"
        assert publisher.error == "Sign in to share your match"
        assert not publisher.is_broadcasting

    def test_start_twice_reuses_code(self, publisher):
        first = publisher.start()
        second = publisher.start()
        assert second.code == first.code


class TestThrottledPushes:
    """Engine changes reach the store at most once per window."""

    def test_burst_inside_window_pushes_latest_once(self, engine, publisher, store, clock, timers):
        publisher.start()
        engine.record_stat("kill", Team.MY_TEAM)
        clock.advance(0.4)
        engine.record_stat("kill", Team.MY_TEAM)
        assert store.updates == []

        timers.advance(0.6)
        assert len(store.updates) == 1
        state, status = store.updates[0]
        assert pushed_score(state) == {"myTeam": 2, "opponent": 0}
        assert status is BroadcastStatus.LIVE
        assert clock.now == pytest.approx(1.0)

    def test_change_after_quiet_window_pushes_immediately(self, engine, publisher, store, clock):
        publisher.start()
        clock.advance(2.0)
        engine.record_stat("ace", Team.OPPONENT)
        assert len(store.updates) == 1
        assert pushed_score(store.updates[0][0]) == {"myTeam": 0, "opponent": 1}

    def test_unchanged_fingerprint_is_not_pushed(self, engine, publisher, store, clock):
        publisher.start()
        clock.advance(2.0)
        # Already serving; nothing viewers see changes
        engine.set_serving_team(Team.MY_TEAM)
        assert store.updates == []

    def test_revisions_increase(self, engine, publisher, store, clock):
        publisher.start()
        for _ in range(3):
            clock.advance(1.5)
            engine.record_stat("kill", Team.MY_TEAM)
        revisions = [state["revision"] for state, _ in store.updates]
        assert revisions == [2, 3, 4]
        assert publisher.revision == 4

    def test_history_is_trimmed_in_snapshot(self, engine, publisher, store, clock):
        publisher.start()
        for _ in range(40):
            engine.record_stat("dig", Team.MY_TEAM)
        clock.advance(2.0)
        engine.record_stat("kill", Team.MY_TEAM)
        state = store.updates[-1][0]
        assert len(state["history"]) == 30
        assert "rotationSnapshot" not in state["history"][0]

    def test_between_sets_status(self, engine, publisher, store, clock):
        publisher.start()
        clock.advance(2.0)
        engine.set_score(Team.MY_TEAM, 25)
        assert store.updates[-1][1] is BroadcastStatus.BETWEEN_SETS


class TestTerminalPush:
    """A completed match bypasses the throttle and is retried."""

    def test_completed_bypasses_pending_window(self, engine, publisher, store, timers):
        publisher.start()
        engine.record_stat("kill", Team.MY_TEAM)
        assert timers.active
        engine.finalize_match()
        assert not timers.active
        assert len(store.updates) == 1
        assert store.updates[0][1] is BroadcastStatus.COMPLETED
        assert store.get(publisher.match_code)["isActive"] is False

    def test_terminal_push_retries_with_backoff(self, engine, publisher, store, sleeps):
        publisher.start()
        store.fail_with = ConnectionError("offline")
        engine.finalize_match()
        assert len(store.updates) == 3
        assert sleeps == [0.5, 1.0]
        assert "offline" in publisher.error

    def test_terminal_retry_recovers(self, engine, publisher, store, sleeps):
        publisher.start()
        store.reject_with = "busy"
        original = store.update

        def recover(code, owner_id, state, status):
            result = original(code, owner_id, state, status)
            store.reject_with = None
            return result

        store.update = recover
        engine.finalize_match()
        assert len(store.updates) == 2
        assert publisher.error is None
        assert sleeps == [0.5]

    def test_finalize_after_completed_push_does_not_repush(self, engine, publisher, store):
        publisher.start()
        engine.finalize_match()
        assert publisher.finalize() is True
        assert len(store.updates) == 1
        assert not publisher.is_broadcasting


class TestFailures:
    """Push failures are captured, never raised."""

    def test_exception_is_captured(self, engine, publisher, store, clock):
        publisher.start()
        store.fail_with = TimeoutError("network down")
        clock.advance(2.0)
        engine.record_stat("kill", Team.MY_TEAM)
        assert "network down" in publisher.error
        assert len(store.updates) == 1

    def test_failed_result_is_captured(self, engine, publisher, store, clock):
        publisher.start()
        store.reject_with = "Not authorized"
        clock.advance(2.0)
        engine.record_stat("kill", Team.MY_TEAM)
        assert "Not authorized" in publisher.error

    def test_failure_allows_retry_on_next_change(self, engine, publisher, store, clock):
        publisher.start()
        store.fail_with = TimeoutError("blip")
        clock.advance(2.0)
        engine.record_stat("kill", Team.MY_TEAM)
        store.fail_with = None
        clock.advance(2.0)
        # Not viewer-visible, but the failed push reset the fingerprint
        engine.set_serving_team(Team.MY_TEAM)
        assert len(store.updates) == 2
        assert publisher.error is None
        assert pushed_score(store.get(publisher.match_code)["currentState"]) == {
            "myTeam": 1, "opponent": 0,
        }


class TestStop:
    def test_stop_cancels_pending_push(self, engine, publisher, store, timers):
        publisher.start()
        engine.record_stat("kill", Team.MY_TEAM)
        code = publisher.match_code
        publisher.stop()
        timers.advance(5.0)
        assert store.updates == []
        assert store.stops == [code]
        assert store.get(code)["isActive"] is False
        assert not publisher.is_broadcasting

    def test_changes_after_stop_are_ignored(self, engine, publisher, store, clock):
        publisher.start()
        publisher.stop()
        clock.advance(2.0)
        engine.record_stat("kill", Team.MY_TEAM)
        assert store.updates == []

    def test_stop_when_idle_is_noop(self, publisher, store):
        publisher.stop()
        assert store.stops == []
