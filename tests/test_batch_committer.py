# Area: Engine Tests
"""Tests for all-or-nothing batch commits and their rollback."""

import pytest
from pydantic import ValidationError

from volley_live._engine.batch_committer import (
    ActionBatchCommitter,
    ParsedAction,
    parse_actions,
    state_fingerprint,
)
from volley_live._engine.enums import Team
from volley_live._engine.state import ActionOriginMeta, Score
from volley_live.errors import BatchCommitError


@pytest.fixture
def committer(engine):
    return ActionBatchCommitter(engine)


class TestCommitSuccess:
    """Valid batches are applied in order."""

    def test_returns_applied_count(self, engine, committer):
        applied = committer.commit([
            ParsedAction(type="serve_good", team=Team.MY_TEAM),
            ParsedAction(type="kill", team=Team.MY_TEAM, player_id="B"),
        ])
        assert applied == 2
        assert engine.state.current_score == Score(1, 0)

    def test_empty_batch_is_noop(self, engine, committer):
        assert committer.commit([]) == 0
        assert engine.state.history == []

    def test_dict_actions_are_validated(self, engine, committer):
        committer.commit([{"type": "ace", "team": "opponent", "confidence": 0.8}])
        assert engine.state.current_score == Score(0, 1)

    def test_entries_carry_origin_metadata(self, engine, committer):
        committer.commit([
            ParsedAction(type="kill", team=Team.MY_TEAM, player_id="B", assist_player_id="A"),
        ])
        entry = engine.state.history[0]
        assert entry.metadata == ActionOriginMeta(source="voice", assist_player_id="A")
        assert entry.assist_player_id == "A"
        assert entry.player_id == "B"

    def test_custom_source(self, engine):
        ActionBatchCommitter(engine, source="keyboard").commit(
            [ParsedAction(type="dig", team=Team.MY_TEAM)]
        )
        assert engine.state.history[0].metadata.source == "keyboard"


class TestCommitRollback:
    """A failing action rolls back everything applied before it."""

    def test_invalid_action_mid_batch_restores_state(self, engine, committer):
        engine.set_serving_team(Team.OPPONENT)
        before = state_fingerprint(engine)
        history_len = len(engine.state.history)

        with pytest.raises(BatchCommitError) as info:
            committer.commit([
                {"type": "serve_error", "team": "opponent"},
                {"type": "kill", "team": "myTeam"},
                {"type": "not_a_stat", "team": "myTeam"},
            ])

        err = info.value
        assert err.applied_count == 2
        assert err.total_count == 3
        assert err.restored is True
        assert isinstance(err.cause, ValidationError)
        assert state_fingerprint(engine) == before
        assert len(engine.state.history) == history_len

    def test_engine_failure_rolls_back(self, engine, committer):
        original = engine.record_stat
        calls = []

        def flaky(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("storage hiccup")
            return original(*args, **kwargs)

        engine.record_stat = flaky
        before = state_fingerprint(engine)
        with pytest.raises(BatchCommitError) as info:
            committer.commit([
                ParsedAction(type="kill", team=Team.MY_TEAM),
                ParsedAction(type="kill", team=Team.MY_TEAM),
            ])
        assert info.value.applied_count == 1
        assert isinstance(info.value.__cause__, RuntimeError)
        assert state_fingerprint(engine) == before

    def test_first_action_failure_applies_nothing(self, engine, committer):
        with pytest.raises(BatchCommitError) as info:
            committer.commit([{"type": "kill", "team": "bench"}])
        assert info.value.applied_count == 0
        assert engine.state.history == []

    def test_error_log_lists_actions(self, committer):
        with pytest.raises(BatchCommitError) as info:
            committer.commit([{"type": "ace", "team": "myTeam"}, {"type": "bogus"}])
        block = info.value.format_error_log()
        assert "BATCH_ROLLBACK" in block
        assert "bogus" in block


class TestParsedAction:
    """Field validation on producer output."""

    def test_confidence_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            ParsedAction(type="ace", team=Team.MY_TEAM, confidence=1.5)

    def test_unknown_fields_are_ignored(self):
        action = ParsedAction.model_validate({"type": "ace", "team": "myTeam", "extra": 1})
        assert action.team is Team.MY_TEAM

    def test_parse_actions_raises_on_bad_item(self):
        with pytest.raises(ValidationError):
            parse_actions([{"type": "ace", "team": "myTeam"}, {"type": "ace"}])
