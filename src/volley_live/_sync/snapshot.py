# Area: Sync
"""
volley_live._sync.snapshot — Broadcast snapshot builder
=======================================================

Builds the viewer-facing copy of a match. History is trimmed to the
most recent entries and each entry loses its rotation snapshot and
metadata, which viewers never render.
"""

from __future__ import annotations
from typing import Any, Dict, Tuple

from .._engine.enums import BroadcastStatus
from .._engine.serialization import (
    config_to_dict,
    entry_to_dict,
    player_to_dict,
    score_to_dict,
    set_result_to_dict,
    slot_to_dict,
)
from .._engine.state import MatchState

MAX_HISTORY_ENTRIES = 30


def build_snapshot(
    state: MatchState,
    status: BroadcastStatus = BroadcastStatus.LIVE,
    revision: int = 0,
) -> Dict[str, Any]:
    """Return the broadcast document body for *state*."""
    history = state.history[-MAX_HISTORY_ENTRIES:]
    return {
        "myTeamName": state.my_team_name,
        "opponentName": state.opponent_name,
        "currentSet": state.current_set,
        "scores": [score_to_dict(s) for s in state.scores],
        "setsWon": score_to_dict(state.sets_won),
        "servingTeam": state.serving_team.value,
        "rallyState": state.rally_state.value,
        "currentRotation": [slot_to_dict(s) for s in state.rotation],
        "myTeamRoster": [player_to_dict(p) for p in state.roster],
        "history": [entry_to_dict(e, include_bulky=False) for e in history],
        "setHistory": [set_result_to_dict(r) for r in state.set_history],
        "timeoutsRemaining": score_to_dict(state.timeouts_remaining),
        "subsRemaining": score_to_dict(state.subs_remaining),
        "config": config_to_dict(state.config),
        "status": status.value,
        "revision": revision,
    }


def broadcast_fingerprint(state: MatchState, status: BroadcastStatus) -> Tuple:
    """
    The fields viewers see. A state change that leaves this unchanged
    does not need a push.
    """
    last_id = state.history[-1].id if state.history else None
    return (
        tuple(state.scores),
        state.current_set,
        state.sets_won,
        tuple(state.rotation),
        state.serving_team,
        state.rally_state,
        len(state.history),
        last_id,
        state.timeouts_remaining,
        state.subs_remaining,
        len(state.set_history),
        status,
    )
