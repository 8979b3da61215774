# Area: Engine
"""
volley_live._engine.match_record — Finalized match record
=========================================================

The archival form of a match, built once at finalization and handed to
a MatchRecordSink. Results are derived from sets won against the
best-of-N threshold.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol
import time

from .enums import MatchResult
from .state import LineupSlot, LogEntry, MatchState, Score, SetResult


@dataclass
class MatchRecord:
    id: str
    opponent_name: str
    my_team_name: str
    date: int
    result: MatchResult
    sets_won: Score
    scores: List[Score]
    set_history: List[SetResult]
    history: List[LogEntry]
    lineups: Dict[int, List[LineupSlot]] = field(default_factory=dict)
    time: Optional[str] = None
    court_number: Optional[str] = None
    season_id: Optional[str] = None
    event_id: Optional[str] = None


class MatchRecordSink(Protocol):
    """Receives the record of a finalized match."""

    def save_match_record(self, record: MatchRecord) -> None: ...


def compute_result(state: MatchState) -> MatchResult:
    sets_to_win = state.config.sets_to_win
    if state.sets_won.my_team >= sets_to_win:
        return MatchResult.WIN
    if state.sets_won.opponent >= sets_to_win:
        return MatchResult.LOSS
    return MatchResult.IN_PROGRESS


def build_match_record(state: MatchState, now_ms: Optional[int] = None) -> MatchRecord:
    """Copy the archival fields out of a live state."""
    return MatchRecord(
        id=state.match_id,
        opponent_name=state.opponent_name,
        my_team_name=state.my_team_name,
        date=now_ms if now_ms is not None else int(time.time() * 1000),
        result=compute_result(state),
        sets_won=state.sets_won,
        scores=list(state.scores),
        set_history=list(state.set_history),
        history=list(state.history),
        lineups={n: list(slots) for n, slots in state.lineups.items()},
        season_id=state.season_id,
        event_id=state.event_id,
    )
