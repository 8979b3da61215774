# Area: Engine
"""
Match engine - the authoritative scorer state machine.

This package handles:
- Score, serve and rally flow
- Rotation with libero auto-swaps
- Substitutions, timeouts and undo
- Set and match closing
- All-or-nothing batch commits from action producers
"""

from .enums import BroadcastStatus, MatchResult, RallyState, RotationDirection, Team
from .state import (
    PRESETS,
    LineupSlot,
    LogEntry,
    MatchConfig,
    MatchState,
    Player,
    Score,
    SetResult,
    SetRules,
)
from .match_record import MatchRecord, MatchRecordSink
from .rally_engine import RallyEngine
from .batch_committer import ActionBatchCommitter, ParsedAction

__all__ = [
    "BroadcastStatus",
    "MatchResult",
    "RallyState",
    "RotationDirection",
    "Team",
    "PRESETS",
    "LineupSlot",
    "LogEntry",
    "MatchConfig",
    "MatchState",
    "Player",
    "Score",
    "SetResult",
    "SetRules",
    "MatchRecord",
    "MatchRecordSink",
    "RallyEngine",
    "ActionBatchCommitter",
    "ParsedAction",
]
