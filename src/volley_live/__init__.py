"""
volley_live — Live volleyball scorer with viewer broadcast
==========================================================

One authoritative scorer tracks a match; remote viewers follow a
throttled copy of it and send back presence, cheers and score alerts.

Quick Start:
    from volley_live import ScorerSession, load_config
    session = ScorerSession(load_config())
    session.new_match("Hawks", "Rivals")
    session.start_broadcast()
    session.commit_transcript("good serve, kill #7")

Engine only:
    from volley_live import RallyEngine, Team
    engine = RallyEngine()
    engine.record_stat("ace", Team.MY_TEAM)
"""

from ._engine import (
    ActionBatchCommitter,
    BroadcastStatus,
    LineupSlot,
    LogEntry,
    MatchConfig,
    MatchRecord,
    MatchRecordSink,
    MatchResult,
    MatchState,
    ParsedAction,
    Player,
    PRESETS,
    RallyEngine,
    RallyState,
    RotationDirection,
    Score,
    SetResult,
    SetRules,
    Team,
)
from ._sync import (
    BroadcastPublisher,
    InMemoryBroadcastStore,
    InMemoryInteractionsStore,
    InteractionIngestor,
    build_snapshot,
)
from ._shared import CaptureSession, setup_logging
from .config import load_config, validate_config
from .errors import (
    VolleyLiveError,
    BatchCommitError,
    BroadcastAuthorizationError,
    BroadcastNetworkError,
    ConfigError,
    SchemaVersionError,
)
from .persistence import SqliteMatchRecordRepository, SqliteMatchStateStore
from .producers import KeywordActionProducer, ParseContext
from .scorer import ScorerSession

__all__ = [
    # Engine
    "RallyEngine",
    "ActionBatchCommitter",
    "ParsedAction",
    "MatchState",
    "MatchConfig",
    "SetRules",
    "PRESETS",
    "Score",
    "LineupSlot",
    "Player",
    "LogEntry",
    "SetResult",
    "MatchRecord",
    "MatchRecordSink",
    "Team",
    "RallyState",
    "RotationDirection",
    "BroadcastStatus",
    "MatchResult",
    # Sync
    "BroadcastPublisher",
    "InteractionIngestor",
    "InMemoryBroadcastStore",
    "InMemoryInteractionsStore",
    "build_snapshot",
    # Wiring
    "ScorerSession",
    "KeywordActionProducer",
    "ParseContext",
    "CaptureSession",
    "SqliteMatchStateStore",
    "SqliteMatchRecordRepository",
    "load_config",
    "validate_config",
    "setup_logging",
    # Errors
    "VolleyLiveError",
    "BatchCommitError",
    "BroadcastAuthorizationError",
    "BroadcastNetworkError",
    "ConfigError",
    "SchemaVersionError",
]
__version__ = "1.0.0"
