# Area: Engine
"""
volley_live._engine.batch_committer — All-or-nothing action commit
==================================================================

Applies a batch of producer actions (typically parsed from a voice
transcript) to the engine. If any action fails, every action already
applied is undone and the pre-batch state is verified before the error
is raised.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import BatchCommitError
from .enums import Team
from .rally_engine import RallyEngine
from .state import ActionOriginMeta, LineupSlot, Score
from .stat_rules import VALID_TYPES

logger = logging.getLogger("volley_live.engine.batch")


class ParsedAction(BaseModel):
    """One structured action emitted by an action producer."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    team: Team
    player_id: Optional[str] = None
    assist_player_id: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    raw_fragment: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in VALID_TYPES:
            raise ValueError(f"unknown action type {value!r}")
        return value


Fingerprint = Tuple[Score, Tuple[LineupSlot, ...], Any, Any]


def state_fingerprint(engine: RallyEngine) -> Fingerprint:
    """Score, rotation, rally state and serving team of the live state."""
    s = engine.state
    return (s.current_score, tuple(s.rotation), s.rally_state, s.serving_team)


class ActionBatchCommitter:
    """Commits batches of ParsedAction to one RallyEngine."""

    def __init__(self, engine: RallyEngine, source: str = "voice"):
        self.engine = engine
        self.source = source

    def commit(self, actions: Iterable[Union[ParsedAction, dict]]) -> int:
        """
        Apply *actions* in order and return how many were applied.

        Raises:
            BatchCommitError: an action was invalid or failed to apply;
                the engine was rolled back to its pre-batch state.
        """
        batch = list(actions)
        if not batch:
            return 0

        with self.engine.lock:
            before = state_fingerprint(self.engine)
            applied = 0
            try:
                for raw in batch:
                    action = raw if isinstance(raw, ParsedAction) else ParsedAction.model_validate(raw)
                    self.engine.record_stat(
                        action.type,
                        action.team,
                        player_id=action.player_id,
                        metadata=ActionOriginMeta(
                            source=self.source, assist_player_id=action.assist_player_id
                        ),
                        assist_player_id=action.assist_player_id,
                    )
                    applied += 1
            except Exception as exc:
                self._rollback(applied)
                restored = state_fingerprint(self.engine) == before
                error = BatchCommitError(
                    applied_count=applied,
                    total_count=len(batch),
                    cause=exc,
                    restored=restored,
                    actions=[_describe(raw) for raw in batch],
                )
                if not restored:
                    logger.error("Rollback did not restore pre-batch state")
                raise error from exc

        logger.info("Committed %d %s action(s)", applied, self.source)
        return applied

    def _rollback(self, applied: int) -> None:
        for _ in range(applied):
            self.engine.undo()
        if applied:
            logger.warning("Rolled back %d applied action(s)", applied)


def _describe(raw: Union[ParsedAction, dict]) -> dict:
    if isinstance(raw, ParsedAction):
        return raw.model_dump(mode="json")
    return dict(raw) if isinstance(raw, dict) else {"value": repr(raw)}


def parse_actions(payload: List[dict]) -> List[ParsedAction]:
    """Validate a list of raw producer dicts, raising ValidationError on the first bad one."""
    return [ParsedAction.model_validate(item) for item in payload]
