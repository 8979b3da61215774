# Area: Producers
"""
volley_live.producers — Action producers
========================================

An action producer turns a free-text rally description (usually a
speech-to-text transcript) into ParsedAction objects for the batch
committer.

KeywordActionProducer is a rule-based producer requiring no model:
it splits the transcript into clauses, finds one stat phrase per
clause, resolves ``#NN`` / ``number NN`` against the roster, and
treats "opponent", "they" or "them" as an opponent cue.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from ._engine.batch_committer import ParsedAction
from ._engine.enums import Team
from ._engine.stat_rules import VOICE_STAT_VOCABULARY
from ._engine.state import MatchState, Player

logger = logging.getLogger("volley_live.producers")

_CLAUSE_SPLIT = re.compile(r"[,.;!?]|\b(?:and\s+)?then\b")
_OPPONENT_CUE = re.compile(r"\b(opponent|opponents|they|them|their|other team)\b")
_ASSIST = re.compile(r"\bassist(?:ed)?(?:\s+by)?\s+(?:#\s*|number\s+)(\d{1,2})\b")
_JERSEY = re.compile(r"(?:#\s*|\bnumber\s+)(\d{1,2})\b")


@dataclass
class ParseContext:
    """What a producer may know about the match while parsing."""
    roster: List[Player] = field(default_factory=list)
    my_team_name: str = ""
    opponent_name: str = ""

    @classmethod
    def from_state(cls, state: MatchState) -> "ParseContext":
        return cls(
            roster=list(state.roster),
            my_team_name=state.my_team_name,
            opponent_name=state.opponent_name,
        )

    def player_for_jersey(self, jersey: str) -> Optional[Player]:
        for player in self.roster:
            if player.jersey_number and player.jersey_number.lstrip("0") == jersey.lstrip("0"):
                return player
        return None


class ActionProducer(Protocol):
    def parse(self, transcript: str, context: ParseContext) -> List[ParsedAction]: ...


class KeywordActionProducer:
    """Phrase-matching producer over VOICE_STAT_VOCABULARY."""

    def __init__(self, vocabulary: Tuple[Tuple[str, str], ...] = VOICE_STAT_VOCABULARY):
        self._patterns = [
            (re.compile(r"\b" + re.escape(phrase) + r"\b"), stat_type)
            for phrase, stat_type in vocabulary
        ]

    def parse(self, transcript: str, context: ParseContext) -> List[ParsedAction]:
        actions: List[ParsedAction] = []
        for clause in _CLAUSE_SPLIT.split(transcript.lower()):
            clause = clause.strip()
            if not clause:
                continue
            action = self._parse_clause(clause, context)
            if action is not None:
                actions.append(action)
        logger.debug("Parsed %d action(s) from %r", len(actions), transcript)
        return actions

    def _parse_clause(self, clause: str, context: ParseContext) -> Optional[ParsedAction]:
        stat_type = self._match_stat(clause)
        if stat_type is None:
            return None

        opponent_name = context.opponent_name.lower()
        is_opponent = bool(_OPPONENT_CUE.search(clause)) or (
            bool(opponent_name) and opponent_name in clause
        )
        team = Team.OPPONENT if is_opponent else Team.MY_TEAM

        assist_id = None
        remainder = clause
        assist = _ASSIST.search(clause)
        if assist:
            assist_player = context.player_for_jersey(assist.group(1))
            assist_id = assist_player.id if assist_player else None
            remainder = clause[:assist.start()] + clause[assist.end():]

        player_id = None
        confidence = 0.6
        jersey = _JERSEY.search(remainder)
        if jersey and team is Team.MY_TEAM:
            player = context.player_for_jersey(jersey.group(1))
            if player is not None:
                player_id = player.id
                confidence = 0.9

        return ParsedAction(
            type=stat_type,
            team=team,
            player_id=player_id,
            assist_player_id=assist_id,
            confidence=confidence,
            raw_fragment=clause,
        )

    def _match_stat(self, clause: str) -> Optional[str]:
        for pattern, stat_type in self._patterns:
            if pattern.search(clause):
                return stat_type
        return None
