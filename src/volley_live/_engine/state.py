# Area: Engine
"""
volley_live._engine.state — Match state model
=============================================

Dataclasses for the live match aggregate and its immutable log.

MatchState is owned by exactly one RallyEngine. Log entries are frozen
once appended; every snapshot field on a LogEntry holds the state *before*
the mutation it records.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

from .enums import BroadcastStatus, MatchResult, RallyState, Team

FRONT_ROW = (2, 3, 4)
POSITIONS = (1, 2, 3, 4, 5, 6)


@dataclass(frozen=True)
class Score:
    """A {myTeam, opponent} pair of non-negative counters."""
    my_team: int = 0
    opponent: int = 0

    def get(self, team: Team) -> int:
        return self.my_team if team is Team.MY_TEAM else self.opponent

    def plus(self, team: Team, amount: int = 1) -> "Score":
        """Return a copy with *amount* added to *team*, floored at zero."""
        if team is Team.MY_TEAM:
            return Score(max(0, self.my_team + amount), self.opponent)
        return Score(self.my_team, max(0, self.opponent + amount))

    def with_value(self, team: Team, value: int) -> "Score":
        if team is Team.MY_TEAM:
            return Score(value, self.opponent)
        return Score(self.my_team, value)

    @classmethod
    def both(cls, value: int) -> "Score":
        return cls(value, value)


@dataclass(frozen=True)
class LineupSlot:
    """One court position. Positions are labels 1-6; players move between them."""
    position: int
    player_id: Optional[str] = None
    is_libero: bool = False

    @property
    def is_front_row(self) -> bool:
        return self.position in FRONT_ROW


@dataclass(frozen=True)
class Player:
    """Roster entry. ``positions`` uses codes such as OH, MB, S, L, DS."""
    id: str
    name: str = ""
    jersey_number: str = ""
    positions: Tuple[str, ...] = ()

    @property
    def declares_libero(self) -> bool:
        return "L" in self.positions

    @property
    def label(self) -> str:
        if self.name:
            return f"#{self.jersey_number} {self.name}".strip()
        return f"#{self.jersey_number or self.id}"


@dataclass(frozen=True)
class SetRules:
    """Scoring rules for one set."""
    target_score: int = 25
    win_by: int = 2
    cap: int = 100

    def is_finished(self, score: Score) -> bool:
        a, b = score.my_team, score.opponent
        return (
            (a >= self.target_score and a >= b + self.win_by)
            or (b >= self.target_score and b >= a + self.win_by)
            or (a == self.cap and a > b)
            or (b == self.cap and b > a)
        )


@dataclass(frozen=True)
class MatchConfig:
    """Match format. ``sets[i]`` holds the rules for set i+1."""
    preset_name: str = "3-Set"
    total_sets: int = 3
    sets: Tuple[SetRules, ...] = (SetRules(), SetRules(), SetRules(target_score=15))
    timeouts_per_set: int = 2
    subs_per_set: int = 15

    def rules_for(self, set_number: int) -> SetRules:
        if not self.sets:
            return SetRules()
        index = min(max(set_number - 1, 0), len(self.sets) - 1)
        return self.sets[index]

    @property
    def sets_to_win(self) -> int:
        return -(-self.total_sets // 2)


PRESETS: Dict[str, MatchConfig] = {
    "3-Set": MatchConfig(),
    "5-Set": MatchConfig(
        preset_name="5-Set",
        total_sets=5,
        sets=(SetRules(), SetRules(), SetRules(), SetRules(), SetRules(target_score=15)),
    ),
    "2-Set-Seeding": MatchConfig(
        preset_name="2-Set-Seeding",
        total_sets=2,
        sets=(SetRules(cap=27), SetRules(cap=27)),
    ),
}


# ── Log metadata variants ─────────────────────────────────────


@dataclass(frozen=True)
class SubstitutionMeta:
    """Who came in and out, and whether a substitution credit was charged."""
    sub_in: str
    sub_out: Optional[str]
    sub_consumed: bool = False
    auto_swap: bool = False
    libero_added: bool = False
    # sub_pairs values for (sub_in, sub_out) before the change
    prior_pairs: Tuple[Tuple[str, Optional[str]], ...] = ()
    kind: str = field(default="substitution", init=False)


@dataclass(frozen=True)
class ActionOriginMeta:
    """Marks an entry produced by an external action producer."""
    source: str = "voice"
    assist_player_id: Optional[str] = None
    kind: str = field(default="origin", init=False)


@dataclass(frozen=True)
class TimeoutMeta:
    consumed: bool = True
    kind: str = field(default="timeout", init=False)


@dataclass(frozen=True)
class ScoreAdjustMeta:
    previous: int
    new: int
    kind: str = field(default="score_adjust", init=False)


@dataclass(frozen=True)
class RotationMeta:
    direction: str
    manual: bool = True
    kind: str = field(default="rotation", init=False)


LogMetadata = Union[
    SubstitutionMeta, ActionOriginMeta, TimeoutMeta, ScoreAdjustMeta, RotationMeta
]

METADATA_KINDS = {
    "substitution": SubstitutionMeta,
    "origin": ActionOriginMeta,
    "timeout": TimeoutMeta,
    "score_adjust": ScoreAdjustMeta,
    "rotation": RotationMeta,
}


@dataclass(frozen=True)
class LogEntry:
    """
    One immutable log record.

    ``parent_id`` is set on entries derived from another mutation (the
    rotation a side-out triggers, libero auto-swaps) and points at the
    root entry of the group. Undo removes a root with all its derived
    entries.
    """
    id: str
    timestamp: int
    type: str
    team: Team
    set_number: int
    score_snapshot: Score
    rally_state_snapshot: RallyState
    serving_team_snapshot: Team
    rotation_snapshot: Tuple[LineupSlot, ...] = ()
    player_id: Optional[str] = None
    assist_player_id: Optional[str] = None
    metadata: Optional[LogMetadata] = None
    parent_id: Optional[str] = None

    @property
    def is_derived(self) -> bool:
        return self.parent_id is not None


@dataclass(frozen=True)
class SetResult:
    set_number: int
    winner: Team
    score: Score


@dataclass
class MatchState:
    """Root aggregate of a live match."""
    match_id: str
    my_team_name: str = "My Team"
    opponent_name: str = "Opponent"
    config: MatchConfig = field(default_factory=MatchConfig)

    current_set: int = 1
    scores: List[Score] = field(default_factory=lambda: [Score()])
    sets_won: Score = field(default_factory=Score)
    set_history: List[SetResult] = field(default_factory=list)
    history: List[LogEntry] = field(default_factory=list)

    serving_team: Team = Team.MY_TEAM
    rally_state: RallyState = RallyState.PRE_SERVE
    first_server_per_set: Dict[int, Team] = field(default_factory=dict)

    rotation: List[LineupSlot] = field(default_factory=list)
    lineups: Dict[int, List[LineupSlot]] = field(default_factory=dict)
    roster: List[Player] = field(default_factory=list)
    libero_ids: Set[str] = field(default_factory=set)
    non_libero_ids: Set[str] = field(default_factory=set)
    sub_pairs: Dict[str, str] = field(default_factory=dict)

    timeouts_remaining: Score = field(default_factory=lambda: Score.both(2))
    subs_remaining: Score = field(default_factory=lambda: Score.both(15))

    status: BroadcastStatus = BroadcastStatus.LIVE
    result: MatchResult = MatchResult.IN_PROGRESS
    season_id: Optional[str] = None
    event_id: Optional[str] = None

    # ── Read helpers ─────────────────────────────────────────

    @property
    def current_score(self) -> Score:
        index = self.current_set - 1
        if 0 <= index < len(self.scores):
            return self.scores[index]
        return Score()

    def set_current_score(self, score: Score) -> None:
        index = self.current_set - 1
        while len(self.scores) <= index:
            self.scores.append(Score())
        self.scores[index] = score

    def find_player(self, player_id: Optional[str]) -> Optional[Player]:
        for player in self.roster:
            if player.id == player_id:
                return player
        return None

    def slot_at(self, position: int) -> Optional[LineupSlot]:
        for slot in self.rotation:
            if slot.position == position:
                return slot
        return None

    def is_libero(self, slot: LineupSlot) -> bool:
        return bool(slot.player_id) and (slot.is_libero or slot.player_id in self.libero_ids)


def is_valid_rotation(rotation: List[LineupSlot]) -> bool:
    """An empty rotation or exactly one slot per position 1-6."""
    if not rotation:
        return True
    return sorted(slot.position for slot in rotation) == list(POSITIONS)
