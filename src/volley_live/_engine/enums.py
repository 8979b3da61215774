# Area: Engine
"""
volley_live._engine.enums — Match engine enums
==============================================

Enum values are the wire strings used in persisted payloads and
broadcast snapshots.
"""

from enum import Enum


class Team(Enum):
    """The two sides of the net. Only MY_TEAM's rotation is tracked."""
    MY_TEAM = "myTeam"
    OPPONENT = "opponent"

    @property
    def other(self) -> "Team":
        return Team.OPPONENT if self is Team.MY_TEAM else Team.MY_TEAM


class RallyState(Enum):
    """Phase of the current rally."""
    PRE_SERVE = "pre-serve"
    IN_RALLY = "in-rally"


class RotationDirection(Enum):
    """
    Direction of a rotation.

    FORWARD:  1->6, 6->5, 5->4, 4->3, 3->2, 2->1
    BACKWARD: the inverse permutation
    """
    FORWARD = "forward"
    BACKWARD = "backward"


class BroadcastStatus(Enum):
    """Status carried with every broadcast push."""
    LIVE = "live"
    BETWEEN_SETS = "between-sets"
    COMPLETED = "completed"


class MatchResult(Enum):
    """Outcome written to the finalized match record."""
    WIN = "Win"
    LOSS = "Loss"
    IN_PROGRESS = "In Progress"
