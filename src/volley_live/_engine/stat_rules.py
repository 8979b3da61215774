# Area: Engine
"""
volley_live._engine.stat_rules — Stat classification
====================================================

Maps a stat type to its effect on the rally. A stat either wins the
point for the acting team, loses it (the other team scores), starts the
rally, or is logged without changing the score.
"""

from __future__ import annotations
from typing import Optional

from .enums import Team

POINT_WINNING = frozenset({"ace", "kill", "block"})

SELF_ERROR = frozenset({
    "serve_error",
    "attack_error",
    "dig_error",
    "set_error",
    "pass_error",
    "drop",
    "receive_0",
})

RALLY_STARTING = frozenset({
    "serve_good",
    "receive_1",
    "receive_2",
    "receive_3",
    "receive_error",
})

# Types an action producer may emit
VALID_TYPES = frozenset({
    "ace", "serve_error", "serve_good",
    "kill", "attack_error", "attack_good",
    "block", "dig", "dig_error", "set_error", "pass_error", "drop",
    "receive_0", "receive_1", "receive_2", "receive_3", "receive_error",
    "timeout", "point_adjust", "substitution",
})

# Spoken phrases recognised by the keyword producer, longest first
VOICE_STAT_VOCABULARY = (
    ("service error", "serve_error"),
    ("serve error", "serve_error"),
    ("missed serve", "serve_error"),
    ("attack error", "attack_error"),
    ("hitting error", "attack_error"),
    ("dig error", "dig_error"),
    ("set error", "set_error"),
    ("pass error", "pass_error"),
    ("receive error", "receive_error"),
    ("good serve", "serve_good"),
    ("serve in", "serve_good"),
    ("perfect pass", "receive_3"),
    ("good pass", "receive_2"),
    ("bad pass", "receive_1"),
    ("shanked", "receive_0"),
    ("timeout", "timeout"),
    ("ace", "ace"),
    ("kill", "kill"),
    ("block", "block"),
    ("dig", "dig"),
    ("dropped", "drop"),
    ("drop", "drop"),
    ("attack", "attack_good"),
)


def point_winner(stat_type: str, team: Team) -> Optional[Team]:
    """Return the team awarded the point for this stat, or None."""
    if stat_type in POINT_WINNING:
        return team
    if stat_type in SELF_ERROR:
        return team.other
    return None


def starts_rally(stat_type: str) -> bool:
    return stat_type in RALLY_STARTING
