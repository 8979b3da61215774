# Area: Engine
"""
volley_live._engine.serialization — Versioned state payloads
============================================================

Converts MatchState and MatchRecord to and from plain JSON-compatible
dicts. Every top-level payload carries ``schema_version``; loading a
payload with any other version raises SchemaVersionError.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from ..errors import SchemaVersionError
from .enums import BroadcastStatus, MatchResult, RallyState, Team
from .match_record import MatchRecord
from .state import (
    METADATA_KINDS,
    LineupSlot,
    LogEntry,
    LogMetadata,
    MatchConfig,
    MatchState,
    Player,
    Score,
    SetResult,
    SetRules,
)

SCHEMA_VERSION = 1


# ══════════════════════════════════════════════════════════════
# LEAF TYPES
# ══════════════════════════════════════════════════════════════

def score_to_dict(score: Score) -> Dict[str, int]:
    return {"myTeam": score.my_team, "opponent": score.opponent}


def score_from_dict(data: Optional[Dict[str, Any]]) -> Score:
    data = data or {}
    return Score(int(data.get("myTeam", 0)), int(data.get("opponent", 0)))


def slot_to_dict(slot: LineupSlot) -> Dict[str, Any]:
    return {"position": slot.position, "playerId": slot.player_id, "isLibero": slot.is_libero}


def slot_from_dict(data: Dict[str, Any]) -> LineupSlot:
    return LineupSlot(
        position=int(data["position"]),
        player_id=data.get("playerId"),
        is_libero=bool(data.get("isLibero", False)),
    )


def player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "jerseyNumber": player.jersey_number,
        "positions": list(player.positions),
    }


def player_from_dict(data: Dict[str, Any]) -> Player:
    return Player(
        id=str(data["id"]),
        name=data.get("name", ""),
        jersey_number=str(data.get("jerseyNumber", "")),
        positions=tuple(data.get("positions") or ()),
    )


def config_to_dict(config: MatchConfig) -> Dict[str, Any]:
    return {
        "presetName": config.preset_name,
        "totalSets": config.total_sets,
        "sets": [
            {"targetScore": r.target_score, "winBy": r.win_by, "cap": r.cap}
            for r in config.sets
        ],
        "timeoutsPerSet": config.timeouts_per_set,
        "subsPerSet": config.subs_per_set,
    }


def config_from_dict(data: Dict[str, Any]) -> MatchConfig:
    return MatchConfig(
        preset_name=data.get("presetName", "Custom"),
        total_sets=int(data.get("totalSets", 3)),
        sets=tuple(
            SetRules(
                target_score=int(r.get("targetScore", 25)),
                win_by=int(r.get("winBy", 2)),
                cap=int(r.get("cap", 100)),
            )
            for r in data.get("sets", [])
        ),
        timeouts_per_set=int(data.get("timeoutsPerSet", 2)),
        subs_per_set=int(data.get("subsPerSet", 15)),
    )


def metadata_to_dict(meta: Optional[LogMetadata]) -> Optional[Dict[str, Any]]:
    if meta is None:
        return None
    data = dict(vars(meta))
    # kind is a class-level default on the frozen variants, so vars() omits it
    data["kind"] = meta.kind
    if "prior_pairs" in data:
        data["prior_pairs"] = [list(pair) for pair in data["prior_pairs"]]
    return data


def metadata_from_dict(data: Optional[Dict[str, Any]]) -> Optional[LogMetadata]:
    if not data:
        return None
    fields = dict(data)
    cls = METADATA_KINDS.get(fields.pop("kind", None))
    if cls is None:
        return None
    if "prior_pairs" in fields:
        fields["prior_pairs"] = tuple(tuple(pair) for pair in fields["prior_pairs"])
    return cls(**fields)


def entry_to_dict(entry: LogEntry, include_bulky: bool = True) -> Dict[str, Any]:
    """Serialize a log entry. ``include_bulky=False`` drops rotation and metadata."""
    data: Dict[str, Any] = {
        "id": entry.id,
        "timestamp": entry.timestamp,
        "type": entry.type,
        "team": entry.team.value,
        "setNumber": entry.set_number,
        "scoreSnapshot": score_to_dict(entry.score_snapshot),
        "rallyStateSnapshot": entry.rally_state_snapshot.value,
        "servingTeamSnapshot": entry.serving_team_snapshot.value,
        "playerId": entry.player_id,
        "assistPlayerId": entry.assist_player_id,
        "parentId": entry.parent_id,
    }
    if include_bulky:
        data["rotationSnapshot"] = [slot_to_dict(s) for s in entry.rotation_snapshot]
        data["metadata"] = metadata_to_dict(entry.metadata)
    return data


def entry_from_dict(data: Dict[str, Any]) -> LogEntry:
    return LogEntry(
        id=data["id"],
        timestamp=int(data["timestamp"]),
        type=data["type"],
        team=Team(data["team"]),
        set_number=int(data["setNumber"]),
        score_snapshot=score_from_dict(data.get("scoreSnapshot")),
        rally_state_snapshot=RallyState(data.get("rallyStateSnapshot", "pre-serve")),
        serving_team_snapshot=Team(data.get("servingTeamSnapshot", "myTeam")),
        rotation_snapshot=tuple(slot_from_dict(s) for s in data.get("rotationSnapshot") or []),
        player_id=data.get("playerId"),
        assist_player_id=data.get("assistPlayerId"),
        metadata=metadata_from_dict(data.get("metadata")),
        parent_id=data.get("parentId"),
    )


def set_result_to_dict(result: SetResult) -> Dict[str, Any]:
    return {
        "setNumber": result.set_number,
        "winner": result.winner.value,
        "score": score_to_dict(result.score),
    }


def set_result_from_dict(data: Dict[str, Any]) -> SetResult:
    return SetResult(
        set_number=int(data["setNumber"]),
        winner=Team(data["winner"]),
        score=score_from_dict(data.get("score")),
    )


def lineups_to_dict(lineups: Dict[int, List[LineupSlot]]) -> Dict[str, Any]:
    return {str(n): [slot_to_dict(s) for s in slots] for n, slots in lineups.items()}


def lineups_from_dict(data: Optional[Dict[str, Any]]) -> Dict[int, List[LineupSlot]]:
    return {int(n): [slot_from_dict(s) for s in slots] for n, slots in (data or {}).items()}


def _check_version(data: Dict[str, Any]) -> None:
    found = data.get("schema_version")
    if found != SCHEMA_VERSION:
        raise SchemaVersionError(found, SCHEMA_VERSION)


# ══════════════════════════════════════════════════════════════
# AGGREGATES
# ══════════════════════════════════════════════════════════════

def state_to_dict(state: MatchState) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "matchId": state.match_id,
        "myTeamName": state.my_team_name,
        "opponentName": state.opponent_name,
        "config": config_to_dict(state.config),
        "currentSet": state.current_set,
        "scores": [score_to_dict(s) for s in state.scores],
        "setsWon": score_to_dict(state.sets_won),
        "setHistory": [set_result_to_dict(r) for r in state.set_history],
        "history": [entry_to_dict(e) for e in state.history],
        "servingTeam": state.serving_team.value,
        "rallyState": state.rally_state.value,
        "firstServerPerSet": {str(n): t.value for n, t in state.first_server_per_set.items()},
        "currentRotation": [slot_to_dict(s) for s in state.rotation],
        "lineups": lineups_to_dict(state.lineups),
        "roster": [player_to_dict(p) for p in state.roster],
        "liberoIds": sorted(state.libero_ids),
        "nonLiberoIds": sorted(state.non_libero_ids),
        "subPairs": dict(state.sub_pairs),
        "timeoutsRemaining": score_to_dict(state.timeouts_remaining),
        "subsRemaining": score_to_dict(state.subs_remaining),
        "status": state.status.value,
        "result": state.result.value,
        "seasonId": state.season_id,
        "eventId": state.event_id,
    }


def state_from_dict(data: Dict[str, Any]) -> MatchState:
    """Rebuild a MatchState. Raises SchemaVersionError on a version mismatch."""
    _check_version(data)
    return MatchState(
        match_id=data["matchId"],
        my_team_name=data.get("myTeamName", "My Team"),
        opponent_name=data.get("opponentName", "Opponent"),
        config=config_from_dict(data.get("config") or {}),
        current_set=int(data.get("currentSet", 1)),
        scores=[score_from_dict(s) for s in data.get("scores") or [{}]],
        sets_won=score_from_dict(data.get("setsWon")),
        set_history=[set_result_from_dict(r) for r in data.get("setHistory", [])],
        history=[entry_from_dict(e) for e in data.get("history", [])],
        serving_team=Team(data.get("servingTeam", "myTeam")),
        rally_state=RallyState(data.get("rallyState", "pre-serve")),
        first_server_per_set={
            int(n): Team(t) for n, t in (data.get("firstServerPerSet") or {}).items()
        },
        rotation=[slot_from_dict(s) for s in data.get("currentRotation", [])],
        lineups=lineups_from_dict(data.get("lineups")),
        roster=[player_from_dict(p) for p in data.get("roster", [])],
        libero_ids=set(data.get("liberoIds", [])),
        non_libero_ids=set(data.get("nonLiberoIds", [])),
        sub_pairs=dict(data.get("subPairs") or {}),
        timeouts_remaining=score_from_dict(data.get("timeoutsRemaining")),
        subs_remaining=score_from_dict(data.get("subsRemaining")),
        status=BroadcastStatus(data.get("status", "live")),
        result=MatchResult(data.get("result", "In Progress")),
        season_id=data.get("seasonId"),
        event_id=data.get("eventId"),
    )


def record_to_dict(record: MatchRecord) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": record.id,
        "opponentName": record.opponent_name,
        "myTeamName": record.my_team_name,
        "date": record.date,
        "time": record.time,
        "courtNumber": record.court_number,
        "result": record.result.value,
        "setsWon": score_to_dict(record.sets_won),
        "scores": [score_to_dict(s) for s in record.scores],
        "setHistory": [set_result_to_dict(r) for r in record.set_history],
        "history": [entry_to_dict(e) for e in record.history],
        "lineups": lineups_to_dict(record.lineups),
        "seasonId": record.season_id,
        "eventId": record.event_id,
    }


def record_from_dict(data: Dict[str, Any]) -> MatchRecord:
    _check_version(data)
    return MatchRecord(
        id=data["id"],
        opponent_name=data.get("opponentName", ""),
        my_team_name=data.get("myTeamName", ""),
        date=int(data.get("date", 0)),
        result=MatchResult(data.get("result", "In Progress")),
        sets_won=score_from_dict(data.get("setsWon")),
        scores=[score_from_dict(s) for s in data.get("scores", [])],
        set_history=[set_result_from_dict(r) for r in data.get("setHistory", [])],
        history=[entry_from_dict(e) for e in data.get("history", [])],
        lineups=lineups_from_dict(data.get("lineups")),
        time=data.get("time"),
        court_number=data.get("courtNumber"),
        season_id=data.get("seasonId"),
        event_id=data.get("eventId"),
    )
