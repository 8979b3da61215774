# Area: Engine
"""
volley_live._engine.rally_engine — Authoritative match state machine
====================================================================

RallyEngine owns one MatchState and is the only writer of it. Every
mutator appends log entries carrying pre-mutation snapshots, updates the
live fields, then notifies subscribers exactly once.

Entries derived from another mutation (the rotation a side-out causes,
libero auto-swaps after a rotation) carry ``parent_id`` pointing at the
root entry. Undo pops a whole group and restores from the root.

Inconsistent calls (undo with nothing to undo, rotating an empty lineup,
substituting into an unknown position) are logged at DEBUG and ignored.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Union

from .enums import BroadcastStatus, MatchResult, RallyState, RotationDirection, Team
from .match_record import MatchRecord, MatchRecordSink, build_match_record, compute_result
from .rotation import front_row_liberos, replace_slot, rotate_slots
from .stat_rules import point_winner, starts_rally
from .state import (
    FRONT_ROW,
    LineupSlot,
    LogEntry,
    LogMetadata,
    MatchConfig,
    MatchState,
    Player,
    RotationMeta,
    Score,
    ScoreAdjustMeta,
    SetResult,
    SubstitutionMeta,
    TimeoutMeta,
    is_valid_rotation,
)

logger = logging.getLogger("volley_live.engine")

Listener = Callable[[MatchState], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex


class RallyEngine:
    """
    Deterministic scorer for a single live match.

    Mutators are synchronous. An RLock serializes them against snapshot
    reads made from publisher timer threads; use ``engine.lock`` when
    reading ``engine.state`` off the caller's thread.
    """

    def __init__(
        self,
        state: Optional[MatchState] = None,
        record_sink: Optional[MatchRecordSink] = None,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._state = state if state is not None else MatchState(match_id=id_factory())
        self._record_sink = record_sink
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._depth = 0
        self._last_record: Optional[MatchRecord] = None
        self._last_record_error: Optional[Exception] = None
        self._quiet = False

    # ── Access ───────────────────────────────────────────────

    @property
    def state(self) -> MatchState:
        return self._state

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def last_record(self) -> Optional[MatchRecord]:
        return self._last_record

    @property
    def last_record_error(self) -> Optional[Exception]:
        """The exception raised by the record sink on the last finalize, if any."""
        return self._last_record_error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Engine listener %r failed", listener)

    @contextmanager
    def _mutating(self) -> Iterator[MatchState]:
        """Hold the lock for a mutation; notify once when the outermost one ends."""
        with self._lock:
            self._depth += 1
            try:
                yield self._state
            finally:
                self._depth -= 1
                outermost = self._depth == 0
                quiet = outermost and self._quiet
                if outermost:
                    self._quiet = False
        if outermost and not quiet:
            self._notify()

    def _ignore(self, message: str, *args) -> None:
        """Log a rejected call; the enclosing top-level mutation then skips notification."""
        logger.debug(message, *args)
        if self._depth == 1:
            self._quiet = True

    # ── Lifecycle ────────────────────────────────────────────

    def new_match(
        self,
        my_team_name: str,
        opponent_name: str,
        config: Optional[MatchConfig] = None,
        lineups: Optional[Dict[int, List[LineupSlot]]] = None,
        roster: Optional[List[Player]] = None,
        match_id: Optional[str] = None,
        season_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> MatchState:
        """
        Start a fresh match. The set-1 rotation is seeded from ``lineups[1]``.

        A lineup without exactly one slot per position 1-6 is dropped with
        a warning; that set then starts with an empty rotation.
        """
        config = config or MatchConfig()
        lineups = {int(n): list(slots) for n, slots in (lineups or {}).items()}
        for set_number in sorted(lineups):
            if not is_valid_rotation(lineups[set_number]):
                logger.warning("Dropping set-%d lineup: positions must be 1-6, once each", set_number)
                del lineups[set_number]
        with self._mutating():
            self._state = MatchState(
                match_id=match_id or self._id_factory(),
                my_team_name=my_team_name,
                opponent_name=opponent_name,
                config=config,
                lineups=lineups,
                roster=list(roster or []),
                rotation=list(lineups.get(1, [])),
                timeouts_remaining=Score.both(config.timeouts_per_set),
                subs_remaining=Score.both(config.subs_per_set),
                season_id=season_id,
                event_id=event_id,
            )
            self._last_record = None
            logger.info(
                "New match %s: %s vs %s (%s)",
                self._state.match_id, my_team_name, opponent_name, config.preset_name,
            )
        return self._state

    def load_state(self, state: MatchState) -> None:
        """Adopt a restored state, e.g. one read back from persistence."""
        with self._mutating():
            self._state = state
            self._last_record = None
            logger.info("Resumed match %s at set %d", state.match_id, state.current_set)

    def reset_match(self) -> None:
        """Clear match progress, keeping teams, format, lineups and roster."""
        with self._mutating() as s:
            cfg = s.config
            s.current_set = 1
            s.scores = [Score()]
            s.sets_won = Score()
            s.history = []
            s.set_history = []
            s.serving_team = Team.MY_TEAM
            s.rally_state = RallyState.PRE_SERVE
            s.first_server_per_set = {}
            s.timeouts_remaining = Score.both(cfg.timeouts_per_set)
            s.subs_remaining = Score.both(cfg.subs_per_set)
            s.rotation = list(s.lineups.get(1, []))
            s.libero_ids = set()
            s.sub_pairs = {}
            s.status = BroadcastStatus.LIVE
            s.result = MatchResult.IN_PROGRESS
            self._last_record = None
            logger.info("Match %s reset", s.match_id)

    # ── Logging primitive ────────────────────────────────────

    def _append(
        self,
        entry_type: str,
        team: Team,
        player_id: Optional[str] = None,
        assist_player_id: Optional[str] = None,
        metadata: Optional[LogMetadata] = None,
        parent_id: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> LogEntry:
        s = self._state
        entry = LogEntry(
            id=self._id_factory(),
            timestamp=timestamp if timestamp is not None else self._clock(),
            type=entry_type,
            team=team,
            set_number=s.current_set,
            score_snapshot=s.current_score,
            rally_state_snapshot=s.rally_state,
            serving_team_snapshot=s.serving_team,
            rotation_snapshot=tuple(s.rotation),
            player_id=player_id,
            assist_player_id=assist_player_id,
            metadata=metadata,
            parent_id=parent_id,
        )
        s.history.append(entry)
        return entry

    # ── Rally flow ───────────────────────────────────────────

    def record_stat(
        self,
        stat_type: str,
        team: Union[Team, str],
        player_id: Optional[str] = None,
        metadata: Optional[LogMetadata] = None,
        assist_player_id: Optional[str] = None,
    ) -> LogEntry:
        """
        Log a stat and apply its effect.

        Point-winning and self-error stats end the rally (with side-out
        handling); rally-starting stats put the rally in play; anything
        else is logged only.
        """
        team = Team(team)
        with self._mutating() as s:
            root = self._append(
                stat_type, team,
                player_id=player_id,
                assist_player_id=assist_player_id,
                metadata=metadata,
            )
            winner = point_winner(stat_type, team)
            if winner is not None:
                self._award_point(winner, root.id)
            elif starts_rally(stat_type):
                s.rally_state = RallyState.IN_RALLY
            logger.debug("Stat %s for %s (set %d)", stat_type, team.value, s.current_set)
        return root

    def _award_point(self, winner: Team, root_id: str) -> None:
        s = self._state
        s.set_current_score(s.current_score.plus(winner))
        if winner is not s.serving_team:
            s.serving_team = winner
            if winner is Team.MY_TEAM:
                self._rotate(RotationDirection.FORWARD, parent_id=root_id, manual=False)
        s.rally_state = RallyState.PRE_SERVE

    def start_rally(self) -> None:
        with self._mutating() as s:
            s.rally_state = RallyState.IN_RALLY

    def end_rally(self, winner: Union[Team, str]) -> LogEntry:
        """Award a rally to *winner* without a specific stat."""
        winner = Team(winner)
        with self._mutating():
            root = self._append("point_adjust", winner)
            self._award_point(winner, root.id)
        return root

    def increment_score(self, team: Union[Team, str]) -> LogEntry:
        return self.end_rally(team)

    def decrement_score(self, team: Union[Team, str]) -> Optional[LogEntry]:
        team = Team(team)
        with self._mutating() as s:
            if s.current_score.get(team) == 0:
                self._ignore("Decrement ignored: %s already at 0", team.value)
                return None
            entry = self._append("point_adjust", team)
            s.set_current_score(s.current_score.plus(team, -1))
        return entry

    def set_score(self, team: Union[Team, str], value: int) -> Optional[LogEntry]:
        team = Team(team)
        with self._mutating() as s:
            if value < 0:
                self._ignore("Negative score %d ignored for %s", value, team.value)
                return None
            previous = s.current_score.get(team)
            entry = self._append(
                "point_adjust", team, metadata=ScoreAdjustMeta(previous=previous, new=value)
            )
            s.set_current_score(s.current_score.with_value(team, value))
        return entry

    def set_serving_team(self, team: Union[Team, str]) -> None:
        team = Team(team)
        with self._mutating() as s:
            s.serving_team = team

    def choose_first_server(self, team: Union[Team, str]) -> None:
        """
        Record who serves first in the current set.

        When the opponent serves first and a lineup is on court, the
        starting rotation is shifted back one so the first side-out
        brings the planned server to position 1.
        """
        team = Team(team)
        with self._mutating() as s:
            s.serving_team = team
            s.first_server_per_set[s.current_set] = team
            if team is Team.OPPONENT and any(slot.player_id for slot in s.rotation):
                s.rotation = rotate_slots(s.rotation, RotationDirection.BACKWARD)

    def suggested_first_server(self) -> Optional[Team]:
        """Alternate from the previous set. Set 1 and the deciding set have no suggestion."""
        s = self._state
        if s.current_set == 1 or s.current_set == s.config.total_sets:
            return None
        previous = s.first_server_per_set.get(s.current_set - 1)
        return previous.other if previous is not None else None

    # ── Rotation & lineup ────────────────────────────────────

    def rotate(
        self, direction: Union[RotationDirection, str] = RotationDirection.FORWARD
    ) -> Optional[LogEntry]:
        direction = RotationDirection(direction)
        with self._mutating() as s:
            if not s.rotation:
                self._ignore("Rotate ignored: no lineup on court")
                return None
            return self._rotate(direction)

    def _rotate(
        self,
        direction: RotationDirection,
        parent_id: Optional[str] = None,
        manual: bool = True,
    ) -> Optional[LogEntry]:
        s = self._state
        if not s.rotation:
            logger.debug("Rotate ignored: no lineup on court")
            return None
        entry = self._append(
            "rotation", Team.MY_TEAM,
            metadata=RotationMeta(direction=direction.value, manual=manual),
            parent_id=parent_id,
        )
        s.rotation = rotate_slots(s.rotation, direction)
        self._auto_swap_liberos(parent_id or entry.id, entry.timestamp + 1)
        return entry

    def _auto_swap_liberos(self, group_root: str, timestamp: int) -> None:
        """Swap any front-row libero back out for their paired partner."""
        s = self._state
        for position in FRONT_ROW:
            slot = s.slot_at(position)
            if slot is None or not s.is_libero(slot):
                continue
            partner = s.sub_pairs.get(slot.player_id)
            if not partner:
                continue
            self._append(
                "substitution", Team.MY_TEAM,
                player_id=partner,
                metadata=SubstitutionMeta(
                    sub_in=partner, sub_out=slot.player_id, auto_swap=True
                ),
                parent_id=group_root,
                timestamp=timestamp,
            )
            s.rotation = replace_slot(s.rotation, LineupSlot(position, partner, False))
            logger.info("Libero %s auto-swapped for %s at P%d", slot.player_id, partner, position)

    def adjust_starting_rotation(
        self, direction: Union[RotationDirection, str] = RotationDirection.FORWARD
    ) -> None:
        """Shift the lineup without logging, used before the first serve."""
        direction = RotationDirection(direction)
        with self._mutating() as s:
            if not s.rotation:
                self._ignore("Starting rotation adjust ignored: no lineup")
                return
            s.rotation = rotate_slots(s.rotation, direction)

    def substitute(
        self, position: int, player: Player, is_libero: bool = False
    ) -> Optional[LogEntry]:
        """
        Put *player* into *position*, replacing whoever is there.

        Libero swaps and filling an empty slot are free; any other
        change costs one substitution. A player already on court at
        another position cannot come in.
        """
        with self._mutating() as s:
            current = s.slot_at(position)
            if current is None:
                self._ignore("Substitution ignored: unknown position %r", position)
                return None
            if any(
                slot.player_id == player.id and slot.position != position
                for slot in s.rotation
            ):
                self._ignore("Substitution ignored: %s already on court", player.id)
                return None

            player_out = current.player_id
            known_libero = player.id in s.libero_ids
            libero = (
                is_libero
                or known_libero
                or (player.declares_libero and player.id not in s.non_libero_ids)
            )
            consumed = not libero and bool(player_out) and player_out != player.id

            prior = [(player.id, s.sub_pairs.get(player.id))]
            if player_out:
                prior.append((player_out, s.sub_pairs.get(player_out)))

            entry = self._append(
                "substitution", Team.MY_TEAM,
                player_id=player.id,
                metadata=SubstitutionMeta(
                    sub_in=player.id,
                    sub_out=player_out,
                    sub_consumed=consumed,
                    libero_added=libero and not known_libero,
                    prior_pairs=tuple(prior),
                ),
            )

            s.rotation = replace_slot(s.rotation, LineupSlot(position, player.id, libero))
            if libero:
                s.libero_ids.add(player.id)
            if player_out:
                s.sub_pairs[player_out] = player.id
                s.sub_pairs[player.id] = player_out
            if consumed:
                s.subs_remaining = s.subs_remaining.plus(Team.MY_TEAM, -1)
        return entry

    def designate_non_libero(self, player_id: str) -> None:
        """Mark a player who lists L among their positions as not playing libero."""
        with self._mutating() as s:
            s.non_libero_ids.add(player_id)
            s.libero_ids.discard(player_id)
            s.rotation = [
                LineupSlot(slot.position, slot.player_id, False)
                if slot.player_id == player_id else slot
                for slot in s.rotation
            ]

    # ── Resources ────────────────────────────────────────────

    def use_timeout(self, team: Union[Team, str]) -> Optional[LogEntry]:
        team = Team(team)
        with self._mutating() as s:
            if s.timeouts_remaining.get(team) <= 0:
                self._ignore("No timeouts left for %s", team.value)
                return None
            entry = self._append("timeout", team, metadata=TimeoutMeta(consumed=True))
            s.timeouts_remaining = s.timeouts_remaining.plus(team, -1)
        return entry

    def use_sub(self, team: Union[Team, str]) -> None:
        team = Team(team)
        with self._mutating() as s:
            s.subs_remaining = s.subs_remaining.plus(team, -1)

    # ── Undo ─────────────────────────────────────────────────

    def undo(self) -> Optional[LogEntry]:
        """Revert the last root entry of the current set and everything derived from it."""
        with self._mutating() as s:
            group = self._pop_group()
            if not group:
                self._ignore("Nothing to undo in set %d", s.current_set)
                return None
            root = group[0]

            s.set_current_score(root.score_snapshot)
            s.rally_state = root.rally_state_snapshot
            s.serving_team = root.serving_team_snapshot
            if any(entry.type == "rotation" for entry in group):
                s.rotation = list(root.rotation_snapshot)

            meta = root.metadata
            if isinstance(meta, SubstitutionMeta) and not meta.auto_swap:
                self._revert_substitution(root, meta)
            elif isinstance(meta, TimeoutMeta) and meta.consumed:
                s.timeouts_remaining = s.timeouts_remaining.plus(root.team)

            logger.debug("Undid %s (%d entries)", root.type, len(group))
        return root

    def _pop_group(self) -> List[LogEntry]:
        s = self._state
        history = s.history
        if not history or history[-1].set_number != s.current_set:
            return []
        group: List[LogEntry] = []
        while history and history[-1].set_number == s.current_set:
            entry = history.pop()
            group.insert(0, entry)
            if not entry.is_derived:
                break
        return group

    def _revert_substitution(self, root: LogEntry, meta: SubstitutionMeta) -> None:
        s = self._state
        holder = next((slot for slot in s.rotation if slot.player_id == meta.sub_in), None)
        if holder is not None:
            before = next(
                (slot for slot in root.rotation_snapshot if slot.position == holder.position),
                None,
            )
            was_libero = bool(before and before.player_id == meta.sub_out and before.is_libero)
            s.rotation = replace_slot(
                s.rotation, LineupSlot(holder.position, meta.sub_out, was_libero)
            )
        if meta.sub_consumed:
            s.subs_remaining = s.subs_remaining.plus(root.team)
        for player_id, partner in meta.prior_pairs:
            if partner is None:
                s.sub_pairs.pop(player_id, None)
            else:
                s.sub_pairs[player_id] = partner
        if meta.libero_added:
            s.libero_ids.discard(meta.sub_in)

    # ── Sets & match ─────────────────────────────────────────

    def _current_set_closed(self) -> bool:
        s = self._state
        return bool(s.set_history) and s.set_history[-1].set_number == s.current_set

    def _close_current_set(self) -> None:
        s = self._state
        if self._current_set_closed():
            return
        score = s.current_score
        winner = Team.MY_TEAM if score.my_team > score.opponent else Team.OPPONENT
        s.sets_won = s.sets_won.plus(winner)
        s.set_history.append(SetResult(set_number=s.current_set, winner=winner, score=score))
        s.rally_state = RallyState.PRE_SERVE
        logger.info(
            "Set %d closed %d-%d, won by %s",
            s.current_set, score.my_team, score.opponent, winner.value,
        )

    def start_next_set(self) -> Optional[MatchRecord]:
        """
        Close the current set and open the next one.

        When the set just closed decides the match (or was the last
        set), the match is finalized instead and its record returned.
        """
        with self._mutating() as s:
            if s.status is BroadcastStatus.COMPLETED:
                self._ignore("start_next_set ignored: match already completed")
                return self._last_record

            self._close_current_set()
            cfg = s.config
            decided = max(s.sets_won.my_team, s.sets_won.opponent) >= cfg.sets_to_win
            if decided or s.current_set >= cfg.total_sets:
                return self._finalize()

            loser = s.set_history[-1].winner.other
            next_set = s.current_set + 1
            s.current_set = next_set
            s.set_current_score(Score())
            s.serving_team = loser
            s.rally_state = RallyState.PRE_SERVE
            s.timeouts_remaining = Score.both(cfg.timeouts_per_set)
            s.subs_remaining = Score.both(cfg.subs_per_set)
            s.rotation = list(s.lineups.get(next_set) or s.lineups.get(next_set - 1) or [])
            s.libero_ids = set()
            s.sub_pairs = {}
            logger.info("Set %d started, %s serving", next_set, loser.value)
        return None

    def finalize_match(self) -> Optional[MatchRecord]:
        """Archive the match. Calling it again returns the same record."""
        with self._mutating() as s:
            if s.status is BroadcastStatus.COMPLETED:
                self._ignore("finalize_match ignored: match already completed")
                return self._last_record
            return self._finalize()

    def _finalize(self) -> Optional[MatchRecord]:
        s = self._state
        self._close_current_set()
        s.result = compute_result(s)
        record = build_match_record(s, self._clock())
        s.status = BroadcastStatus.COMPLETED
        self._last_record = record
        logger.info("Match %s finalized: %s", s.match_id, s.result.value)
        self._save_record(record)
        return record

    def _save_record(self, record: MatchRecord) -> None:
        """Hand *record* to the sink; a failing sink is logged and kept in last_record_error."""
        self._last_record_error = None
        if self._record_sink is None:
            return
        try:
            self._record_sink.save_match_record(record)
        except Exception as exc:
            self._last_record_error = exc
            logger.error("Saving match record %s failed: %s", record.id, exc)

    # ── Queries ──────────────────────────────────────────────

    def is_set_over(self) -> bool:
        s = self._state
        if self._current_set_closed():
            return True
        return s.config.rules_for(s.current_set).is_finished(s.current_score)

    def match_winner(self) -> Optional[Team]:
        s = self._state
        target = s.config.sets_to_win
        if s.sets_won.my_team >= target:
            return Team.MY_TEAM
        if s.sets_won.opponent >= target:
            return Team.OPPONENT
        return None

    def broadcast_status(self) -> BroadcastStatus:
        if self._state.status is BroadcastStatus.COMPLETED:
            return BroadcastStatus.COMPLETED
        if self.is_set_over():
            return BroadcastStatus.BETWEEN_SETS
        return BroadcastStatus.LIVE

    def front_row_liberos(self) -> List[LineupSlot]:
        return front_row_liberos(self._state.rotation, self._state.libero_ids)

    def current_rally(self) -> List[LogEntry]:
        """Trailing entries of the current set logged since the last point."""
        s = self._state
        score = s.current_score
        rally: List[LogEntry] = []
        for entry in reversed(s.history):
            if entry.set_number != s.current_set or entry.score_snapshot != score:
                break
            rally.insert(0, entry)
        return rally
