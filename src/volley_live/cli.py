# Area: Shared
"""
volley_live.cli — Command-line interface
========================================

Provides CLI entry point for the scorer.

Usage:
    python -m volley_live --demo                       # Scripted match, in-memory broadcast
    python -m volley_live --transcript "ace #7"        # Commit one rally to the saved match
    python -m volley_live --config config.json --demo  # Use a config file

Settings come from the config file and VOLLEY_* environment variables
(a .env file is honoured).
"""

import argparse
import sys
from typing import Any, Dict, List

from ._engine.enums import BroadcastStatus, Team
from ._engine.state import LineupSlot, Player
from ._shared.logging_config import setup_logging
from .config import load_config
from .errors import BatchCommitError, ConfigError
from .scorer import ScorerSession

DEMO_OWNER_ID = "demo-coach"

DEMO_ROSTER = [
    Player("p1", "Ava", "1", ("S",)),
    Player("p2", "Bea", "2", ("OH",)),
    Player("p3", "Cleo", "3", ("MB",)),
    Player("p4", "Dana", "4", ("OPP",)),
    Player("p5", "Eve", "5", ("OH",)),
    Player("p6", "Fay", "6", ("MB",)),
    Player("p7", "Gia", "7", ("L",)),
]

DEMO_LINEUP = [LineupSlot(i, f"p{i}") for i in range(1, 7)]

# Alternating my/opponent rally outcomes, enough to finish any set
DEMO_RALLIES = [
    "good serve, kill #2 assist #1",
    "they kill",
    "ace #5",
    "perfect pass, attack error",
    "opponent serve error",
    "block #3",
]


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Volleyball live scorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m volley_live --demo
  python -m volley_live --transcript "good serve, kill #2"
  VOLLEY_OWNER_ID=coach-1 python -m volley_live --config config.json --demo
        """,
    )
    parser.add_argument("--config", type=str, help="Path to JSON config file")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Play a scripted match while broadcasting to an in-memory store",
    )
    parser.add_argument(
        "--transcript",
        type=str,
        help="Parse one rally description and commit it to the saved match",
    )
    parser.add_argument("--db", type=str, help="Override db_path")
    return parser.parse_args(argv)


def _score_line(session: ScorerSession) -> str:
    s = session.engine.state
    score = s.current_score
    return (
        f"Set {s.current_set}: {s.my_team_name} {score.my_team} - "
        f"{score.opponent} {s.opponent_name} "
        f"(sets {s.sets_won.my_team}-{s.sets_won.opponent}, "
        f"{s.serving_team.value} serving)"
    )


def run_demo(config: Dict[str, Any]) -> int:
    config = dict(config)
    config["owner_id"] = config.get("owner_id") or DEMO_OWNER_ID
    session = ScorerSession(config)
    try:
        session.new_match(
            "Demo Hawks", "Rivals", lineups={1: DEMO_LINEUP}, roster=DEMO_ROSTER
        )
        result = session.start_broadcast()
        if not result.success:
            print(f"Error: {result.error}", file=sys.stderr)
            return 1
        print(f"Broadcasting as {result.code}")

        viewers = session.ingestor.store
        viewers.register_viewer(result.code, "device-abc", "Grandma")
        viewers.send_cheer(result.code)

        engine = session.engine
        rally = 0
        while engine.state.status is not BroadcastStatus.COMPLETED:
            while not engine.is_set_over():
                session.commit_transcript(DEMO_RALLIES[rally % len(DEMO_RALLIES)])
                rally += 1
                # Tip the set to the home side every third rally
                if rally % 3 == 0 and not engine.is_set_over():
                    engine.end_rally(Team.MY_TEAM)
            print(_score_line(session))
            session.end_set()

        record = engine.last_record
        print(f"Final: {record.result.value} {record.sets_won.my_team}-{record.sets_won.opponent}")
        return 0
    finally:
        session.close()


def run_transcript(config: Dict[str, Any], transcript: str) -> int:
    session = ScorerSession(config)
    try:
        if not session.resume():
            session.new_match("My Team", "Opponent")
        try:
            applied = session.commit_transcript(transcript)
        except BatchCommitError:
            return 1
        print(f"Applied {applied} action(s). {_score_line(session)}")
        return 0
    finally:
        session.close()


def main(argv: List[str] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.db:
        config["db_path"] = args.db

    setup_logging(config["log_file"])

    if args.demo:
        return run_demo(config)
    if args.transcript:
        return run_transcript(config, args.transcript)

    print("Error: nothing to do. Use --demo or --transcript.", file=sys.stderr)
    return 1
