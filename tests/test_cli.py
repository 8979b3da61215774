# Area: CLI Tests
"""Tests for argument parsing and the demo and transcript commands."""

import pytest

from volley_live.cli import parse_args, run_demo, run_transcript
from volley_live.config import DEFAULTS
from volley_live.persistence import SqliteMatchStateStore


@pytest.fixture
def config(db_path):
    return dict(DEFAULTS, db_path=db_path)


class TestParseArgs:
    def test_flags(self):
        args = parse_args(["--demo", "--db", "x.db", "--config", "c.json"])
        assert args.demo is True
        assert args.db == "x.db"
        assert args.config == "c.json"
        assert args.transcript is None

    def test_transcript(self):
        assert parse_args(["--transcript", "ace #7"]).transcript == "ace #7"


class TestCommands:
    def test_demo_plays_to_completion(self, config, capsys):
        assert run_demo(config) == 0
        out = capsys.readouterr().out
        assert "Broadcasting as" in out
        assert "Final: Win 2-0" in out

    def test_transcript_resumes_saved_match(self, config, db_path, capsys):
        assert run_transcript(config, "ace") == 0
        assert run_transcript(config, "they kill") == 0
        state = SqliteMatchStateStore(db_path).load("match-storage")
        assert (state.current_score.my_team, state.current_score.opponent) == (1, 1)
        assert "Applied 1 action(s)" in capsys.readouterr().out
