# Area: Test Support
"""Shared fixtures: hand-driven clock and timers, inline executor, engines."""

import itertools
import os
import tempfile
from concurrent.futures import Executor, Future

import pytest

from volley_live._engine.rally_engine import RallyEngine
from volley_live._engine.state import LineupSlot, Player


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    """Stand-in for threading.Timer that fires only when the factory advances."""

    def __init__(self, factory, interval, function, args=None, kwargs=None):
        self.factory = factory
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.fire_at = None
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True
        self.fire_at = self.factory.clock.now + self.interval

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return self.started and not self.cancelled and not self.fired


class FakeTimerFactory:
    """Creates FakeTimers against a FakeClock; ``advance`` fires the due ones in order."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(self, interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.active]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = sorted(
                (t for t in self.active if t.fire_at <= target + 1e-9),
                key=lambda t: t.fire_at,
            )
            if not due:
                break
            timer = due[0]
            self.clock.now = max(self.clock.now, timer.fire_at)
            timer.fired = True
            timer.function(*timer.args, **timer.kwargs)
        self.clock.now = target


class InlineExecutor(Executor):
    """Runs submitted work immediately on the caller's thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class RecordingSink:
    """MatchRecordSink that keeps what it is given."""

    def __init__(self):
        self.records = []

    def save_match_record(self, record):
        self.records.append(record)


ROSTER = [
    Player("A", "Ana", "1", ("S",)),
    Player("B", "Bo", "2", ("OH",)),
    Player("C", "Cy", "3", ("MB",)),
    Player("D", "Di", "4", ("OPP",)),
    Player("E", "Ed", "5", ("OH",)),
    Player("F", "Flo", "6", ("MB",)),
    Player("L", "Lee", "7", ("L",)),
    Player("G", "Gus", "8", ("OH",)),
]

LINEUP = [LineupSlot(i, pid) for i, pid in zip(range(1, 7), "ABCDEF")]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return FakeTimerFactory(clock)


@pytest.fixture
def executor():
    return InlineExecutor()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def roster():
    return list(ROSTER)


@pytest.fixture
def lineup():
    return list(LINEUP)


@pytest.fixture
def make_engine(sink):
    """Factory for engines with deterministic ids and millisecond ticks."""

    def _make(with_lineup: bool = True, **match_kwargs) -> RallyEngine:
        ids = itertools.count(1)
        ticks = itertools.count(1_000, 10)
        engine = RallyEngine(
            record_sink=sink,
            clock=lambda: next(ticks),
            id_factory=lambda: f"e{next(ids)}",
        )
        match_kwargs.setdefault("roster", list(ROSTER))
        if with_lineup:
            match_kwargs.setdefault("lineups", {1: list(LINEUP)})
        engine.new_match("Hawks", "Rivals", **match_kwargs)
        return engine

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def db_path():
    """Temporary SQLite file, removed afterwards."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    os.unlink(path)
