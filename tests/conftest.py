"""Shared test fixtures: a recording announcer, a manual ticker and plan builders."""

from __future__ import annotations

from typing import Callable

import pytest

from roundtimer.core.announcer import Announcer, UpcomingKind
from roundtimer.core.engine import ExecutionEngine
from roundtimer.core.plan import ExecutionMode, PlannedExercise, WorkoutPlan
from roundtimer.core.settings import Settings
from roundtimer.core.ticker import ManualTicker


class RecordingAnnouncer(Announcer):
    """Announcer double that records every call.

    With ``hold_countdown`` the go-signal is kept until :meth:`go` is called,
    imitating a countdown that takes real time to speak.
    """

    def __init__(self, hold_countdown: bool = False) -> None:
        self.calls: list[tuple] = []
        self.hold_countdown = hold_countdown
        self.pending_go: Callable[[], None] | None = None
        self.pending_count: Callable[[int], None] | None = None

    def announce_countdown_and_run(self, label, on_go, on_count=None) -> None:
        self.calls.append(("countdown", label))
        if self.hold_countdown:
            self.pending_go = on_go
            self.pending_count = on_count
        else:
            on_go()

    def go(self) -> None:
        """Deliver the held go-signal, as the audio device would."""
        assert self.pending_go is not None
        self.pending_go()

    def announce_upcoming(self, kind: UpcomingKind, next_label=None) -> None:
        self.calls.append(("upcoming", kind, next_label))

    def announce_rest(self, duration_seconds: int, next_round=None) -> None:
        self.calls.append(("rest", duration_seconds, next_round))

    def announce_complete(self) -> None:
        self.calls.append(("complete",))

    def play_bell(self) -> None:
        self.calls.append(("bell",))

    def speak(self, text: str) -> None:
        self.calls.append(("speak", text))

    def stop(self) -> None:
        self.calls.append(("stop",))

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def spoken(self) -> list[tuple]:
        """Every call except ``stop``."""
        return [call for call in self.calls if call[0] != "stop"]


PlanFactory = Callable[..., WorkoutPlan]
EngineFactory = Callable[..., tuple]


@pytest.fixture
def make_plan() -> PlanFactory:
    """Build a plan with exercises named ``Exercise 1``, ``Exercise 2``, ..."""

    def _make(
        durations: tuple[int, ...] = (10, 10),
        rounds: int = 1,
        rest: int = 0,
        round_rest: int = 0,
        execution_mode: ExecutionMode = ExecutionMode.SEQUENTIAL,
        warmup: int = 0,
    ) -> WorkoutPlan:
        return WorkoutPlan(
            exercises=tuple(
                PlannedExercise(name=f"Exercise {i + 1}", duration_seconds=d)
                for i, d in enumerate(durations)
            ),
            rounds=rounds,
            rest_between_exercises=rest,
            rest_between_rounds=round_rest,
            execution_mode=execution_mode,
            warmup_seconds=warmup,
        )

    return _make


@pytest.fixture
def make_engine() -> EngineFactory:
    """Build ``(engine, announcer, ticker)`` wired together."""

    def _make(
        settings: Settings | None = None,
        hold_countdown: bool = False,
        wall_clock: Callable[[], float] | None = None,
        on_change=None,
    ):
        announcer = RecordingAnnouncer(hold_countdown=hold_countdown)
        ticker = ManualTicker()
        kwargs = {"on_change": on_change}
        if wall_clock is not None:
            kwargs["wall_clock"] = wall_clock
        engine = ExecutionEngine(announcer, ticker, settings, **kwargs)
        return engine, announcer, ticker

    return _make
