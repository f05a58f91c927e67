"""Workout plans -- the immutable input of a timer run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ExecutionMode(Enum):
    """Order in which exercises and rounds are visited."""

    SEQUENTIAL = "sequential"
    ROUND_ROBIN = "round_robin"


class TimerMode(Enum):
    """Flavour of run: bare work/rest intervals or a list of named exercises."""

    SIMPLE_INTERVALS = "simple_intervals"
    EXERCISE_LIST = "exercise_list"


class InvalidPlanError(ValueError):
    """Raised when a plan cannot be executed."""


def format_clock(seconds: int) -> str:
    """Format *seconds* as ``M:SS``."""
    total = max(int(seconds), 0)
    return f"{total // 60}:{total % 60:02d}"


@dataclass(frozen=True)
class PlannedExercise:
    """One named exercise in a workout."""

    name: str
    duration_seconds: int
    category: str = ""


@dataclass(frozen=True)
class WorkoutPlan:
    """Ordered exercises plus the timing parameters of a run.

    A run always executes the plan it was started with.
    """

    exercises: tuple[PlannedExercise, ...]
    rounds: int = 1
    rest_between_exercises: int = 0
    rest_between_rounds: int = 0
    execution_mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    mode: TimerMode = TimerMode.EXERCISE_LIST
    warmup_seconds: int = 0

    def __post_init__(self) -> None:
        # Accept any iterable of exercises but always store a tuple.
        object.__setattr__(self, "exercises", tuple(self.exercises))

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    @property
    def total_work_units(self) -> int:
        """Number of work intervals in the run (exercises x rounds)."""
        return self.exercise_count * self.rounds

    @property
    def total_duration_seconds(self) -> int:
        """Seconds from the first working phase to completion.

        Zero-length rests are never entered, so they contribute nothing.
        """
        n = self.exercise_count
        r = self.rounds
        work = r * sum(ex.duration_seconds for ex in self.exercises)
        if self.execution_mode == ExecutionMode.ROUND_ROBIN:
            rests = r * (n - 1) * self.rest_between_exercises
            rests += (r - 1) * self.rest_between_rounds
        else:
            rests = n * (r - 1) * self.rest_between_rounds
            rests += (n - 1) * self.rest_between_exercises
        return self.warmup_seconds + work + rests

    def validate(self) -> None:
        """Raise :class:`InvalidPlanError` if the plan cannot be executed."""
        if not self.exercises:
            raise InvalidPlanError("plan has no exercises")
        if self.rounds < 1:
            raise InvalidPlanError(f"rounds must be at least 1, got {self.rounds}")
        if self.rest_between_exercises < 0:
            raise InvalidPlanError(
                f"rest between exercises must not be negative, got {self.rest_between_exercises}"
            )
        if self.rest_between_rounds < 0:
            raise InvalidPlanError(
                f"rest between rounds must not be negative, got {self.rest_between_rounds}"
            )
        if self.warmup_seconds < 0:
            raise InvalidPlanError(f"warmup must not be negative, got {self.warmup_seconds}")
        for exercise in self.exercises:
            if exercise.duration_seconds <= 0:
                raise InvalidPlanError(
                    f"exercise {exercise.name!r} must last at least 1 second, "
                    f"got {exercise.duration_seconds}"
                )


@dataclass(frozen=True)
class TimerConfiguration:
    """Settings of a simple interval timer.

    The same state machine runs both flavours; ``cycles_per_round`` plays the
    role of "exercises per round" once converted with :meth:`to_plan`.
    """

    work_duration_seconds: int = 30
    rest_duration_seconds: int = 10
    cycles_per_round: int = 4
    total_rounds: int = 3
    rest_between_rounds_seconds: int = 60
    warmup_seconds: int = 0
    work_label: str = field(default="Work", compare=False)

    def to_plan(self) -> WorkoutPlan:
        """Return the round-robin :class:`WorkoutPlan` equivalent of this timer."""
        work = PlannedExercise(name=self.work_label, duration_seconds=self.work_duration_seconds)
        return WorkoutPlan(
            exercises=(work,) * max(self.cycles_per_round, 0),
            rounds=self.total_rounds,
            rest_between_exercises=self.rest_duration_seconds,
            rest_between_rounds=self.rest_between_rounds_seconds,
            execution_mode=ExecutionMode.ROUND_ROBIN,
            mode=TimerMode.SIMPLE_INTERVALS,
            warmup_seconds=self.warmup_seconds,
        )

    @property
    def total_duration_seconds(self) -> int:
        return self.to_plan().total_duration_seconds
