"""Execution engine -- the state machine that drives a workout or interval run.

One :class:`ExecutionEngine` owns the state of one run.  It is driven by a
1-second :class:`~roundtimer.core.ticker.Ticker` and a handful of user
commands, talks to an :class:`~roundtimer.core.announcer.Announcer` at phase
boundaries, and exposes an immutable :class:`ExecutionSnapshot` for
presentation.  The same transition function serves live ticking and
background reconciliation; only the latter runs silently.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from roundtimer.core.announcer import (
    Announcer,
    AnnouncerError,
    CountdownToken,
    SilentAnnouncer,
    UpcomingKind,
)
from roundtimer.core.plan import (
    ExecutionMode,
    InvalidPlanError,
    TimerConfiguration,
    TimerMode,
    WorkoutPlan,
)
from roundtimer.core.settings import Settings
from roundtimer.core.ticker import Ticker

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Stage of a run."""

    READY = "ready"
    COUNTDOWN = "countdown"
    WARMUP = "warmup"
    RUNNING = "running"
    RESTING = "resting"
    ROUND_REST = "round_rest"
    PAUSED = "paused"
    COMPLETED = "completed"


# Phases in which the ticker is live and time counts down.
_ACTIVE_PHASES = frozenset({Phase.WARMUP, Phase.RUNNING, Phase.RESTING, Phase.ROUND_REST})

Program = Union[WorkoutPlan, TimerConfiguration]


@dataclass(frozen=True)
class ExecutionSnapshot:
    """Read-only view of a run for the presentation layer."""

    phase: Phase
    current_exercise_index: int
    current_round: int
    time_remaining_seconds: int
    elapsed_seconds: int
    is_paused: bool
    workout_progress: float
    exercise_progress: float
    exercise_name: str | None = None
    next_exercise_name: str | None = None
    total_rounds: int = 0
    exercise_count: int = 0
    mode: TimerMode | None = None


class ExecutionEngine:
    """State machine for one timed run.

    Mutating methods are serialized by a re-entrant lock so that a tick
    source or announcer callback on another thread cannot interleave with a
    user command.  Commands that do not apply to the current phase (fast
    double taps, pausing a countdown) are ignored and return ``False``.
    """

    def __init__(
        self,
        announcer: Announcer,
        ticker: Ticker,
        settings: Settings | None = None,
        *,
        wall_clock: Callable[[], float] = time.time,
        on_change: Callable[[ExecutionSnapshot], None] | None = None,
    ) -> None:
        self._settings: Settings = settings if settings is not None else Settings()
        self._announcer: Announcer = (
            announcer if self._settings.voice_enabled else SilentAnnouncer()
        )
        self._ticker = ticker
        self._wall_clock = wall_clock
        self._on_change = on_change
        self._lock = threading.RLock()

        self._program: Program | None = None
        self._plan: WorkoutPlan | None = None
        self._countdown_token: CountdownToken | None = None
        self._background_at: float | None = None
        self._reset_state()

    # -- public interface ----------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def plan(self) -> WorkoutPlan | None:
        """The plan of the current (or last) run."""
        return self._plan

    @property
    def is_finished(self) -> bool:
        """True when no run is in progress (never started, stopped or completed)."""
        return self._phase in (Phase.READY, Phase.COMPLETED)

    def start(self, program: Program) -> bool:
        """Start a run of *program* from its first exercise.

        Any run in progress is cancelled first.  An invalid plan does not
        raise: the engine goes straight to ``completed`` and ``False`` is
        returned.  The ticker is only started once the announcer signals
        "Go!".
        """
        with self._lock:
            self._cancel_run()
            plan = program.to_plan() if isinstance(program, TimerConfiguration) else program
            self._program = program
            self._plan = plan
            self._reset_state()

            try:
                plan.validate()
            except InvalidPlanError as exc:
                logger.warning("Cannot start run: %s", exc)
                self._enter(Phase.COMPLETED, 0)
                self._notify()
                return False

            logger.info(
                "Starting %s run: %d exercise(s) x %d round(s), %s",
                plan.mode.value,
                plan.exercise_count,
                plan.rounds,
                plan.execution_mode.value,
            )
            self._enter(Phase.COUNTDOWN, self._settings.countdown_seconds)
            token = CountdownToken(lambda: self._begin_first_interval(token))
            self._countdown_token = token
            self._notify()

            label = plan.exercises[0].name if plan.mode == TimerMode.EXERCISE_LIST else None
            try:
                self._announcer.stop()
                self._announcer.announce_countdown_and_run(
                    label, token.fire, functools.partial(self._on_countdown_number, token)
                )
            except AnnouncerError as exc:
                logger.warning("Countdown announcement failed, starting immediately: %s", exc)
                token.fire()
            return True

    def restart(self) -> bool:
        """Start the last program again from the beginning."""
        with self._lock:
            if self._program is None:
                logger.debug("restart() ignored: nothing was started")
                return False
            return self.start(self._program)

    def stop(self) -> None:
        """Cancel the run and return to ``ready``.

        The ticker is stopped and the countdown token cancelled before this
        returns, so no pending callback can reach the engine afterwards.
        """
        with self._lock:
            self._cancel_run()
            self._reset_state()
            self._background_at = None
            logger.info("Run stopped")
            self._notify()

    def pause(self) -> bool:
        with self._lock:
            if self._phase not in _ACTIVE_PHASES:
                logger.debug("pause() ignored in %s phase", self._phase.value)
                return False
            self._ticker.stop()
            self._saved_phase = self._phase
            self._phase = Phase.PAUSED
            self._call_announcer(self._announcer.speak, "Paused")
            logger.debug("Paused during %s", self._saved_phase.value)
            self._notify()
            return True

    def resume(self) -> bool:
        with self._lock:
            if self._phase != Phase.PAUSED or self._saved_phase is None:
                logger.debug("resume() ignored in %s phase", self._phase.value)
                return False
            self._phase = self._saved_phase
            self._saved_phase = None
            self._call_announcer(self._announcer.speak, "Resume")
            self._ticker.start(self.tick)
            logger.debug("Resumed %s", self._phase.value)
            self._notify()
            return True

    def toggle_pause(self) -> bool:
        with self._lock:
            if self._phase == Phase.PAUSED:
                return self.resume()
            return self.pause()

    def skip(self) -> bool:
        """End the current interval now, as if its time had run out.

        Speech in progress is cut off and no "upcoming" warning is given.
        During the start countdown, the first interval begins immediately.
        """
        with self._lock:
            if self._phase == Phase.COUNTDOWN and self._countdown_token is not None:
                self._silence()
                self._countdown_token.fire()
                return True
            if self._phase not in _ACTIVE_PHASES:
                logger.debug("skip() ignored in %s phase", self._phase.value)
                return False
            self._silence()
            logger.debug("Skipping %s", self._phase.value)
            self._time_remaining = 0
            self._advance(announce=True)
            self._notify()
            return True

    def tick(self) -> None:
        """Advance the run by one second."""
        with self._lock:
            if self._phase not in _ACTIVE_PHASES:
                return
            if self._time_remaining > 0:
                self._time_remaining -= 1
                self._elapsed += 1

            warning = self._settings.warning_seconds
            if warning > 0 and self._time_remaining == warning and not self._upcoming_announced:
                self._upcoming_announced = True
                self._announce_upcoming()

            if self._time_remaining <= 0:
                self._advance(announce=True)
            self._notify()

    # -- background reconciliation -------------------------------------------

    def reconcile(self, elapsed_seconds: int) -> bool:
        """Fast-forward the run by *elapsed_seconds* without any announcement.

        The resulting state equals that of calling :meth:`tick` as many
        times.  Each loop iteration consumes a whole phase, so the cost is
        proportional to the number of transitions, not to the elapsed time.
        Time beyond the end of the workout is discarded.  A paused run does
        not advance.
        """
        with self._lock:
            if elapsed_seconds <= 0 or self._phase not in _ACTIVE_PHASES:
                return False

            remaining = int(elapsed_seconds)
            transitions = 0
            while remaining > 0 and self._phase != Phase.COMPLETED:
                step = min(self._time_remaining, remaining)
                self._time_remaining -= step
                self._elapsed += step
                remaining -= step
                if self._time_remaining <= 0:
                    self._advance(announce=False)
                    transitions += 1

            if self._phase in _ACTIVE_PHASES:
                # A warning point passed while suspended must not be announced later.
                self._upcoming_announced = self._time_remaining <= self._settings.warning_seconds
                self._ticker.start(self.tick)

            logger.info(
                "Reconciled %d background second(s) over %d transition(s), now %s",
                elapsed_seconds,
                transitions,
                self._phase.value,
            )
            self._notify()
            return True

    def enter_background(self) -> None:
        """Record when the host was suspended and stop live ticking."""
        with self._lock:
            self._background_at = self._wall_clock()
            self._ticker.stop()
            logger.debug("Entered background during %s", self._phase.value)

    def enter_foreground(self) -> bool:
        """Apply the time spent suspended; ``False`` if no suspension was recorded."""
        with self._lock:
            if self._background_at is None:
                return False
            elapsed = max(int(self._wall_clock() - self._background_at), 0)
            self._background_at = None
            logger.debug("Entered foreground after %d second(s)", elapsed)
            if not self.reconcile(elapsed) and self._phase in _ACTIVE_PHASES:
                self._ticker.start(self.tick)
            return True

    # -- snapshot & progress -------------------------------------------------

    @property
    def workout_progress(self) -> float:
        """Fraction of work intervals already finished, 1.0 once completed."""
        if self._phase == Phase.COMPLETED:
            return 1.0
        plan = self._plan
        if plan is None or plan.total_work_units <= 0:
            return 0.0
        n, rounds = plan.exercise_count, plan.rounds
        if plan.execution_mode == ExecutionMode.ROUND_ROBIN:
            done = (self._round - 1) * n + self._index
        else:
            done = self._index * rounds + (self._round - 1)
        return done / (n * rounds)

    @property
    def exercise_progress(self) -> float:
        """Time left in the current phase as a fraction of its length."""
        phase = self._saved_phase if self._phase == Phase.PAUSED else self._phase
        if phase == Phase.READY:
            return 1.0
        if phase == Phase.COMPLETED or self._phase_duration <= 0:
            return 0.0
        return min(max(self._time_remaining / self._phase_duration, 0.0), 1.0)

    def snapshot(self) -> ExecutionSnapshot:
        with self._lock:
            plan = self._plan
            return ExecutionSnapshot(
                phase=self._phase,
                current_exercise_index=self._index,
                current_round=self._round,
                time_remaining_seconds=self._time_remaining,
                elapsed_seconds=self._elapsed,
                is_paused=self._phase == Phase.PAUSED,
                workout_progress=self.workout_progress,
                exercise_progress=self.exercise_progress,
                exercise_name=self._exercise_name(self._index),
                next_exercise_name=self._upcoming_exercise_name(),
                total_rounds=plan.rounds if plan is not None else 0,
                exercise_count=plan.exercise_count if plan is not None else 0,
                mode=plan.mode if plan is not None else None,
            )

    # -- transitions ---------------------------------------------------------

    def _advance(self, *, announce: bool) -> None:
        """Leave the current phase; *announce* is false during reconciliation."""
        phase = self._phase
        if phase == Phase.WARMUP:
            self._bell(announce)
            self._enter_running(0, 1)
        elif phase == Phase.RUNNING:
            self._bell(announce)
            upcoming = self._next_position()
            if upcoming is None:
                self._complete(announce)
                return
            index, round_, rest_phase = upcoming
            rest = self._rest_length(rest_phase)
            if rest <= 0:
                # Zero-length rests are elided rather than entered and left.
                self._enter_running(index, round_)
                return
            self._enter(rest_phase, rest)
            if announce and (rest_phase == Phase.ROUND_REST or self._is_exercise_list):
                next_round = round_ if rest_phase == Phase.ROUND_REST else None
                self._call_announcer(self._announcer.announce_rest, rest, next_round)
        elif phase in (Phase.RESTING, Phase.ROUND_REST):
            self._bell(announce)
            upcoming = self._next_position()
            if upcoming is None:
                self._complete(announce)
                return
            self._enter_running(upcoming[0], upcoming[1])

    def _next_position(self) -> tuple[int, int, Phase] | None:
        """Return ``(index, round, rest phase)`` of the next interval, or ``None``."""
        if self._plan is None:
            return None
        last_index = self._plan.exercise_count - 1
        rounds = self._plan.rounds
        if self._plan.execution_mode == ExecutionMode.ROUND_ROBIN:
            if self._index < last_index:
                return self._index + 1, self._round, Phase.RESTING
            if self._round < rounds:
                return 0, self._round + 1, Phase.ROUND_REST
            return None
        if self._round < rounds:
            return self._index, self._round + 1, Phase.ROUND_REST
        if self._index < last_index:
            return self._index + 1, 1, Phase.RESTING
        return None

    def _rest_length(self, rest_phase: Phase) -> int:
        if self._plan is None:
            return 0
        if rest_phase == Phase.ROUND_REST:
            return self._plan.rest_between_rounds
        return self._plan.rest_between_exercises

    def _enter_running(self, index: int, round_: int) -> None:
        if self._plan is None:
            return
        self._index = index
        self._round = round_
        self._enter(Phase.RUNNING, self._plan.exercises[index].duration_seconds)

    def _enter(self, phase: Phase, seconds: int) -> None:
        self._phase = phase
        self._time_remaining = seconds
        self._phase_duration = seconds
        self._upcoming_announced = False
        logger.debug(
            "Entered %s for %ds (exercise %d, round %d)",
            phase.value,
            seconds,
            self._index,
            self._round,
        )

    def _complete(self, announce: bool) -> None:
        self._ticker.stop()
        self._enter(Phase.COMPLETED, 0)
        logger.info("Run completed after %d second(s)", self._elapsed)
        if announce:
            self._call_announcer(self._announcer.announce_complete)

    def _begin_first_interval(self, token: CountdownToken) -> None:
        """Continuation of the start countdown, run when "Go!" starts.

        A go-signal that fired before a stop() or restart() took the lock
        belongs to a run that no longer exists and is dropped.
        """
        with self._lock:
            if (
                token is not self._countdown_token
                or self._phase != Phase.COUNTDOWN
                or self._plan is None
            ):
                logger.debug("Dropped go-signal of a cancelled countdown")
                return
            self._countdown_token = None
            if self._plan.warmup_seconds > 0:
                self._enter(Phase.WARMUP, self._plan.warmup_seconds)
            else:
                self._enter_running(0, 1)
            if self._background_at is None:
                self._ticker.start(self.tick)
            else:
                # Went to background mid-countdown: count from the go-signal.
                self._background_at = self._wall_clock()
            self._notify()

    def _on_countdown_number(self, token: CountdownToken, number: int) -> None:
        with self._lock:
            if token is not self._countdown_token or not token.pending:
                return
            self._time_remaining = number
            self._notify()

    # -- announcements -------------------------------------------------------

    @property
    def _is_exercise_list(self) -> bool:
        return self._plan is not None and self._plan.mode == TimerMode.EXERCISE_LIST

    def _announce_upcoming(self) -> None:
        if self._phase != Phase.RUNNING:
            kind = UpcomingKind.REST_ENDING
        elif self._is_exercise_list and self._next_position() is None:
            kind = UpcomingKind.LAST_WORK_ENDING
        else:
            kind = UpcomingKind.WORK_ENDING
        next_label = self._upcoming_exercise_name() if self._is_exercise_list else None
        self._call_announcer(self._announcer.announce_upcoming, kind, next_label)

    def _bell(self, announce: bool) -> None:
        if announce and self._settings.sound_effects_enabled:
            self._call_announcer(self._announcer.play_bell, interrupt=False)

    def _call_announcer(
        self, method: Callable[..., None], *args: object, interrupt: bool = True
    ) -> None:
        """Invoke an announcer *method*, stopping current speech first.

        Audio failures are logged and never stop the timer.
        """
        try:
            if interrupt:
                self._announcer.stop()
            method(*args)
        except AnnouncerError as exc:
            logger.warning("Announcement failed: %s", exc)

    def _silence(self) -> None:
        try:
            self._announcer.stop()
        except AnnouncerError as exc:
            logger.warning("Could not stop announcer: %s", exc)

    # -- private helpers -----------------------------------------------------

    def _exercise_name(self, index: int) -> str | None:
        if self._plan is None or self._phase == Phase.READY:
            return None
        if 0 <= index < self._plan.exercise_count:
            return self._plan.exercises[index].name
        return None

    def _upcoming_exercise_name(self) -> str | None:
        """Name of the exercise that runs after the current phase."""
        phase = self._saved_phase if self._phase == Phase.PAUSED else self._phase
        if phase in (Phase.COUNTDOWN, Phase.WARMUP):
            return self._exercise_name(0)
        if phase not in _ACTIVE_PHASES:
            return None
        upcoming = self._next_position()
        return self._exercise_name(upcoming[0]) if upcoming is not None else None

    def _cancel_run(self) -> None:
        self._ticker.stop()
        if self._countdown_token is not None:
            self._countdown_token.cancel()
            self._countdown_token = None
        self._silence()

    def _reset_state(self) -> None:
        self._phase = Phase.READY
        self._saved_phase: Phase | None = None
        self._index = 0
        self._round = 1
        self._time_remaining = 0
        self._phase_duration = 0
        self._elapsed = 0
        self._upcoming_announced = False

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())
