"""CLI entry point for roundtimer.

Uses Click to expose the ``roundtimer`` command group.  Timer commands build
a plan from their options, then drive an :class:`ExecutionEngine` with a
wall-clock ticker until the run completes or is interrupted.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, TypeVar

import click

import roundtimer
from roundtimer.cli.console import ConsoleAnnouncer
from roundtimer.core.engine import ExecutionEngine, ExecutionSnapshot, Phase, Program
from roundtimer.core.plan import (
    ExecutionMode,
    InvalidPlanError,
    PlannedExercise,
    TimerConfiguration,
    WorkoutPlan,
    format_clock,
)
from roundtimer.core.settings import Settings, SettingsError, load_settings, save_settings
from roundtimer.core.ticker import MonotonicTicker

T = TypeVar("T")

_MODES = {
    "sequential": ExecutionMode.SEQUENTIAL,
    "round-robin": ExecutionMode.ROUND_ROBIN,
}

_PHASE_LABELS = {
    Phase.COUNTDOWN: "Get ready",
    Phase.WARMUP: "Warm up",
    Phase.RUNNING: "Work",
    Phase.RESTING: "Rest",
    Phase.ROUND_REST: "Round rest",
    Phase.PAUSED: "Paused",
    Phase.COMPLETED: "Complete",
}


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting plan and settings errors to a CLI error.

    The message is printed to stderr and the process exits with code 1.
    """
    try:
        return action()
    except (InvalidPlanError, SettingsError) as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _settings(ctx: click.Context) -> Settings:
    config_dir = ctx.obj.get("config_dir")
    return _run(lambda: load_settings(config_dir))


def _pick(value: int | None, default: int) -> int:
    return default if value is None else value


def _parse_exercise(text: str, default_duration: int) -> PlannedExercise:
    """Parse ``NAME`` or ``NAME:SECONDS`` into a :class:`PlannedExercise`."""
    name, sep, seconds = text.rpartition(":")
    if not sep:
        return PlannedExercise(name=text.strip(), duration_seconds=default_duration)
    try:
        duration = int(seconds)
    except ValueError:
        raise click.BadParameter(
            f"{text!r}: duration must be a whole number of seconds", param_hint="--exercise"
        ) from None
    return PlannedExercise(name=name.strip(), duration_seconds=duration)


class _StatusPrinter:
    """Print one status line whenever the phase, exercise or round changes."""

    def __init__(self) -> None:
        self._last: tuple[Phase, int, int] | None = None

    def __call__(self, snap: ExecutionSnapshot) -> None:
        key = (snap.phase, snap.current_exercise_index, snap.current_round)
        if key == self._last or snap.phase == Phase.READY:
            return
        self._last = key
        click.echo(format_status(snap))


def format_status(snap: ExecutionSnapshot) -> str:
    """Render *snap* as a one-line status, e.g. ``[Work] Squats  round 1/3  0:30  25%``."""
    label = _PHASE_LABELS.get(snap.phase, snap.phase.value)
    if snap.phase == Phase.COMPLETED:
        return f"[{label}]  total {format_clock(snap.elapsed_seconds)}"
    if snap.phase in (Phase.RUNNING, Phase.PAUSED) and snap.exercise_name:
        parts = [f"[{label}] {snap.exercise_name}"]
    elif snap.next_exercise_name:
        parts = [f"[{label}]", f"next: {snap.next_exercise_name}"]
    else:
        parts = [f"[{label}]"]
    parts.append(f"round {snap.current_round}/{snap.total_rounds}")
    parts.append(format_clock(snap.time_remaining_seconds))
    parts.append(f"{snap.workout_progress:.0%}")
    return "  ".join(parts)


def _execute(program: Program, settings: Settings, *, quiet: bool, dry_run: bool) -> None:
    """Validate *program*, then run it to completion in the terminal."""
    plan = program.to_plan() if isinstance(program, TimerConfiguration) else program
    _run(plan.validate)
    if dry_run:
        click.echo(f"Total duration: {format_clock(plan.total_duration_seconds)}")
        return

    if quiet:
        settings = settings.replace(voice_enabled=False)
    ticker = MonotonicTicker()
    engine = ExecutionEngine(
        ConsoleAnnouncer(total_rounds=plan.rounds),
        ticker,
        settings,
        on_change=_StatusPrinter(),
    )
    try:
        engine.start(program)
        ticker.run(until=lambda: engine.is_finished)
    except KeyboardInterrupt:
        engine.stop()
        click.echo("Stopped.", err=True)
        sys.exit(130)


@click.group()
@click.version_option(version=roundtimer.__version__, prog_name="roundtimer")
@click.option("-v", "--verbose", is_flag=True, help="Log engine transitions to stderr.")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding settings.json (default: ~/.config/roundtimer).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Path | None) -> None:
    """roundtimer: workout and interval timer with spoken cues."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


@cli.command()
@click.option("--work", type=int, default=None, help="Work interval in seconds.")
@click.option("--rest", type=int, default=None, help="Rest between cycles in seconds.")
@click.option("--cycles", type=int, default=None, help="Work/rest cycles per round.")
@click.option("--rounds", type=int, default=None, help="Number of rounds.")
@click.option("--round-rest", type=int, default=None, help="Rest between rounds in seconds.")
@click.option("--warmup", type=int, default=0, show_default=True, help="Warm-up in seconds.")
@click.option("--quiet", is_flag=True, help="Do not print voice cues.")
@click.option("--dry-run", is_flag=True, help="Print the total duration and exit.")
@click.pass_context
def intervals(
    ctx: click.Context,
    work: int | None,
    rest: int | None,
    cycles: int | None,
    rounds: int | None,
    round_rest: int | None,
    warmup: int,
    quiet: bool,
    dry_run: bool,
) -> None:
    """Run a simple work/rest interval timer."""
    settings = _settings(ctx)
    config = TimerConfiguration(
        work_duration_seconds=_pick(work, settings.work_duration),
        rest_duration_seconds=_pick(rest, settings.rest_duration),
        cycles_per_round=_pick(cycles, settings.cycles),
        total_rounds=_pick(rounds, settings.rounds),
        rest_between_rounds_seconds=_pick(round_rest, settings.rest_between_rounds),
        warmup_seconds=warmup,
    )
    _execute(config, settings, quiet=quiet, dry_run=dry_run)


@cli.command()
@click.option(
    "-e",
    "--exercise",
    "exercises",
    multiple=True,
    required=True,
    metavar="NAME[:SECONDS]",
    help="Exercise to perform, in order. Repeat for each exercise.",
)
@click.option("--rounds", type=int, default=1, show_default=True, help="Number of rounds.")
@click.option("--rest", type=int, default=None, help="Rest between exercises in seconds.")
@click.option("--round-rest", type=int, default=None, help="Rest between rounds in seconds.")
@click.option(
    "--mode",
    type=click.Choice(sorted(_MODES)),
    default="sequential",
    show_default=True,
    help="sequential: all rounds of an exercise first; round-robin: every exercise per round.",
)
@click.option("--warmup", type=int, default=0, show_default=True, help="Warm-up in seconds.")
@click.option("--quiet", is_flag=True, help="Do not print voice cues.")
@click.option("--dry-run", is_flag=True, help="Print the total duration and exit.")
@click.pass_context
def workout(
    ctx: click.Context,
    exercises: tuple[str, ...],
    rounds: int,
    rest: int | None,
    round_rest: int | None,
    mode: str,
    warmup: int,
    quiet: bool,
    dry_run: bool,
) -> None:
    """Run a workout made of named exercises."""
    settings = _settings(ctx)
    plan = WorkoutPlan(
        exercises=[_parse_exercise(e, settings.exercise_duration) for e in exercises],
        rounds=rounds,
        rest_between_exercises=_pick(rest, settings.rest_between_exercises),
        rest_between_rounds=_pick(round_rest, settings.rest_between_rounds),
        execution_mode=_MODES[mode],
        warmup_seconds=warmup,
    )
    _execute(plan, settings, quiet=quiet, dry_run=dry_run)


@cli.group()
def config() -> None:
    """Show or change saved settings."""


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print every setting."""
    for key, value in _settings(ctx).to_dict().items():
        click.echo(f"{key} = {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Change setting KEY to VALUE and save it."""
    settings = _settings(ctx)
    current = settings.to_dict()
    if key not in current:
        raise click.BadParameter(f"unknown setting {key!r}", param_hint="KEY")
    param_type = click.BOOL if isinstance(current[key], bool) else click.INT
    parsed = param_type.convert(value, None, ctx)
    updated = _run(lambda: Settings.from_dict({**current, key: parsed}))
    save_settings(updated, ctx.obj.get("config_dir"))
    click.echo(f"{key} = {parsed}")
