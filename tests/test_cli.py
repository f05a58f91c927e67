"""Tests for the roundtimer CLI layer.

Timer runs swap the wall-clock ticker for one that ticks as fast as the
engine can consume, so a whole workout finishes instantly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import patch

import click.testing
import pytest

from roundtimer.cli.console import ConsoleAnnouncer
from roundtimer.cli.main import cli
from roundtimer.core.ticker import ManualTicker

Invoke = Callable[..., click.testing.Result]


class _InstantTicker(ManualTicker):
    """Stand-in for MonotonicTicker that never sleeps."""

    def run(self, until: Callable[[], bool]) -> None:
        while not until() and self.advance(1):
            pass


class _InterruptedTicker(ManualTicker):
    """Stand-in for MonotonicTicker that is interrupted with Ctrl-C."""

    def run(self, until: Callable[[], bool]) -> None:
        raise KeyboardInterrupt


def _instant_console(**kwargs: object) -> ConsoleAnnouncer:
    return ConsoleAnnouncer(sleep=lambda _: None, **kwargs)  # type: ignore[arg-type]


@pytest.fixture()
def runner() -> click.testing.CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return click.testing.CliRunner()


@pytest.fixture()
def invoke(runner: click.testing.CliRunner, tmp_path: Path) -> Invoke:
    """Invoke the CLI with an isolated settings directory."""

    def _invoke(*args: str) -> click.testing.Result:
        return runner.invoke(cli, ["--config-dir", str(tmp_path), *args])

    return _invoke


# ---------------------------------------------------------------------------
# roundtimer --version
# ---------------------------------------------------------------------------


class TestVersion:
    def test_version_output(self, runner: click.testing.CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


# ---------------------------------------------------------------------------
# --dry-run
# ---------------------------------------------------------------------------


class TestDryRun:
    """``--dry-run`` prints the planned total duration without running."""

    def test_intervals_with_saved_defaults(self, invoke: Invoke) -> None:
        result = invoke("intervals", "--dry-run")
        assert result.exit_code == 0
        assert "Total duration: 9:30" in result.output

    def test_round_robin_workout(self, invoke: Invoke) -> None:
        result = invoke(
            "workout",
            "-e", "Squats:30",
            "-e", "Push-ups:45",
            "--rest", "15",
            "--rounds", "2",
            "--round-rest", "60",
            "--mode", "round-robin",
            "--dry-run",
        )
        assert result.exit_code == 0
        assert "Total duration: 4:00" in result.output

    def test_exercise_uses_default_duration(self, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats", "--rest", "0", "--round-rest", "0", "--dry-run")
        assert result.exit_code == 0
        assert "Total duration: 0:30" in result.output

    def test_saved_settings_change_defaults(self, invoke: Invoke) -> None:
        assert invoke("config", "set", "exercise_duration", "45").exit_code == 0
        result = invoke("workout", "-e", "Squats", "--rest", "0", "--round-rest", "0", "--dry-run")
        assert "Total duration: 0:45" in result.output


class TestInvalidInput:
    """Invalid plans exit 1; malformed options are usage errors (exit 2)."""

    def test_zero_length_exercise(self, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats:0")
        assert result.exit_code == 1
        assert "must last at least 1 second" in result.output

    def test_non_numeric_duration(self, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats:abc")
        assert result.exit_code == 2

    def test_zero_rounds(self, invoke: Invoke) -> None:
        result = invoke("intervals", "--rounds", "0")
        assert result.exit_code == 1
        assert "rounds must be at least 1" in result.output

    def test_exercise_is_required(self, invoke: Invoke) -> None:
        assert invoke("workout").exit_code == 2


# ---------------------------------------------------------------------------
# Timer runs
# ---------------------------------------------------------------------------


class TestRun:
    """Running a timer prints status lines until the run completes."""

    @patch("roundtimer.cli.main.MonotonicTicker", _InstantTicker)
    def test_quiet_workout(self, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats:5", "--rest", "0", "--round-rest", "0", "--quiet")
        assert result.exit_code == 0
        assert "[Get ready]  next: Squats" in result.output
        assert "[Work] Squats  round 1/1  0:05  0%" in result.output
        assert "[Complete]  total 0:05" in result.output
        assert ">" not in result.output

    @patch("roundtimer.cli.main.MonotonicTicker", _InstantTicker)
    def test_quiet_intervals(self, invoke: Invoke) -> None:
        result = invoke(
            "intervals", "--work", "3", "--rest", "1", "--cycles", "2", "--rounds", "1", "--quiet"
        )
        assert result.exit_code == 0
        assert "[Rest]" in result.output
        assert "[Complete]  total 0:07" in result.output

    @patch("roundtimer.cli.main.MonotonicTicker", _InstantTicker)
    @patch("roundtimer.cli.main.ConsoleAnnouncer", side_effect=_instant_console)
    def test_voiced_workout(self, _announcer: object, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats:5", "--rest", "0", "--round-rest", "0")
        assert result.exit_code == 0
        assert "> Starting Squats in" in result.output
        assert "> Go!" in result.output
        assert "> Last exercise, almost there!" in result.output
        assert "> 3, 2, 1, Stop" in result.output
        assert "** ding **" in result.output
        assert "> Workout complete! Great job!" in result.output

    @patch("roundtimer.cli.main.MonotonicTicker", _InterruptedTicker)
    def test_ctrl_c_stops_the_run(self, invoke: Invoke) -> None:
        result = invoke("workout", "-e", "Squats:5", "--quiet")
        assert result.exit_code == 130
        assert "Stopped." in result.output


# ---------------------------------------------------------------------------
# roundtimer config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    """``config show`` and ``config set`` read and write settings.json."""

    def test_show_defaults(self, invoke: Invoke) -> None:
        result = invoke("config", "show")
        assert result.exit_code == 0
        assert "voice_enabled = True" in result.output
        assert "rest_between_rounds = 60" in result.output

    def test_set_then_show(self, invoke: Invoke, tmp_path: Path) -> None:
        result = invoke("config", "set", "voice_enabled", "false")
        assert result.exit_code == 0
        assert "voice_enabled = False" in result.output
        assert (tmp_path / "settings.json").exists()
        assert "voice_enabled = False" in invoke("config", "show").output

    def test_set_unknown_key(self, invoke: Invoke) -> None:
        result = invoke("config", "set", "theme", "dark")
        assert result.exit_code == 2

    def test_set_non_numeric_value(self, invoke: Invoke) -> None:
        result = invoke("config", "set", "rounds", "many")
        assert result.exit_code == 2

    def test_set_negative_value(self, invoke: Invoke) -> None:
        result = invoke("config", "set", "--", "rounds", "-1")
        assert result.exit_code == 1
        assert "must not be negative" in result.output

    def test_malformed_settings_file(self, invoke: Invoke, tmp_path: Path) -> None:
        (tmp_path / "settings.json").write_text("{bad")
        result = invoke("config", "show")
        assert result.exit_code == 1
        assert "cannot read" in result.output
