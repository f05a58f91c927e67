"""Terminal announcer -- prints cues instead of speaking them."""

from __future__ import annotations

import time
from typing import Callable

import click

from roundtimer.core.announcer import (
    Announcer,
    UpcomingKind,
    countdown_words,
    format_spoken_duration,
)

_UPCOMING_WORDS = {
    UpcomingKind.WORK_ENDING: "3, 2, 1, Stop",
    UpcomingKind.LAST_WORK_ENDING: "3, 2, 1, Stop",
    UpcomingKind.REST_ENDING: "3, 2, 1, Go",
}


class ConsoleAnnouncer(Announcer):
    """Announcer that writes each cue as a line of terminal output.

    The start countdown is paced with *sleep* (one word per *word_gap*
    seconds) and signals "Go!" before it is printed.  Output is synchronous,
    so ``stop()`` has nothing in flight to cancel.
    """

    def __init__(
        self,
        total_rounds: int | None = None,
        word_gap: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._total_rounds = total_rounds
        self._word_gap = word_gap
        self._sleep = sleep

    def announce_countdown_and_run(
        self,
        label: str | None,
        on_go: Callable[[], None],
        on_count: Callable[[int], None] | None = None,
    ) -> None:
        words = countdown_words(label)
        for word in words[:-1]:
            if word.isdigit() and on_count is not None:
                on_count(int(word))
            self._say(word)
            self._sleep(self._word_gap)
        on_go()
        self._say(words[-1])

    def announce_upcoming(self, kind: UpcomingKind, next_label: str | None = None) -> None:
        if kind == UpcomingKind.LAST_WORK_ENDING:
            self._say("Last exercise, almost there!")
        elif next_label is not None and kind == UpcomingKind.WORK_ENDING:
            self._say(f"Next up: {next_label}")
        self._say(_UPCOMING_WORDS[kind])

    def announce_rest(self, duration_seconds: int, next_round: int | None = None) -> None:
        if next_round is None:
            self._say(f"Rest for {format_spoken_duration(duration_seconds)}")
            return
        if self._total_rounds is None:
            self._say(f"Round complete. Round {next_round} coming up.")
        else:
            self._say(f"Round complete. Starting round {next_round} of {self._total_rounds}")

    def announce_complete(self) -> None:
        self._say("Workout complete! Great job!")

    def play_bell(self) -> None:
        click.echo(click.style("** ding **", fg="yellow"))

    def speak(self, text: str) -> None:
        self._say(text)

    def stop(self) -> None:
        pass

    def _say(self, text: str) -> None:
        click.echo(click.style(f"> {text}", bold=True))
