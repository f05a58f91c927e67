"""Announcer boundary -- voice and sound cues consumed by the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable


COUNTDOWN_WORDS = ("3", "2", "1", "Go!")


class UpcomingKind(Enum):
    """What the next transition ends."""

    WORK_ENDING = "work_ending"
    LAST_WORK_ENDING = "last_work_ending"  # no exercise follows
    REST_ENDING = "rest_ending"


class AnnouncerError(Exception):
    """Raised when an announcer cannot reach its output device."""


def countdown_words(label: str | None) -> tuple[str, ...]:
    """Return the spoken countdown sequence for *label*.

    Without a label this is the four-word interval form ``3, 2, 1, Go!``.
    """
    if label is None:
        return COUNTDOWN_WORDS
    return (f"Starting {label} in",) + COUNTDOWN_WORDS


def format_spoken_duration(seconds: int) -> str:
    """Render *seconds* the way it is read aloud, e.g. ``1 minute and 30 seconds``."""
    if seconds < 60:
        return f"{seconds} seconds"
    minutes, rest = divmod(seconds, 60)
    unit = "minute" if minutes == 1 else "minutes"
    if rest:
        return f"{minutes} {unit} and {rest} seconds"
    return f"{minutes} {unit}"


class CountdownToken:
    """Single-shot continuation for an announcement that signals its start.

    The engine hands ``token.fire`` to the announcer as the go-signal.  Once
    the run is stopped or restarted the token is cancelled, so a late
    callback from the audio device can no longer reach the engine.
    """

    def __init__(self, continuation: Callable[[], None]) -> None:
        self._continuation: Callable[[], None] | None = continuation

    @property
    def pending(self) -> bool:
        return self._continuation is not None

    def fire(self) -> None:
        continuation, self._continuation = self._continuation, None
        if continuation is not None:
            continuation()

    def cancel(self) -> None:
        self._continuation = None


class Announcer(ABC):
    """Speech and sound output used by the execution engine.

    Implementations own a single output device.  ``stop()`` must cancel any
    in-flight speech immediately and be safe to call repeatedly.
    """

    @abstractmethod
    def announce_countdown_and_run(
        self,
        label: str | None,
        on_go: Callable[[], None],
        on_count: Callable[[int], None] | None = None,
    ) -> None:
        """Speak the start countdown and call *on_go* as "Go!" starts.

        *on_count* receives each number (3, 2, 1) as it starts being spoken.
        """

    @abstractmethod
    def announce_upcoming(self, kind: UpcomingKind, next_label: str | None = None) -> None:
        """Warn that the current interval is about to end."""

    @abstractmethod
    def announce_rest(self, duration_seconds: int, next_round: int | None = None) -> None:
        """Announce a rest; *next_round* is set for a rest between rounds."""

    @abstractmethod
    def announce_complete(self) -> None: ...

    @abstractmethod
    def play_bell(self) -> None: ...

    @abstractmethod
    def speak(self, text: str) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


class SilentAnnouncer(Announcer):
    """Disabled announcer: nothing is spoken and the go-signal fires at once."""

    def announce_countdown_and_run(
        self,
        label: str | None,
        on_go: Callable[[], None],
        on_count: Callable[[int], None] | None = None,
    ) -> None:
        on_go()

    def announce_upcoming(self, kind: UpcomingKind, next_label: str | None = None) -> None:
        pass

    def announce_rest(self, duration_seconds: int, next_round: int | None = None) -> None:
        pass

    def announce_complete(self) -> None:
        pass

    def play_bell(self) -> None:
        pass

    def speak(self, text: str) -> None:
        pass

    def stop(self) -> None:
        pass
