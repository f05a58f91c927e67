"""Settings -- user preferences with JSON persistence."""

from __future__ import annotations

import dataclasses
import fcntl
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "roundtimer"
_SETTINGS_FILE = "settings.json"


class SettingsError(Exception):
    """Raised when the settings file cannot be read or holds invalid values."""


@dataclass(frozen=True)
class Settings:
    """Snapshot of user preferences handed to the engine and the CLI."""

    voice_enabled: bool = True
    sound_effects_enabled: bool = True
    countdown_seconds: int = 3
    warning_seconds: int = 3

    # workout defaults
    exercise_duration: int = 30
    rest_between_exercises: int = 15
    rest_between_rounds: int = 60

    # interval timer defaults
    work_duration: int = 30
    rest_duration: int = 10
    cycles: int = 4
    rounds: int = 3

    def replace(self, **changes: Any) -> Settings:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from *data*, ignoring unknown keys.

        Values must match the type of the field default; ``bool`` and ``int``
        are not interchangeable.
        """
        defaults = cls()
        values: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            expected = type(getattr(defaults, f.name))
            if type(value) is not expected:
                raise SettingsError(
                    f"{f.name} must be {expected.__name__}, got {type(value).__name__}"
                )
            if expected is int and value < 0:
                raise SettingsError(f"{f.name} must not be negative, got {value}")
            values[f.name] = value
        return cls(**values)


def settings_path(config_dir: Path | None = None) -> Path:
    base = config_dir if config_dir is not None else DEFAULT_CONFIG_DIR
    return base / _SETTINGS_FILE


def load_settings(config_dir: Path | None = None) -> Settings:
    """Load settings from ``<config_dir>/settings.json``.

    A missing file yields the defaults.  A file that is not a JSON object or
    holds mistyped values raises :class:`SettingsError`.
    """
    path = settings_path(config_dir)
    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise SettingsError(f"cannot read {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise SettingsError(f"{path} must contain a JSON object")
    settings = Settings.from_dict(data)
    logger.debug("Loaded settings from %s", path)
    return settings


def save_settings(settings: Settings, config_dir: Path | None = None) -> Path:
    """Write *settings* with an exclusive file lock and return the file path."""
    path = settings_path(config_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        json.dump(settings.to_dict(), f, indent=2)
    logger.debug("Saved settings to %s", path)
    return path
