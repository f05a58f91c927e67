"""roundtimer: a workout and interval timer engine."""

__version__ = "0.1.0"
