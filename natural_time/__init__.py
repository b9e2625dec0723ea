"""Natural calendar dates and Sun/Moon events from JPL ephemerides."""

from .astro import load_ephemeris
from .cache import EventCache
from .calendar import NaturalDate
from .config import EngineConfig
from .engine import NaturalTimeEngine
from .errors import (
    ConvergenceError,
    EphemerisError,
    InputRangeError,
    NaturalTimeError,
    TimeRangeError,
)
from .events import MoonEvents, MoonPosition, MustachesRange, SunEvents, SunPosition

__all__ = [
    "NaturalTimeEngine",
    "NaturalDate",
    "EngineConfig",
    "EventCache",
    "SunEvents",
    "SunPosition",
    "MoonEvents",
    "MoonPosition",
    "MustachesRange",
    "NaturalTimeError",
    "InputRangeError",
    "TimeRangeError",
    "EphemerisError",
    "ConvergenceError",
    "load_ephemeris",
]
