"""Exception types raised by the natural time engine."""

from __future__ import annotations

__all__ = [
    "NaturalTimeError",
    "InputRangeError",
    "TimeRangeError",
    "EphemerisError",
    "ConvergenceError",
]


class NaturalTimeError(Exception):
    """Base class for every failure the engine reports."""

    code = "internal"


class InputRangeError(NaturalTimeError, ValueError):
    """Raised when a longitude or latitude lies outside its valid range."""

    code = "range"


class TimeRangeError(NaturalTimeError, ValueError):
    """Raised when an instant falls outside the supported calendar era."""

    code = "time"


class EphemerisError(NaturalTimeError, RuntimeError):
    """Raised when ephemeris loading or computation fails."""

    code = "ephemeris"


class ConvergenceError(EphemerisError):
    """Raised when a root search fails to converge inside its window."""

    code = "convergence"
