"""Natural date derivation: solar years, 13 moons of 28 days and rainbow days."""

from __future__ import annotations

import math
from dataclasses import dataclass

from . import astro
from .errors import ConvergenceError, InputRangeError, TimeRangeError
from .search import MS_PER_DAY
from .seasons import SolsticeLocator, YearBounds

__all__ = [
    "NaturalDate",
    "CalendarDeriver",
    "END_OF_ARTIFICIAL_TIME",
    "MIN_UNIX_MS",
    "MAX_UNIX_MS",
    "longitude_offset_ms",
    "day_start",
    "validate_longitude",
    "validate_latitude",
]

END_OF_ARTIFICIAL_TIME = 1_356_091_200_000  # 2012-12-21T12:00:00Z
MIN_UNIX_MS = 0  # exclusive
MAX_UNIX_MS = 4_102_444_800_000  # 2100-01-01T00:00:00Z, exclusive

DAYS_PER_MOON = 28
MOONS_PER_YEAR = 13
DAYS_PER_WEEK = 7
WEEKS_PER_MOON = DAYS_PER_MOON // DAYS_PER_WEEK


@dataclass(frozen=True)
class NaturalDate:
    """Calendar coordinate of an instant seen from a longitude.

    ``nadir`` is the start of the natural day (local mean solar midnight),
    ``year_start`` the nadir that opened the year and ``solstice`` the
    December solstice behind it, all in Unix milliseconds. On rainbow days
    (``is_rainbow_day``) the moon-based fields continue the grid past its
    364th day and carry no calendar meaning.
    """

    year: int
    moon: int
    week: int
    week_of_moon: int
    unix_time: int
    longitude: float
    day: int
    day_of_year: int
    day_of_moon: int
    day_of_week: int
    is_rainbow_day: bool
    time_deg: float
    year_start: int
    year_duration: int
    nadir: int
    solstice: int

    @property
    def year_end(self) -> int:
        return self.year_start + self.year_duration * MS_PER_DAY


def validate_longitude(longitude: float) -> float:
    if not (-180.0 <= longitude <= 180.0):
        raise InputRangeError(f"longitude must be within [-180, 180], got {longitude}")
    return float(longitude)


def validate_latitude(latitude: float) -> float:
    if not (-90.0 <= latitude <= 90.0):
        raise InputRangeError(f"latitude must be within [-90, 90], got {latitude}")
    return float(latitude)


def validate_instant(unix_ms: int) -> int:
    if isinstance(unix_ms, bool) or not isinstance(unix_ms, int):
        raise TimeRangeError(f"instant must be integer Unix milliseconds, got {unix_ms!r}")
    if not MIN_UNIX_MS < unix_ms < MAX_UNIX_MS:
        raise TimeRangeError(f"instant {unix_ms} is outside the supported era")
    return unix_ms


def longitude_offset_ms(longitude: float) -> int:
    """Shift from a 12:00 UTC anchor to local mean solar midnight."""

    return int(math.floor((180.0 - longitude) * MS_PER_DAY / 360.0 + 0.5))


def day_start(unix_ms: int, longitude: float) -> int:
    """Nadir opening the natural day that contains *unix_ms* at *longitude*.

    Day boundaries do not depend on the year: every anchor sits at 12:00 UTC.
    """

    base = END_OF_ARTIFICIAL_TIME + longitude_offset_ms(longitude)
    return base + ((unix_ms - base) // MS_PER_DAY) * MS_PER_DAY


class CalendarDeriver:
    def __init__(self, locator: SolsticeLocator) -> None:
        self._locator = locator

    def _locate_year(self, unix_ms: int, offset_ms: int) -> YearBounds:
        dt = astro.unix_ms_to_datetime(unix_ms)
        # late December instants usually belong to the year opening that month
        year = dt.year if (dt.month, dt.day) >= (12, 20) else dt.year - 1
        for _ in range(3):
            bounds = self._locator.year_bounds(year)
            if unix_ms < bounds.start + offset_ms:
                year -= 1
            elif unix_ms >= bounds.end + offset_ms:
                year += 1
            else:
                return bounds
        raise ConvergenceError(f"Could not place instant {unix_ms} inside a natural year")

    def derive(self, unix_ms: int, longitude: float) -> NaturalDate:
        """Convert a UTC instant and longitude into a :class:`NaturalDate`.

        Raises
        ------
        InputRangeError
            If *longitude* is outside ``[-180, 180]``.
        TimeRangeError
            If *unix_ms* lies outside the supported era.
        """

        longitude = validate_longitude(longitude)
        unix_ms = validate_instant(unix_ms)

        offset_ms = longitude_offset_ms(longitude)
        bounds = self._locate_year(unix_ms, offset_ms)
        year_start = bounds.start + offset_ms
        elapsed = unix_ms - year_start
        days = elapsed // MS_PER_DAY
        weeks = days // DAYS_PER_WEEK
        nadir = year_start + days * MS_PER_DAY

        time_deg = (unix_ms - nadir) * 360.0 / MS_PER_DAY
        if time_deg >= 360.0:
            time_deg = 0.0

        epoch_year = astro.unix_ms_to_datetime(END_OF_ARTIFICIAL_TIME).year
        return NaturalDate(
            year=astro.unix_ms_to_datetime(year_start).year - epoch_year + 1,
            moon=days // DAYS_PER_MOON + 1,
            week=weeks + 1,
            week_of_moon=weeks % WEEKS_PER_MOON + 1,
            unix_time=unix_ms,
            longitude=longitude,
            day=(unix_ms - END_OF_ARTIFICIAL_TIME - offset_ms) // MS_PER_DAY,
            day_of_year=days + 1,
            day_of_moon=days % DAYS_PER_MOON + 1,
            day_of_week=days % DAYS_PER_WEEK + 1,
            is_rainbow_day=days + 1 > MOONS_PER_YEAR * DAYS_PER_MOON,
            time_deg=time_deg,
            year_start=year_start,
            year_duration=bounds.duration_days,
            nadir=nadir,
            solstice=bounds.solstice,
        )
