"""Sun and Moon events expressed in day-degrees of a natural date."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from . import astro
from .astro import Body, Observer
from .cache import EventCache
from .calendar import NaturalDate, day_start, validate_latitude
from .config import EngineConfig
from .search import (
    MS_PER_DAY,
    Direction,
    Samples,
    find_crossing,
    find_maximum,
    sample_function,
)
from .seasons import SolsticeLocator

__all__ = [
    "SunEvents",
    "SunPosition",
    "MoonPosition",
    "MoonEvents",
    "MustachesRange",
    "EventFinder",
    "time_of_event",
]

STATUS_OK = "ok"


@dataclass(frozen=True)
class SunEvents:
    """Day-degrees of the Sun's threshold crossings; ``None`` means no event.

    Each status explains a pair of missing events. ``status`` covers sunrise
    and sunset: ``polar_day`` when the Sun stays above the horizon threshold
    all day, ``polar_night`` when it stays below. ``night_status`` and
    ``golden_status`` use ``always_above`` and ``always_below`` for their own
    thresholds, so a midsummer day without astronomical night still has a
    sunset and reads ``status="ok"``, ``night_status="always_above"``.
    """

    sunrise: Optional[float]
    sunset: Optional[float]
    night_start: Optional[float]
    night_end: Optional[float]
    morning_golden: Optional[float]
    evening_golden: Optional[float]
    status: str
    night_status: str
    golden_status: str


@dataclass(frozen=True)
class SunPosition:
    altitude: float
    azimuth: float
    highest_altitude: float


@dataclass(frozen=True)
class MoonPosition:
    altitude: float
    azimuth: float
    phase_deg: float
    highest_altitude: float


@dataclass(frozen=True)
class MoonEvents:
    moonrise: Optional[float]
    moonset: Optional[float]
    highest_altitude: float
    status: str


@dataclass(frozen=True)
class MustachesRange:
    """Sunrise and sunset day-degrees on both solstices of a year."""

    winter_sunrise: float
    winter_sunset: float
    summer_sunrise: float
    summer_sunset: float
    average_angle: float


def time_of_event(date: NaturalDate, event_ms: int) -> float:
    """Day-degrees of *event_ms* within the natural day of *date*.

    Returns NaN when the instant falls outside ``[nadir, nadir + 1 day)``.
    """

    if not date.nadir <= event_ms < date.nadir + MS_PER_DAY:
        return math.nan
    return (event_ms - date.nadir) * 360.0 / MS_PER_DAY


def _day_degrees(nadir: int, event_ms: Optional[int]) -> Optional[float]:
    if event_ms is None:
        return None
    deg = (event_ms - nadir) * 360.0 / MS_PER_DAY
    return deg if 0.0 <= deg < 360.0 else None


def _status(samples: Samples, threshold: float, found: bool, above: str, below: str) -> str:
    if found:
        return STATUS_OK
    if samples.minimum > threshold:
        return above
    if samples.maximum < threshold:
        return below
    return STATUS_OK


def _polar_default(degrees: Optional[float], status: str, rising: bool) -> float:
    """Stand-in day-degrees for a missing sunrise or sunset in the envelope."""

    if degrees is not None:
        return degrees
    if status == "polar_day":
        return 0.0 if rising else 360.0
    return 180.0


class EventFinder:
    """Threshold crossings and extrema of the Sun and Moon over natural days.

    Daily searches run on coordinates rounded to ``config.cache_decimals``
    so a cached answer is exactly what a fresh computation would return.
    """

    def __init__(self, cache: EventCache, locator: SolsticeLocator, config: EngineConfig) -> None:
        self._cache = cache
        self._locator = locator
        self._config = config

    def _observer(self, latitude: float, longitude: float) -> Observer:
        decimals = self._config.cache_decimals
        return Observer(round(latitude, decimals), round(longitude, decimals))

    def _altitude_fn(self, body: Body, observer: Observer) -> Callable[[int], float]:
        return lambda ms: astro.altitude(body, ms, observer)

    def _samples(self, body: Body, nadir: int, observer: Observer) -> Samples:
        key = ("samples", body.value, nadir, observer.latitude, observer.longitude)
        return self._cache.get_or_compute(
            key,
            lambda: sample_function(
                self._altitude_fn(body, observer),
                nadir,
                nadir + MS_PER_DAY,
                self._config.sample_step_ms,
            ),
        )

    def _crossing(
        self, body: Body, nadir: int, observer: Observer, threshold: float, direction: Direction
    ) -> Optional[int]:
        key = (
            "crossing",
            body.value,
            direction.value,
            threshold,
            nadir,
            observer.latitude,
            observer.longitude,
        )
        return self._cache.get_or_compute(
            key,
            lambda: find_crossing(
                self._altitude_fn(body, observer),
                self._samples(body, nadir, observer),
                threshold,
                direction,
                self._config.max_iterations,
            ),
        )

    def _maximum(self, body: Body, nadir: int, observer: Observer) -> Tuple[int, float]:
        key = ("maximum", body.value, nadir, observer.latitude, observer.longitude)
        return self._cache.get_or_compute(
            key,
            lambda: find_maximum(
                self._altitude_fn(body, observer),
                self._samples(body, nadir, observer),
                self._config.extremum_iterations,
            ),
        )

    def _crossing_pair(
        self, body: Body, nadir: int, observer: Observer, threshold: float, above: str, below: str
    ) -> Tuple[Optional[float], Optional[float], str]:
        rise = self._crossing(body, nadir, observer, threshold, Direction.RISE)
        fall = self._crossing(body, nadir, observer, threshold, Direction.SET)
        status = _status(
            self._samples(body, nadir, observer),
            threshold,
            rise is not None or fall is not None,
            above,
            below,
        )
        return _day_degrees(nadir, rise), _day_degrees(nadir, fall), status

    def _sun_events_for_day(self, nadir: int, observer: Observer) -> SunEvents:
        def compute() -> SunEvents:
            config = self._config
            sunrise, sunset, status = self._crossing_pair(
                Body.SUN, nadir, observer, config.horizon_altitude, "polar_day", "polar_night"
            )
            night_end, night_start, night_status = self._crossing_pair(
                Body.SUN, nadir, observer, config.night_altitude, "always_above", "always_below"
            )
            morning, evening, golden_status = self._crossing_pair(
                Body.SUN, nadir, observer, config.golden_altitude, "always_above", "always_below"
            )
            return SunEvents(
                sunrise=sunrise,
                sunset=sunset,
                night_start=night_start,
                night_end=night_end,
                morning_golden=morning,
                evening_golden=evening,
                status=status,
                night_status=night_status,
                golden_status=golden_status,
            )

        key = ("sun_events", nadir, observer.latitude, observer.longitude)
        return self._cache.get_or_compute(key, compute)

    def sun_events(self, date: NaturalDate, latitude: float) -> SunEvents:
        latitude = validate_latitude(latitude)
        return self._sun_events_for_day(date.nadir, self._observer(latitude, date.longitude))

    def sun_position(self, date: NaturalDate, latitude: float) -> SunPosition:
        latitude = validate_latitude(latitude)
        now = astro.horizontal_position(
            Body.SUN, date.unix_time, Observer(latitude, date.longitude)
        )
        _, highest = self._maximum(
            Body.SUN, date.nadir, self._observer(latitude, date.longitude)
        )
        return SunPosition(
            altitude=max(now.altitude, 0.0), azimuth=now.azimuth, highest_altitude=highest
        )

    def moon_position(self, date: NaturalDate, latitude: float) -> MoonPosition:
        latitude = validate_latitude(latitude)
        now = astro.horizontal_position(
            Body.MOON, date.unix_time, Observer(latitude, date.longitude)
        )
        _, highest = self._maximum(
            Body.MOON, date.nadir, self._observer(latitude, date.longitude)
        )
        return MoonPosition(
            altitude=max(now.altitude, 0.0),
            azimuth=now.azimuth,
            phase_deg=astro.moon_phase_angle(date.unix_time),
            highest_altitude=highest,
        )

    def moon_events(self, date: NaturalDate, latitude: float) -> MoonEvents:
        latitude = validate_latitude(latitude)
        observer = self._observer(latitude, date.longitude)
        moonrise, moonset, status = self._crossing_pair(
            Body.MOON,
            date.nadir,
            observer,
            self._config.horizon_altitude,
            "always_up",
            "always_down",
        )
        _, highest = self._maximum(Body.MOON, date.nadir, observer)
        return MoonEvents(
            moonrise=moonrise, moonset=moonset, highest_altitude=highest, status=status
        )

    def mustaches_range(self, date: NaturalDate, latitude: float) -> MustachesRange:
        """Solstice sunrise/sunset envelope for the natural year of *date*.

        Both solstices are evaluated on the longitude-0 natural day holding
        them: the December solstice opening the year and the June solstice
        that follows it.
        """

        latitude = validate_latitude(latitude)
        observer = self._observer(latitude, 0.0)

        def compute() -> MustachesRange:
            winter_ms = date.solstice
            summer_year = astro.unix_ms_to_datetime(winter_ms).year + 1
            summer_ms = self._locator.june_solstice(summer_year)
            winter = self._sun_events_for_day(day_start(winter_ms, 0.0), observer)
            summer = self._sun_events_for_day(day_start(summer_ms, 0.0), observer)

            winter_rise = _polar_default(winter.sunrise, winter.status, rising=True)
            winter_set = _polar_default(winter.sunset, winter.status, rising=False)
            summer_rise = _polar_default(summer.sunrise, summer.status, rising=True)
            summer_set = _polar_default(summer.sunset, summer.status, rising=False)

            if observer.latitude >= 0.0:
                average = ((winter_rise - summer_rise) + (summer_set - winter_set)) / 4.0
            else:
                average = ((summer_rise - winter_rise) + (winter_set - summer_set)) / 4.0

            return MustachesRange(
                winter_sunrise=winter_rise,
                winter_sunset=winter_set,
                summer_sunrise=summer_rise,
                summer_sunset=summer_set,
                average_angle=min(max(average, 0.0), 90.0),
            )

        return self._cache.get_or_compute(("mustaches", date.solstice, observer.latitude), compute)
