"""Entry point tying the calendar, event searches and their cache together."""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional

from .cache import EventCache
from .calendar import CalendarDeriver, NaturalDate
from .config import EngineConfig
from .events import (
    EventFinder,
    MoonEvents,
    MoonPosition,
    MustachesRange,
    SunEvents,
    SunPosition,
    time_of_event,
)
from .seasons import SolsticeLocator

__all__ = ["NaturalTimeEngine"]

LOGGER = logging.getLogger(__name__)


class NaturalTimeEngine:
    """Natural dates and Sun/Moon events backed by one owned :class:`EventCache`.

    Kernels must be loaded with :func:`natural_time.astro.load_ephemeris`
    before any computation.
    """

    def __init__(
        self, config: Optional[EngineConfig] = None, cache: Optional[EventCache] = None
    ) -> None:
        self.config = config or EngineConfig()
        self.cache = cache if cache is not None else EventCache()
        self._locator = SolsticeLocator(self.cache)
        self._calendar = CalendarDeriver(self._locator)
        self._events = EventFinder(self.cache, self._locator, self.config)

    def derive_natural_date(self, unix_ms: int, longitude: float) -> NaturalDate:
        date = self._calendar.derive(unix_ms, longitude)
        LOGGER.debug(
            json.dumps(
                {
                    "event": "natural_date",
                    "unix_ms": unix_ms,
                    "longitude": longitude,
                    "year": date.year,
                    "day_of_year": date.day_of_year,
                }
            )
        )
        return date

    def sun_events(self, date: NaturalDate, latitude: float) -> SunEvents:
        return self._events.sun_events(date, latitude)

    def sun_position(self, date: NaturalDate, latitude: float) -> SunPosition:
        return self._events.sun_position(date, latitude)

    def moon_position(self, date: NaturalDate, latitude: float) -> MoonPosition:
        return self._events.moon_position(date, latitude)

    def moon_events(self, date: NaturalDate, latitude: float) -> MoonEvents:
        return self._events.moon_events(date, latitude)

    def mustaches_range(self, date: NaturalDate, latitude: float) -> MustachesRange:
        return self._events.mustaches_range(date, latitude)

    def time_of_event(self, date: NaturalDate, event_ms: int) -> float:
        return time_of_event(date, event_ms)

    def reset_caches(self) -> None:
        self.cache.reset()

    def cache_stats(self) -> Dict[str, int]:
        return self.cache.stats()
