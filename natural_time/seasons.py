"""Solstice search and the natural year boundaries derived from it."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta

from . import astro
from .astro import Body
from .cache import EventCache
from .search import MS_PER_DAY, solve_wrapped_root

__all__ = ["YearBounds", "SolsticeLocator", "DECEMBER_SOLSTICE", "JUNE_SOLSTICE"]

LOGGER = logging.getLogger(__name__)

DECEMBER_SOLSTICE = 270.0
JUNE_SOLSTICE = 90.0

_INITIAL_GUESS = {DECEMBER_SOLSTICE: (12, 21), JUNE_SOLSTICE: (6, 21)}


@dataclass(frozen=True)
class YearBounds:
    """One natural year, before localisation to a longitude.

    ``start`` and ``end`` are the anchor noons (12:00 UTC) opening this year
    and the next one; ``solstice`` is the December solstice behind ``start``.
    """

    solstice: int
    start: int
    end: int

    @property
    def duration_days(self) -> int:
        return (self.end - self.start) // MS_PER_DAY


class SolsticeLocator:
    """Find solstice instants and the year anchors built on them."""

    def __init__(self, cache: EventCache) -> None:
        self._cache = cache

    def solstice(self, year: int, target_deg: float = DECEMBER_SOLSTICE) -> int:
        """Unix milliseconds of the solstice of *year* at *target_deg*."""

        return self._cache.get_or_compute(
            ("solstice", year, target_deg), lambda: self._find_solstice(year, target_deg)
        )

    def december_solstice(self, year: int) -> int:
        return self.solstice(year, DECEMBER_SOLSTICE)

    def june_solstice(self, year: int) -> int:
        return self.solstice(year, JUNE_SOLSTICE)

    def _find_solstice(self, year: int, target_deg: float) -> int:
        month, day = _INITIAL_GUESS[target_deg]
        guess = astro.datetime_to_unix_ms(datetime(year, month, day, 12, tzinfo=UTC))
        found = solve_wrapped_root(
            lambda ms: astro.apparent_ecliptic_longitude(Body.SUN, ms), target_deg, guess
        )
        LOGGER.debug(
            json.dumps(
                {
                    "event": "solstice_found",
                    "year": year,
                    "longitude": target_deg,
                    "utc": astro.unix_ms_to_datetime(found).isoformat(),
                }
            )
        )
        return found

    def anchor_noon(self, year: int) -> int:
        """12:00 UTC on the December solstice's date, or the next date when
        the solstice falls at or after noon."""

        solstice_dt = astro.unix_ms_to_datetime(self.december_solstice(year))
        anchor_date = solstice_dt.date()
        if solstice_dt.time() >= time(12):
            anchor_date += timedelta(days=1)
        return astro.datetime_to_unix_ms(datetime.combine(anchor_date, time(12), tzinfo=UTC))

    def year_bounds(self, year: int) -> YearBounds:
        """Natural year opened by the December solstice of Gregorian *year*."""

        return YearBounds(
            solstice=self.december_solstice(year),
            start=self.anchor_noon(year),
            end=self.anchor_noon(year + 1),
        )
