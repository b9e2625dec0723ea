"""Pydantic models for API requests and responses."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from natural_time.calendar import MAX_UNIX_MS


class NaturalDateQuery(BaseModel):
    """Validated query parameters for ``/natural-date``."""

    timestamp_ms: int = Field(
        ..., gt=0, lt=MAX_UNIX_MS, description="Instant in Unix milliseconds (UTC)"
    )
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")


class EventQuery(NaturalDateQuery):
    """Natural date parameters plus the observer latitude."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")


class TimeOfEventQuery(NaturalDateQuery):
    event_ms: int = Field(..., description="Event instant in Unix milliseconds (UTC)")


class _Result(BaseModel):
    ok: bool = True


class NaturalDateResponse(_Result):
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


class SunEventsResponse(_Result):
    sunrise: Optional[float] = Field(None, description="Day-degrees, null when no event")
    sunset: Optional[float] = None
    night_start: Optional[float] = None
    night_end: Optional[float] = None
    morning_golden: Optional[float] = None
    evening_golden: Optional[float] = None
    status: str
    night_status: str
    golden_status: str


class SunPositionResponse(_Result):
    altitude: float
    azimuth: float
    highest_altitude: float


class MoonPositionResponse(_Result):
    altitude: float
    azimuth: float
    phase_deg: float
    highest_altitude: float


class MoonEventsResponse(_Result):
    moonrise: Optional[float] = None
    moonset: Optional[float] = None
    highest_altitude: float
    status: str


class MustachesResponse(_Result):
    winter_sunrise: float
    winter_sunset: float
    summer_sunrise: float
    summer_sunset: float
    average_angle: float


class TimeOfEventResponse(_Result):
    time_deg: Optional[float] = Field(
        None, description="Day-degrees, null when the event lies outside the natural day"
    )


class CacheResetResponse(_Result):
    cleared: Dict[str, int]


class HealthResponse(BaseModel):
    """Health-check response."""

    ok: bool = True
    ephemeris_loaded: bool
    files: List[str]
    cache: Dict[str, int]


class ErrorResponse(BaseModel):
    """Error payload."""

    ok: bool = False
    code: str
    error: str
