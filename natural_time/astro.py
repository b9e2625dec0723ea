"""Sun and Moon coordinates from JPL kernels for a UTC instant and observer."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import List, Optional, Tuple

import erfa
import numpy as np
import spiceypy as spice
from spiceypy.utils.exceptions import SpiceyError

from .errors import EphemerisError

__all__ = [
    "Body",
    "HorizontalPosition",
    "Observer",
    "load_ephemeris",
    "loaded_files",
    "horizontal_position",
    "altitude",
    "apparent_ecliptic_longitude",
    "moon_phase_angle",
    "unix_ms_to_datetime",
    "datetime_to_unix_ms",
]

LOGGER = logging.getLogger(__name__)

EARTH_EQUATORIAL_RADIUS_KM = 6378.137  # WGS84 equatorial radius in kilometers.
EARTH_FLATTENING = 1.0 / 298.257223563  # WGS84 flattening.

UNIX_EPOCH_JD = 2440587.5
_MS_PER_DAY = 86_400_000
_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_loaded: Optional[List[str]] = None
_load_lock = Lock()
# CSPICE keeps global state and is not reentrant; every spiceypy call goes through this lock.
_spice_lock = Lock()


class Body(str, Enum):
    """Bodies the engine knows how to observe, valued by their SPICE names."""

    SUN = "SUN"
    MOON = "MOON"


@dataclass(frozen=True)
class _TimeScales:
    """One instant as two-part UT1 and TT Julian dates plus SPICE ephemeris time."""

    ut1: Tuple[float, float]
    tt: Tuple[float, float]
    et: float


@dataclass(frozen=True)
class HorizontalPosition:
    altitude: float
    azimuth: float


@dataclass(frozen=True)
class Observer:
    """Geodetic observer on the WGS84 ellipsoid at sea level."""

    latitude: float
    longitude: float

    def site_vector(self) -> np.ndarray:
        """Return the geocentric position vector for the observer in ITRF (km)."""

        with _spice_lock:
            site = spice.georec(
                math.radians(self.longitude),
                math.radians(self.latitude),
                0.0,
                EARTH_EQUATORIAL_RADIUS_KM,
                EARTH_FLATTENING,
            )
        return np.array(site, dtype=float)

    def enu_basis(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """East, north and up unit vectors of the local horizon in ITRF."""

        lat = math.radians(self.latitude)
        lon = math.radians(self.longitude)
        east = np.array([-math.sin(lon), math.cos(lon), 0.0])
        north = np.array(
            [-math.sin(lat) * math.cos(lon), -math.sin(lat) * math.sin(lon), math.cos(lat)]
        )
        up = np.array(
            [math.cos(lat) * math.cos(lon), math.cos(lat) * math.sin(lon), math.sin(lat)]
        )
        return east, north, up


def _kernel_files(path: Path) -> List[Path]:
    if path.is_file() and path.suffix.lower() == ".bsp":
        return [path]
    if not path.is_dir():
        raise EphemerisError(f"Ephemeris directory not found: {path}")
    kernels = sorted(entry for entry in path.glob("*.bsp") if entry.is_file())
    if not kernels:
        raise EphemerisError(f"No .bsp ephemeris files found in directory: {path}")
    return kernels


def load_ephemeris(bsp_dir: str) -> List[str]:
    """Furnish every SPK kernel under *bsp_dir* (or the single file it names).

    Loading happens once per process; later calls return the names already
    loaded until :func:`unload_ephemeris` clears the kernel pool. Raises
    :class:`EphemerisError` when nothing loadable is found.
    """

    global _loaded

    with _load_lock:
        if _loaded is not None:
            return list(_loaded)

        kernels = _kernel_files(Path(bsp_dir).expanduser())
        with _spice_lock:
            for kernel in kernels:
                try:
                    spice.furnsh(str(kernel))
                except SpiceyError as exc:
                    spice.kclear()
                    raise EphemerisError(f"Failed to load ephemeris file '{kernel}': {exc}") from exc

        _loaded = [kernel.name for kernel in kernels]
    LOGGER.info(json.dumps({"event": "ephemeris_loaded", "files": _loaded}))
    return list(_loaded)


def loaded_files() -> List[str]:
    return list(_loaded or [])


def unload_ephemeris() -> None:
    """Clear the SPICE kernel pool so that :func:`load_ephemeris` runs again."""

    global _loaded

    with _load_lock, _spice_lock:
        spice.kclear()
        _loaded = None


def unix_ms_to_datetime(unix_ms: int) -> datetime:
    return _UNIX_EPOCH + timedelta(milliseconds=unix_ms)


def datetime_to_unix_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    return (dt - _UNIX_EPOCH) // timedelta(milliseconds=1)


def _timescales(unix_ms: int) -> _TimeScales:
    # Unix time has no leap seconds, so whole days map straight onto UTC Julian dates.
    days, rest_ms = divmod(unix_ms, _MS_PER_DAY)
    utc = (UNIX_EPOCH_JD + days, rest_ms / _MS_PER_DAY)
    try:
        tt = erfa.taitt(*erfa.utctai(*utc))
        ut1 = erfa.utcut1(*utc, 0.0)
    except erfa.ErfaError as exc:
        raise EphemerisError(f"Cannot convert instant {unix_ms} to TT/UT1: {exc}") from exc
    et = ((tt[0] - erfa.DJ00) + tt[1]) * erfa.DAYSEC
    return _TimeScales(ut1=ut1, tt=tt, et=et)


def _require_loaded() -> None:
    if _loaded is None:
        raise EphemerisError("Ephemeris kernels have not been loaded")


def _geocentric_state(body: Body, times: _TimeScales) -> np.ndarray:
    """Apparent geocentric state of *body* in J2000 (km, km/s)."""

    try:
        with _spice_lock:
            state, _ = spice.spkezr(body.value, times.et, "J2000", "LT+S", "EARTH")
    except SpiceyError as exc:
        raise EphemerisError(f"SPICE could not evaluate {body.value}: {exc}") from exc
    return np.array(state, dtype=float)


def horizontal_position(body: Body, unix_ms: int, observer: Observer) -> HorizontalPosition:
    """Topocentric altitude and azimuth of *body*, without refraction."""

    _require_loaded()
    times = _timescales(unix_ms)
    body_vector = _geocentric_state(body, times)[:3]
    rotation = np.array(erfa.c2t06a(*times.tt, *times.ut1, 0.0, 0.0), dtype=float)
    body_itrf = rotation @ body_vector
    topocentric = body_itrf - observer.site_vector()
    norm = np.linalg.norm(topocentric)
    if norm == 0:
        raise EphemerisError("Degenerate topocentric vector encountered")
    direction = topocentric / norm
    east, north, up = observer.enu_basis()
    alt = math.degrees(math.asin(float(np.clip(np.dot(direction, up), -1.0, 1.0))))
    az = math.degrees(math.atan2(float(np.dot(direction, east)), float(np.dot(direction, north))))
    return HorizontalPosition(altitude=alt, azimuth=az % 360.0)


def altitude(body: Body, unix_ms: int, observer: Observer) -> float:
    return horizontal_position(body, unix_ms, observer).altitude


def apparent_ecliptic_longitude(body: Body, unix_ms: int) -> Tuple[float, float]:
    """Geocentric apparent ecliptic longitude of *body* and its rate.

    Returns
    -------
    tuple[float, float]
        Longitude in degrees within ``[0, 360)`` referred to the true equinox
        of date, and its time derivative in degrees per day.
    """

    _require_loaded()
    times = _timescales(unix_ms)
    state = _geocentric_state(body, times)
    rotation = np.array(erfa.ecm06(*times.tt), dtype=float)
    position = rotation @ state[:3]
    velocity = rotation @ state[3:] * erfa.DAYSEC
    dpsi, _ = erfa.nut06a(*times.tt)
    lam = math.atan2(position[1], position[0]) + dpsi
    lam_dot = (position[0] * velocity[1] - position[1] * velocity[0]) / (
        position[0] ** 2 + position[1] ** 2
    )
    return math.degrees(lam) % 360.0, math.degrees(lam_dot)


def moon_phase_angle(unix_ms: int) -> float:
    """Moon minus Sun ecliptic longitude: 0 new, 90 first quarter, 180 full."""

    moon_lon, _ = apparent_ecliptic_longitude(Body.MOON, unix_ms)
    sun_lon, _ = apparent_ecliptic_longitude(Body.SUN, unix_ms)
    return (moon_lon - sun_lon) % 360.0
