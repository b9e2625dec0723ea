from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import erfa
import numpy as np
import pytest
import spiceypy as spice

from natural_time import NaturalTimeEngine, astro

AU_KM = 149597870.700
KM_PER_S_PER_AU_PER_DAY = AU_KM / erfa.DAYSEC
KERNEL_START = datetime(2024, 11, 1, tzinfo=UTC)
KERNEL_END = datetime(2027, 1, 15, tzinfo=UTC)

# (naif id, center, step hours, segment id); the Moon moves fast enough to need a finer grid
SEGMENTS = (
    (10, 399, 6, "SUNTEST"),
    (399, 0, 6, "EARTHTEST"),
    (301, 399, 2, "MOONTEST"),
)


def _et(dt: datetime) -> float:
    """Ephemeris seconds past J2000, treating TDB as TT (good to ~2 ms)."""

    days, rest_ms = divmod(astro.datetime_to_unix_ms(dt), 86_400_000)
    tt1, tt2 = erfa.taitt(*erfa.utctai(astro.UNIX_EPOCH_JD + days, rest_ms / 86_400_000))
    return ((tt1 - erfa.DJ00) + tt2) * erfa.DAYSEC


def _state_km(pv) -> np.ndarray:
    return np.concatenate([pv["p"] * AU_KM, pv["v"] * KM_PER_S_PER_AU_PER_DAY])


def _state(naif_id: int, et: float) -> np.ndarray:
    tt = (erfa.DJ00, et / erfa.DAYSEC)
    if naif_id == 301:
        return _state_km(erfa.moon98(*tt))
    heliocentric_earth, barycentric_earth = erfa.epv00(*tt)
    if naif_id == 10:
        return -_state_km(heliocentric_earth)
    return _state_km(barycentric_earth)


def _generate_test_kernel(output: Path) -> None:
    if output.exists():
        return

    first, last = _et(KERNEL_START), _et(KERNEL_END)
    handle = spice.spkopn(str(output), "NTTEST", 0)
    try:
        for naif_id, center, step_hours, segment_id in SEGMENTS:
            step = step_hours * 3600.0
            epochs = np.arange(first, last + step, step)
            states = np.array([_state(naif_id, et) for et in epochs])
            spice.spkw08(
                handle, naif_id, center, "J2000", epochs[0], epochs[-1], segment_id,
                7, len(epochs), states, epochs[0], step,
            )
    finally:
        spice.spkcls(handle)


def utc_ms(*args: int) -> int:
    """Unix milliseconds of a UTC calendar instant."""

    return astro.datetime_to_unix_ms(datetime(*args, tzinfo=UTC))


@pytest.fixture(scope="session")
def kernel_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    directory = tmp_path_factory.mktemp("kernels")
    _generate_test_kernel(directory / "sun_moon_2025.bsp")
    return directory


@pytest.fixture(scope="session", autouse=True)
def configure_ephemeris(kernel_dir: Path) -> Iterable[None]:
    astro.unload_ephemeris()
    astro.load_ephemeris(str(kernel_dir))
    yield
    astro.unload_ephemeris()


@pytest.fixture
def engine() -> NaturalTimeEngine:
    return NaturalTimeEngine()


@pytest.fixture(scope="module")
def shared_engine() -> NaturalTimeEngine:
    return NaturalTimeEngine()
