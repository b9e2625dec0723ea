from __future__ import annotations

import math
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from conftest import utc_ms
from natural_time import NaturalTimeEngine, astro
from natural_time.errors import EphemerisError, InputRangeError

LONDON_LAT = 51.5


def _phase_distance(phase: float, target: float) -> float:
    delta = abs(phase - target) % 360.0
    return min(delta, 360.0 - delta)


def test_london_midsummer_sun_events(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 21, 12), 0.0)
    events = shared_engine.sun_events(date, LONDON_LAT)
    assert events.status == "ok"
    assert events.night_status == "ok"
    assert events.golden_status == "ok"
    # 03:43 and 20:21 UTC
    assert 53.0 < events.sunrise < 58.0
    assert 303.0 < events.sunset < 308.0
    assert (
        events.night_end
        < events.sunrise
        < events.morning_golden
        < 180.0
        < events.evening_golden
        < events.sunset
        < events.night_start
    )


def test_sunrise_before_noon_before_sunset_through_the_year(shared_engine):
    for month in range(1, 13):
        date = shared_engine.derive_natural_date(utc_ms(2025, month, 15, 12), -3.7)
        events = shared_engine.sun_events(date, 40.4)
        assert events.status == "ok"
        assert events.sunrise < 180.0 < events.sunset


def test_polar_day_is_not_an_error(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 21, 12), 0.0)
    events = shared_engine.sun_events(date, 89.0)
    assert events.sunrise is None
    assert events.sunset is None
    assert events.status == "polar_day"
    assert events.golden_status == "always_above"
    assert events.night_status == "always_above"


def test_midsummer_without_astronomical_night(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 21, 12), 0.0)
    events = shared_engine.sun_events(date, 55.0)
    assert events.status == "ok"
    assert events.sunrise is not None and events.sunset is not None
    assert events.night_status == "always_above"
    assert events.night_start is None and events.night_end is None
    assert events.golden_status == "ok"


def test_polar_night(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 12, 21, 12), 15.6469)
    events = shared_engine.sun_events(date, 78.2232)
    assert events.status == "polar_night"
    assert events.sunrise is None and events.sunset is None
    assert events.golden_status == "always_below"


def test_sun_position_at_noon(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 21, 12), 0.0)
    position = shared_engine.sun_position(date, LONDON_LAT)
    assert position.highest_altitude == pytest.approx(61.94, abs=0.2)
    assert 61.5 < position.altitude <= position.highest_altitude
    assert 176.0 < position.azimuth < 184.0


def test_sun_altitude_clamped_at_night(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 21, 0, 30), 0.0)
    position = shared_engine.sun_position(date, LONDON_LAT)
    assert position.altitude == 0.0
    assert position.highest_altitude > 60.0


def test_moon_phase_angles(shared_engine):
    full = shared_engine.derive_natural_date(utc_ms(2025, 6, 11, 7, 44), 0.0)
    assert _phase_distance(shared_engine.moon_position(full, LONDON_LAT).phase_deg, 180.0) < 1.5

    new = shared_engine.derive_natural_date(utc_ms(2025, 6, 25, 10, 31), 0.0)
    assert _phase_distance(shared_engine.moon_position(new, LONDON_LAT).phase_deg, 0.0) < 1.5


def test_full_moon_rises_in_the_evening(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 11, 12), 0.0)
    events = shared_engine.moon_events(date, LONDON_LAT)
    assert events.status == "ok"
    assert events.moonset is not None and events.moonset < 90.0
    assert events.moonrise is not None and events.moonrise > 285.0
    assert 5.0 < events.highest_altitude < 16.0

    position = shared_engine.moon_position(date, LONDON_LAT)
    assert position.highest_altitude == events.highest_altitude
    assert 0.0 <= position.azimuth < 360.0


def test_moon_events_values_are_day_degrees(shared_engine):
    for day in range(1, 29, 3):
        date = shared_engine.derive_natural_date(utc_ms(2025, 9, day, 12), 10.0)
        events = shared_engine.moon_events(date, 45.0)
        for value in (events.moonrise, events.moonset):
            assert value is None or 0.0 <= value < 360.0
        assert events.moonrise is not None or events.moonset is not None


def test_mustaches_equator_is_narrow(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 3, 1, 12), 0.0)
    envelope = shared_engine.mustaches_range(date, 0.0)
    assert abs(envelope.winter_sunrise - envelope.summer_sunrise) < 3.0
    assert abs(envelope.winter_sunset - envelope.summer_sunset) < 3.0
    assert envelope.average_angle < 2.0


@pytest.mark.parametrize("latitude", [60.0, -60.0])
def test_mustaches_high_latitude_is_wide(shared_engine, latitude):
    date = shared_engine.derive_natural_date(utc_ms(2025, 3, 1, 12), 0.0)
    envelope = shared_engine.mustaches_range(date, latitude)
    assert envelope.average_angle > 30.0
    if latitude > 0:
        assert envelope.winter_sunrise > envelope.summer_sunrise
    else:
        assert envelope.winter_sunrise < envelope.summer_sunrise


def test_mustaches_polar_envelope_saturates(shared_engine):
    date = shared_engine.derive_natural_date(utc_ms(2025, 3, 1, 12), 0.0)
    envelope = shared_engine.mustaches_range(date, 89.0)
    assert (envelope.winter_sunrise, envelope.winter_sunset) == (180.0, 180.0)
    assert (envelope.summer_sunrise, envelope.summer_sunset) == (0.0, 360.0)
    assert envelope.average_angle == 90.0


def test_reset_then_requery_is_bit_identical(engine):
    date = engine.derive_natural_date(utc_ms(2025, 10, 2, 18), 2.35)
    before = (
        engine.sun_events(date, 48.85),
        engine.sun_position(date, 48.85),
        engine.moon_position(date, 48.85),
        engine.moon_events(date, 48.85),
        engine.mustaches_range(date, 48.85),
    )
    assert len(engine.cache) > 0

    engine.reset_caches()
    assert len(engine.cache) == 0

    again = engine.derive_natural_date(utc_ms(2025, 10, 2, 18), 2.35)
    after = (
        engine.sun_events(again, 48.85),
        engine.sun_position(again, 48.85),
        engine.moon_position(again, 48.85),
        engine.moon_events(again, 48.85),
        engine.mustaches_range(again, 48.85),
    )
    assert again == date
    assert after == before


def test_nearby_latitudes_share_cached_searches(engine):
    date = engine.derive_natural_date(utc_ms(2025, 4, 4, 4), 12.5)
    first = engine.sun_events(date, 41.9)
    misses = engine.cache_stats()["misses"]
    second = engine.sun_events(date, 41.9000001)
    assert second is first
    assert engine.cache_stats()["misses"] == misses


def test_concurrent_queries_agree(engine):
    date = engine.derive_natural_date(utc_ms(2025, 7, 7, 7), -74.0)
    results = []

    def worker():
        results.append(engine.sun_events(date, 40.7))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(results) == 4
    assert all(result == results[0] for result in results)


@pytest.mark.parametrize("latitude", [90.5, -91.0, math.nan])
def test_invalid_latitude(shared_engine, latitude):
    date = shared_engine.derive_natural_date(utc_ms(2025, 6, 1), 0.0)
    for query in (
        shared_engine.sun_events,
        shared_engine.sun_position,
        shared_engine.moon_position,
        shared_engine.moon_events,
        shared_engine.mustaches_range,
    ):
        with pytest.raises(InputRangeError):
            query(date, latitude)


def test_instant_outside_kernel_coverage_is_an_ephemeris_error(engine):
    with pytest.raises(EphemerisError):
        engine.derive_natural_date(utc_ms(2031, 3, 3), 0.0)


def test_unloaded_ephemeris_is_reported(engine, kernel_dir: Path):
    astro.unload_ephemeris()
    try:
        with pytest.raises(EphemerisError):
            engine.derive_natural_date(utc_ms(2025, 3, 3), 0.0)
    finally:
        astro.load_ephemeris(str(kernel_dir))


def test_parallel_distinct_queries_match_sequential():
    instants = [utc_ms(2025, month, 19, 17) for month in range(1, 13, 2)]
    latitudes = [-35.0, 0.0, 52.0, 64.5]
    queries = [(instant, latitude) for instant in instants for latitude in latitudes]

    def run(engine, query):
        instant, latitude = query
        date = engine.derive_natural_date(instant, 13.4)
        return engine.sun_events(date, latitude), engine.moon_events(date, latitude)

    sequential = NaturalTimeEngine()
    expected = [run(sequential, query) for query in queries]

    threaded = NaturalTimeEngine()
    with ThreadPoolExecutor(max_workers=12) as pool:
        actual = list(pool.map(lambda query: run(threaded, query), queries))

    assert actual == expected


def test_parallel_raw_altitudes_match_sequential():
    observer = astro.Observer(52.0, 13.4)
    start = utc_ms(2025, 1, 19)
    jobs = [
        (astro.Body.SUN if index % 2 else astro.Body.MOON, start + index * 97_000)
        for index in range(2000)
    ]
    expected = [astro.altitude(body, ms, observer) for body, ms in jobs]
    with ThreadPoolExecutor(max_workers=16) as pool:
        actual = list(pool.map(lambda job: astro.altitude(job[0], job[1], observer), jobs))
    assert actual == expected
