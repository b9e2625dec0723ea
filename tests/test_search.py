from __future__ import annotations

import math

import pytest

from natural_time.errors import ConvergenceError
from natural_time.search import (
    MS_PER_DAY,
    Direction,
    find_crossing,
    find_maximum,
    refine_crossing,
    sample_function,
    solve_wrapped_root,
)

HOUR_MS = 3_600_000


def _diurnal(ms: int) -> float:
    """Altitude-like curve: lowest at 0h, highest (+40) at 12h."""

    return -40.0 * math.cos(2.0 * math.pi * ms / MS_PER_DAY)


def test_sample_function_includes_both_endpoints():
    samples = sample_function(lambda ms: float(ms), 0, 10 * HOUR_MS + 1, HOUR_MS)
    assert samples.times[0] == 0
    assert samples.times[-1] == 10 * HOUR_MS + 1
    assert samples.values == tuple(float(t) for t in samples.times)


def test_sample_function_rejects_empty_window():
    with pytest.raises(ValueError):
        sample_function(lambda ms: 0.0, 10, 10, 1)


def test_find_crossing_rise_and_set():
    samples = sample_function(_diurnal, 0, MS_PER_DAY, 5 * 60_000)
    rise = find_crossing(_diurnal, samples, 0.0, Direction.RISE)
    fall = find_crossing(_diurnal, samples, 0.0, Direction.SET)
    assert rise is not None and fall is not None
    assert abs(rise - 6 * HOUR_MS) <= 1_000
    assert abs(fall - 18 * HOUR_MS) <= 1_000


def test_find_crossing_returns_none_without_crossing():
    samples = sample_function(_diurnal, 0, MS_PER_DAY, 5 * 60_000)
    assert find_crossing(_diurnal, samples, 45.0, Direction.RISE) is None
    assert find_crossing(_diurnal, samples, -45.0, Direction.SET) is None


def test_refine_crossing_is_reproducible():
    first = refine_crossing(_diurnal, 5 * HOUR_MS, 7 * HOUR_MS, 10.0)
    second = refine_crossing(_diurnal, 5 * HOUR_MS, 7 * HOUR_MS, 10.0)
    assert first == second
    assert abs(_diurnal(first) - 10.0) < 0.01


def test_find_maximum_refines_between_samples():
    peak = 12 * HOUR_MS + 1_234_567
    fn = lambda ms: 30.0 - ((ms - peak) / HOUR_MS) ** 2
    samples = sample_function(fn, 0, MS_PER_DAY, HOUR_MS)
    when, value = find_maximum(fn, samples)
    assert abs(when - peak) <= 2_000
    assert value == pytest.approx(30.0, abs=1e-5)
    assert value >= samples.maximum


def test_find_maximum_on_window_edge():
    samples = sample_function(lambda ms: float(ms), 0, MS_PER_DAY, HOUR_MS)
    when, value = find_maximum(lambda ms: float(ms), samples)
    assert when == MS_PER_DAY
    assert value == float(MS_PER_DAY)


def test_solve_wrapped_root_across_wrap():
    root = 1_700_000_000_000

    def angle(ms: int):
        return (350.0 + (ms - root) / MS_PER_DAY) % 360.0, 1.0

    found = solve_wrapped_root(angle, 350.0, root + 2 * MS_PER_DAY)
    assert abs(found - root) <= 1

    found = solve_wrapped_root(lambda ms: angle(ms + 10 * MS_PER_DAY), 0.0, root)
    assert abs(found - root) <= 1


def test_solve_wrapped_root_raises_without_root():
    with pytest.raises(ConvergenceError):
        solve_wrapped_root(lambda ms: (0.0, 0.0), 180.0, 0)
