"""Bounded numerical searches over continuous astronomical quantities.

Every search here runs a fixed maximum number of iterations on integer
millisecond instants, so identical inputs always produce identical outputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .errors import ConvergenceError

__all__ = [
    "Direction",
    "Samples",
    "sample_function",
    "refine_crossing",
    "find_crossing",
    "find_maximum",
    "solve_wrapped_root",
]

MS_PER_DAY = 86_400_000
TIME_TOLERANCE_MS = 1_000
VALUE_TOLERANCE_DEG = 1e-4

_INV_PHI = (math.sqrt(5.0) - 1.0) / 2.0


class Direction(str, Enum):
    RISE = "rise"
    SET = "set"


@dataclass(frozen=True)
class Samples:
    """Values of a function at increasing instants, endpoints included."""

    times: Tuple[int, ...]
    values: Tuple[float, ...]

    @property
    def minimum(self) -> float:
        return min(self.values)

    @property
    def maximum(self) -> float:
        return max(self.values)


def sample_function(
    fn: Callable[[int], float], start_ms: int, end_ms: int, step_ms: int
) -> Samples:
    if end_ms <= start_ms:
        raise ValueError("end_ms must be greater than start_ms")
    if step_ms <= 0:
        raise ValueError("step_ms must be positive")
    times = list(range(start_ms, end_ms, step_ms))
    times.append(end_ms)
    return Samples(times=tuple(times), values=tuple(fn(t) for t in times))


def refine_crossing(
    fn: Callable[[int], float],
    start_ms: int,
    end_ms: int,
    threshold: float,
    max_iterations: int = 24,
) -> int:
    """Refine the crossing between *start_ms* and *end_ms* via binary search."""

    value_start = fn(start_ms) - threshold
    value_end = fn(end_ms) - threshold
    if value_start == 0:
        return start_ms
    if value_end == 0:
        return end_ms
    low, low_val = start_ms, value_start
    high = end_ms
    for _ in range(max_iterations):
        mid = low + (high - low) // 2
        mid_val = fn(mid) - threshold
        if abs(mid_val) < VALUE_TOLERANCE_DEG or (high - low) <= TIME_TOLERANCE_MS:
            return mid
        if low_val * mid_val <= 0:
            high = mid
        else:
            low, low_val = mid, mid_val
    return low + (high - low) // 2


def find_crossing(
    fn: Callable[[int], float],
    samples: Samples,
    threshold: float,
    direction: Direction,
    max_iterations: int = 24,
) -> Optional[int]:
    """Return the first instant where *fn* crosses *threshold* in *direction*.

    ``None`` means the sampled window holds no such crossing.
    """

    times, values = samples.times, samples.values
    for idx in range(1, len(times)):
        prev_val = values[idx - 1] - threshold
        curr_val = values[idx] - threshold
        if direction is Direction.RISE and prev_val < 0 <= curr_val:
            return refine_crossing(fn, times[idx - 1], times[idx], threshold, max_iterations)
        if direction is Direction.SET and prev_val >= 0 > curr_val:
            return refine_crossing(fn, times[idx - 1], times[idx], threshold, max_iterations)
    return None


def find_maximum(
    fn: Callable[[int], float], samples: Samples, max_iterations: int = 60
) -> Tuple[int, float]:
    """Locate the highest value of *fn* inside the sampled window.

    A golden-section search runs on the two sample intervals around the best
    sample; a maximum sitting on a window edge is returned as sampled.
    """

    times, values = samples.times, samples.values
    best = max(range(len(values)), key=values.__getitem__)
    best_time, best_value = times[best], values[best]
    if best == 0 or best == len(times) - 1:
        return best_time, best_value

    low, high = times[best - 1], times[best + 1]
    x1 = high - int(round(_INV_PHI * (high - low)))
    x2 = low + int(round(_INV_PHI * (high - low)))
    f1, f2 = fn(x1), fn(x2)
    for _ in range(max_iterations):
        if high - low <= TIME_TOLERANCE_MS:
            break
        if f1 < f2:
            low, x1, f1 = x1, x2, f2
            x2 = low + int(round(_INV_PHI * (high - low)))
            f2 = fn(x2)
        else:
            high, x2, f2 = x2, x1, f1
            x1 = high - int(round(_INV_PHI * (high - low)))
            f1 = fn(x1)

    candidate, value = (x1, f1) if f1 >= f2 else (x2, f2)
    if value < best_value:
        return best_time, best_value
    return candidate, value


def _wrap180(angle: float) -> float:
    return (angle + 180.0) % 360.0 - 180.0


def solve_wrapped_root(
    fn: Callable[[int], Tuple[float, float]],
    target_deg: float,
    initial_ms: int,
    *,
    search_days: float = 5.0,
    max_iterations: int = 20,
    tolerance_ms: int = 1,
) -> int:
    """Find when an increasing angle reaches *target_deg*.

    *fn* returns the angle in degrees and its rate in degrees per day.
    Newton-Raphson runs first with steps clamped to three days; if it stalls,
    bisection over ``initial_ms +/- search_days`` takes over.

    Raises
    ------
    ConvergenceError
        If no root lies inside the bisection window.
    """

    current = initial_ms
    value, rate = fn(current)
    residual = _wrap180(value - target_deg)
    for _ in range(max_iterations):
        if abs(rate) < 1e-12:
            break
        delta_days = max(-3.0, min(3.0, residual / rate))
        delta_ms = int(round(delta_days * MS_PER_DAY))
        candidate = current - delta_ms
        cand_value, cand_rate = fn(candidate)
        cand_residual = _wrap180(cand_value - target_deg)
        if abs(cand_residual) > abs(residual) and abs(delta_ms) > tolerance_ms:
            break
        current, residual, rate = candidate, cand_residual, cand_rate
        if abs(delta_ms) <= tolerance_ms:
            return current

    span = int(search_days * MS_PER_DAY)
    low, high = initial_ms - span, initial_ms + span
    low_val = _wrap180(fn(low)[0] - target_deg)
    high_val = _wrap180(fn(high)[0] - target_deg)
    if low_val > 0 or high_val < 0:
        raise ConvergenceError(
            f"No crossing of {target_deg} deg within {search_days} days of {initial_ms}"
        )
    for _ in range(64):
        if high - low <= tolerance_ms:
            break
        mid = low + (high - low) // 2
        mid_val = _wrap180(fn(mid)[0] - target_deg)
        if mid_val < 0:
            low = mid
        else:
            high = mid
    return low + (high - low) // 2
