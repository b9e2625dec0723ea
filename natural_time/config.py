"""Tunable parameters of the event searches."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

__all__ = ["EngineConfig", "ENV_PREFIX"]

ENV_PREFIX = "NATURAL_TIME_"


@dataclass(frozen=True)
class EngineConfig:
    """Search resolution, convergence limits and threshold altitudes.

    Altitudes are in degrees above the geometric horizon and apply to the
    topocentric centre of the body.
    """

    sample_minutes: float = 5.0
    max_iterations: int = 24
    extremum_iterations: int = 60
    cache_decimals: int = 3
    horizon_altitude: float = -0.833
    night_altitude: float = -12.0
    golden_altitude: float = 6.0

    def __post_init__(self) -> None:
        if not 0.0 < self.sample_minutes <= 60.0:
            raise ValueError("sample_minutes must be within (0, 60]")
        if self.max_iterations < 1 or self.extremum_iterations < 1:
            raise ValueError("iteration limits must be positive")
        if not 0 <= self.cache_decimals <= 9:
            raise ValueError("cache_decimals must be within [0, 9]")
        for name in ("horizon_altitude", "night_altitude", "golden_altitude"):
            if not -90.0 < getattr(self, name) < 90.0:
                raise ValueError(f"{name} must be within (-90, 90)")

    @property
    def sample_step_ms(self) -> int:
        return int(round(self.sample_minutes * 60_000))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a configuration from ``NATURAL_TIME_*`` environment variables."""

        environ = os.environ if environ is None else environ
        overrides = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None or raw.strip() == "":
                continue
            caster = int if field.type in (int, "int") else float
            try:
                overrides[field.name] = caster(raw)
            except ValueError as exc:
                raise ValueError(
                    f"Invalid value for {ENV_PREFIX + field.name.upper()}: {raw!r}"
                ) from exc
        return cls(**overrides)
