"""
Configuration
=============
Black hole parameters, integrator settings and the live parameter store.

Lengths (steps, radii) in the settings are multiples of the black hole mass,
so the same settings work for any mass.
"""
from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Slider ranges exposed to the rendering layer
MASS_RANGE = (0.1, 5.0)
SPIN_RANGE = (-1.0, 1.0)
RAY_STEPS_RANGE = (50, 1000)

DEFAULT_MASS = 1.0
DEFAULT_SPIN = 1.0  # maximal spin shows off frame dragging
DEFAULT_RAY_STEPS = 250


def clamp(value, low, high):
    return max(low, min(high, value))


class Quality(Enum):
    FAST = "fast"
    ACCURATE = "accurate"


@dataclass(frozen=True)
class MassSpinConfig:
    """Mass (geometric units) and dimensionless spin a/M of the black hole."""
    mass: float = DEFAULT_MASS
    spin: float = 0.0

    def __post_init__(self):
        if not math.isfinite(self.mass) or self.mass <= 0.0:
            raise ValueError(f"mass must be positive and finite, got {self.mass!r}")
        if not math.isfinite(self.spin) or abs(self.spin) > 1.0:
            raise ValueError(f"spin must lie in [-1, 1], got {self.spin!r}")

    @classmethod
    def clamped(cls, mass: float, spin: float) -> "MassSpinConfig":
        """Build a config from raw UI values, clamping instead of rejecting."""
        return cls(mass=clamp(float(mass), *MASS_RANGE), spin=clamp(float(spin), *SPIN_RANGE))

    @classmethod
    def from_kilograms(cls, mass_kg: float, spin: float = 0.0) -> "MassSpinConfig":
        # Local import: metric imports this module
        from kerrlens.metric import geometric_mass
        return cls(mass=geometric_mass(mass_kg), spin=spin)

    @property
    def spin_length(self) -> float:
        """Kerr parameter a = spin * M, in length units."""
        return self.spin * self.mass


@dataclass(frozen=True)
class FixedStepSettings:
    step_fraction: float = 0.05
    min_step: float = 0.01
    max_step: float = 10.0


@dataclass(frozen=True)
class AdaptiveSettings:
    tolerance: float = 1e-6
    min_step: float = 1e-6
    max_step: float = 20.0
    initial_step_fraction: float = 0.02
    safety: float = 0.9
    max_growth: float = 5.0
    min_shrink: float = 0.1
    error_floor: float = 1e-3
    # Rays coming within this polar angle of the spin axis cross it on the
    # axial (L = 0) orbit
    axis_threshold: float = 1e-3


@dataclass(frozen=True)
class TraceSettings:
    max_steps: int = DEFAULT_RAY_STEPS
    escape_radius: float = 200.0
    horizon_epsilon: float = 1e-2
    require_outbound_escape: bool = True
    fixed: FixedStepSettings = field(default_factory=FixedStepSettings)
    adaptive: AdaptiveSettings = field(default_factory=AdaptiveSettings)

    def __post_init__(self):
        if self.max_steps < 0:
            raise ValueError("max_steps must not be negative")
        if self.escape_radius <= 0.0:
            raise ValueError("escape_radius must be positive")
        if self.horizon_epsilon < 0.0:
            raise ValueError("horizon_epsilon must not be negative")


@dataclass(frozen=True)
class FrameParameters:
    """Immutable snapshot shared by every ray of one frame."""
    config: MassSpinConfig = field(default_factory=MassSpinConfig)
    quality: Quality = Quality.FAST
    settings: TraceSettings = field(default_factory=TraceSettings)


def _checked(cls, values: Mapping[str, Any]) -> dict:
    if not isinstance(values, Mapping):
        raise ValueError(f"{cls.__name__} overrides must be an object, got {type(values).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return dict(values)


def settings_from_mapping(values: Mapping[str, Any], base: TraceSettings | None = None) -> TraceSettings:
    """Apply a (possibly nested) mapping of overrides on top of ``base``."""
    base = base or TraceSettings()
    values = _checked(TraceSettings, values)
    if "fixed" in values:
        values["fixed"] = replace(base.fixed, **_checked(FixedStepSettings, values["fixed"]))
    if "adaptive" in values:
        values["adaptive"] = replace(base.adaptive, **_checked(AdaptiveSettings, values["adaptive"]))
    return replace(base, **values)


def load_settings(path) -> TraceSettings:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    logger.info("Loaded trace settings from %s", path)
    return settings_from_mapping(data)


class LiveParameters:
    """Slider-controlled parameters.

    Setters may be called from a UI thread at any time; a frame only ever sees
    the values through ``snapshot()``, so a change lands between frames.
    """

    def __init__(self, mass=DEFAULT_MASS, spin=DEFAULT_SPIN, ray_steps=DEFAULT_RAY_STEPS,
                 quality=Quality.FAST, settings: TraceSettings | None = None):
        self._lock = threading.Lock()
        self._settings = settings or TraceSettings()
        self._quality = quality
        self._mass = DEFAULT_MASS
        self._spin = DEFAULT_SPIN
        self._ray_steps = DEFAULT_RAY_STEPS
        self.set_mass(mass)
        self.set_spin(spin)
        self.set_ray_steps(ray_steps)

    def _clamped(self, name, value, bounds):
        clamped = clamp(value, *bounds)
        if clamped != value:
            logger.warning("%s=%s outside %s, clamped to %s", name, value, bounds, clamped)
        return clamped

    def set_mass(self, value: float) -> None:
        value = self._clamped("mass", float(value), MASS_RANGE)
        with self._lock:
            self._mass = value

    def set_spin(self, value: float) -> None:
        value = self._clamped("spin", float(value), SPIN_RANGE)
        with self._lock:
            self._spin = value

    def set_ray_steps(self, value: float) -> None:
        value = int(round(self._clamped("ray_steps", float(value), RAY_STEPS_RANGE)))
        with self._lock:
            self._ray_steps = value

    def set_quality(self, quality: Quality) -> None:
        with self._lock:
            self._quality = Quality(quality)

    def snapshot(self) -> FrameParameters:
        with self._lock:
            return FrameParameters(
                config=MassSpinConfig(mass=self._mass, spin=self._spin),
                quality=self._quality,
                settings=replace(self._settings, max_steps=self._ray_steps),
            )
