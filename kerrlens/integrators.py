"""
Step integrators
================
Two interchangeable strategies behind ``StepIntegrator``:

- ``FixedStepIntegrator``: radius-scaled steps, semi-implicit Euler on the
  Cartesian direction. Cheap enough to run once per pixel; it bends rays
  plausibly but does not conserve the constants of motion.
- ``AdaptiveRK45Integrator``: Cash-Karp embedded 5(4) pair on the Kerr
  geodesic equations in Boyer-Lindquist coordinates with error control.

``advance`` updates the ray state in place and returns it.
"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import replace

import numpy as np

from kerrlens import metric
from kerrlens.config import AdaptiveSettings, FixedStepSettings, Quality, TraceSettings, clamp
from kerrlens.conserved import initial_conditions
from kerrlens.errors import StepSizeUnderflow

logger = logging.getLogger(__name__)


class StepIntegrator(ABC):
    quality = None

    def prepare(self, state, config):
        """One-time setup before the first step of a ray."""
        return state

    @abstractmethod
    def advance(self, state, config):
        ...


class FixedStepIntegrator(StepIntegrator):
    quality = Quality.FAST

    def __init__(self, settings=None):
        self.settings = settings or FixedStepSettings()

    def step_size(self, r, config):
        s = self.settings
        return clamp(s.step_fraction * r, s.min_step * config.mass, s.max_step * config.mass)

    def advance(self, state, config):
        r = metric.boyer_lindquist_radius(state.position, config.spin_length)
        h = self.step_size(r, config)

        accel = (metric.radial_acceleration(state.position, state.direction, config)
                 + metric.frame_drag_acceleration(state.position, config))

        # Semi-implicit Euler: turn first, then move along the new direction
        direction = state.direction + accel * h
        direction /= np.linalg.norm(direction)
        state.direction = direction
        state.position = state.position + direction * h
        state.affine_parameter += h
        state.step_size = h
        return state


# --- Cash-Karp RK45 (embedded) coefficients ---
CK_B = (
    np.array([]),
    np.array([1 / 5]),
    np.array([3 / 40, 9 / 40]),
    np.array([3 / 10, -9 / 10, 6 / 5]),
    np.array([-11 / 54, 5 / 2, -70 / 27, 35 / 27]),
    np.array([1631 / 55296, 175 / 512, 575 / 13824, 44275 / 110592, 253 / 4096]),
)
CK_C5 = np.array([37 / 378, 0.0, 250 / 621, 125 / 594, 0.0, 512 / 1771])  # 5th order
CK_C4 = np.array([2825 / 27648, 0.0, 18575 / 48384, 13525 / 55296, 277 / 14336, 1 / 4])  # 4th order
CK_DC = CK_C5 - CK_C4


def cash_karp_step(y, h, rhs, r_min=None):
    """One embedded step. Returns ``(y5, err)``, or ``None`` if a stage would
    be evaluated at radius ``r_min`` or below."""
    k = np.zeros((6, len(y)))
    for i, b in enumerate(CK_B):
        yi = y + h * (b @ k[:i]) if i else y
        if r_min is not None and not yi[0] > r_min:
            return None
        k[i] = rhs(yi)
    y5 = y + h * (CK_C5 @ k)
    err = h * (CK_DC @ k)
    return y5, err


def polar_distance(theta):
    """Angle from the nearer pole; negative once a ray has run past it."""
    return theta if math.cos(theta) > 0.0 else math.pi - theta


def _polar_step_limit(y, angle, config):
    """Affine step that moves theta by about ``angle`` at the current rate."""
    p_th = abs(y[4])
    if p_th == 0.0:
        return math.inf
    return abs(angle) * metric.sigma(y[0], y[1], config.spin_length) / p_th


class AdaptiveRK45Integrator(StepIntegrator):
    """Cash-Karp stepping of (r, theta, phi, p_r, p_theta).

    A ray that comes within ``axis_threshold`` of the spin axis crosses it on
    the orbit with the same (r, theta, p_r, p_theta) and L = 0, which runs
    straight through the pole. On the far side theta and phi are mapped back
    (theta -> -theta, phi -> phi + pi) and the momenta are put back on the
    constraint surface of the true constants.
    """
    quality = Quality.ACCURATE

    def __init__(self, settings=None):
        self.settings = settings or AdaptiveSettings()

    def prepare(self, state, config):
        constants, phase = initial_conditions(state, config)
        state.constants = constants
        state.phase = phase
        state.pole_crossing = None
        if state.step_size <= 0.0:
            s = self.settings
            state.step_size = min(s.initial_step_fraction * phase[0], s.max_step * config.mass)
        return state

    def _error_norm(self, y, y5, err):
        scale = np.maximum(np.abs(y5), np.abs(y)) + self.settings.error_floor
        return float(np.max(np.abs(err) / scale))

    def _step(self, state, y, h, rhs, config):
        """One accepted step from ``y``. Returns ``(y5, h, next_h)``."""
        s = self.settings
        tol = s.tolerance
        h_min = s.min_step * config.mass
        r_h = metric.horizon_radius(config)

        while True:
            if h < h_min:
                raise StepSizeUnderflow(f"step {h:.3g} below minimum {h_min:.3g} at r={y[0]:.6g}", state)
            result = cash_karp_step(y, h, rhs, r_min=r_h)
            if result is not None:
                y5, err = result
                if y5[0] > r_h and np.all(np.isfinite(y5)) and np.all(np.isfinite(err)):
                    err_norm = self._error_norm(y, y5, err)
                    if err_norm <= tol:
                        break
                    h *= max(s.min_shrink, s.safety * (tol / err_norm) ** 0.25)
                    continue
            # A stage reached the horizon or blew up
            h *= s.min_shrink

        if err_norm == 0.0:
            growth = s.max_growth
        else:
            growth = min(s.max_growth, s.safety * (tol / err_norm) ** 0.2)
        return y5, h, min(h * growth, s.max_step * config.mass)

    def _approaching_pole(self, y, constants, config):
        u = polar_distance(y[1])
        if u >= self.settings.axis_threshold or y[4] * math.cos(y[1]) >= 0.0:
            return False
        # Rays turning around before half way in are left to the normal steps
        half = 0.5 * u if math.cos(y[1]) > 0.0 else math.pi - 0.5 * u
        return metric.polar_potential(half, constants, config) > 0.0

    def _leave_pole(self, y, constants, config):
        r, theta, phi, p_r, p_th = y
        theta = -theta if math.cos(theta) > 0.0 else 2.0 * math.pi - theta
        phi += math.pi
        p_th = -p_th

        E = constants.energy
        L = constants.angular_momentum
        M = config.mass
        a = config.spin_length
        p_th = math.copysign(math.sqrt(max(metric.polar_potential(theta, constants, config), 0.0)), p_th)
        s2 = math.sin(theta) ** 2
        dlt = metric.delta(r, M, a)
        P = (r * r + a * a) * E - a * L
        T = L - a * E * s2
        radial = P * P / dlt - p_th * p_th - T * T / s2
        p_r = math.copysign(math.sqrt(max(radial, 0.0) / dlt), p_r)
        return np.array([r, theta, phi, p_r, p_th])

    def advance(self, state, config):
        if state.phase is None:
            state = self.prepare(state, config)
        constants = state.constants
        y = state.phase
        h = min(state.step_size, self.settings.max_step * config.mass)

        if state.pole_crossing is None and self._approaching_pole(y, constants, config):
            state.pole_crossing = polar_distance(y[1])
            logger.debug("Crossing the spin axis at r=%.6g", y[0])

        if state.pole_crossing is not None:
            axial = replace(constants, angular_momentum=0.0)
            h = min(h, _polar_step_limit(y, state.pole_crossing, config))
            y5, h, next_h = self._step(state, y, h, lambda v: metric.geodesic_rhs(v, axial, config), config)
            motion = axial
            if polar_distance(y5[1]) <= -state.pole_crossing:
                y5 = self._leave_pole(y5, constants, config)
                state.pole_crossing = None
                motion = constants
        else:
            if y[4] * math.cos(y[1]) < 0.0:
                # Close in on the pole no faster than halving the distance
                h = min(h, _polar_step_limit(y, 0.5 * polar_distance(y[1]), config))
            y5, h, next_h = self._step(state, y, h, lambda v: metric.geodesic_rhs(v, constants, config), config)
            motion = constants

        r, theta, phi = y5[0], y5[1], y5[2]
        a = config.spin_length
        velocity = metric.embedding_jacobian(r, theta, phi, a) @ metric.geodesic_rhs(y5, motion, config)[:3]
        speed = np.linalg.norm(velocity)
        if speed > 0.0 and np.isfinite(speed):
            state.direction = velocity / speed
        state.position = metric.boyer_lindquist_to_cartesian(r, theta, phi, a)
        state.phase = y5
        state.affine_parameter += h
        state.step_size = next_h
        return state

    def drift(self, state, config):
        """(Hamiltonian, Carter constant change) for an integrated state."""
        y = state.phase
        constants = state.constants
        carter = metric.carter_constant(y[1], y[4], constants, config)
        return metric.hamiltonian(y, constants, config), carter - constants.carter_constant


_STRATEGIES = {
    Quality.FAST: (FixedStepIntegrator, "fixed"),
    Quality.ACCURATE: (AdaptiveRK45Integrator, "adaptive"),
}


def make_integrator(quality, settings=None):
    settings = settings or TraceSettings()
    cls, attr = _STRATEGIES[Quality(quality)]
    return cls(getattr(settings, attr))
