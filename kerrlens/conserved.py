"""Constants of motion for a camera ray.

The Cartesian direction is read in the orthonormal oblate frame at the ray
origin and taken as the photon's direction in the locally non-rotating frame
there. Its energy is then normalized to 1.
"""
import math
from dataclasses import replace

import numpy as np

from kerrlens import metric
from kerrlens.errors import InvalidInitialCondition
from kerrlens.ray import ConservedQuantities

# Distance from the spin axis, in units of mass, below which a ray origin has
# no usable phi direction
AXIS_TOLERANCE = 1e-9


def initial_conditions(state, config):
    """Return ``(constants, phase)`` with phase = (r, theta, phi, p_r, p_theta)."""
    position = np.asarray(state.position, dtype=float)
    direction = np.asarray(state.direction, dtype=float)

    norm = float(np.linalg.norm(direction))
    if not math.isfinite(norm) or norm == 0.0:
        raise InvalidInitialCondition(f"degenerate ray direction {direction}", state)
    if math.hypot(position[0], position[1]) <= AXIS_TOLERANCE * config.mass:
        raise InvalidInitialCondition("ray origin lies on the spin axis", state)

    M = config.mass
    a = config.spin_length
    r, theta, phi = metric.cartesian_to_boyer_lindquist(position, a)
    if r <= metric.horizon_radius(config):
        raise InvalidInitialCondition(f"ray origin r={r:.6g} is not outside the horizon", state)

    e_r, e_theta, e_phi = metric.oblate_basis(r, theta, phi, a)
    n = direction / norm
    n_r, n_theta, n_phi = float(n @ e_r), float(n @ e_theta), float(n @ e_phi)

    # Locally non-rotating frame
    sin_th = math.sin(theta)
    sig = metric.sigma(r, theta, a)
    dlt = metric.delta(r, M, a)
    A = (r * r + a * a) ** 2 - a * a * dlt * sin_th * sin_th
    e_nu = math.sqrt(sig * dlt / A)
    e_psi = math.sqrt(A / sig) * sin_th
    omega = metric.frame_dragging_angular_velocity(r, theta, config)

    # Covariant momenta for unit local energy
    L = e_psi * n_phi
    E = e_nu + omega * L
    if E <= 1e-12:
        raise InvalidInitialCondition("photon has non-positive energy at infinity", state)
    p_r = n_r * math.sqrt(sig / dlt)
    p_theta = n_theta * math.sqrt(sig)

    # Affine parameterization with E = 1
    L /= E
    p_r /= E
    p_theta /= E
    constants = ConservedQuantities(energy=1.0, angular_momentum=L, carter_constant=0.0)
    Q = metric.carter_constant(theta, p_theta, constants, config)
    return replace(constants, carter_constant=Q), np.array([r, theta, phi, p_r, p_theta])


def solve_conserved_quantities(state, config):
    constants, _ = initial_conditions(state, config)
    return constants
