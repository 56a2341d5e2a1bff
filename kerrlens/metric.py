"""
Kerr metric
===========
Pure functions of a position and a ``MassSpinConfig``.

Geometric units (G = c = 1). Boyer-Lindquist coordinates (r, theta, phi) are
embedded in Cartesian space as oblate spheroidal coordinates with the spin
axis along +z:

    x = sqrt(r^2 + a^2) sin(theta) cos(phi)
    y = sqrt(r^2 + a^2) sin(theta) sin(phi)
    z = r cos(theta)

Nothing here is meant to be evaluated at or inside the event horizon.
"""
import math

import numpy as np

# Constants (SI)
c = 299792458.0  # Speed of light
G = 6.67430e-11  # Gravitational constant
SAG_A_MASS = 8.54e36  # Sagittarius A*, kg

SPIN_AXIS = np.array([0.0, 0.0, 1.0])

# sin(theta) floor for the 1/sin terms near the axis
_AXIS_EPS = 1e-8


def geometric_mass(mass_kg):
    """Mass in metres, G M / c^2."""
    return G * mass_kg / (c * c)


def schwarzschild_radius(config):
    return 2.0 * config.mass


def horizon_radius(config):
    """Outer event horizon r_+ = M + sqrt(M^2 - a^2)."""
    M = config.mass
    a = config.spin_length
    return M + math.sqrt(max(M * M - a * a, 0.0))


def inner_horizon_radius(config):
    M = config.mass
    a = config.spin_length
    return M - math.sqrt(max(M * M - a * a, 0.0))


def ergosphere_radius(config, theta):
    """Stationary limit surface; equals the horizon at the poles."""
    M = config.mass
    a = config.spin_length
    cos_th = math.cos(theta)
    return M + math.sqrt(max(M * M - a * a * cos_th * cos_th, 0.0))


def frame_drag_coefficient(config):
    rs = schwarzschild_radius(config)
    return config.spin * config.spin * rs * rs * 0.5


def sigma(r, theta, a):
    cos_th = math.cos(theta)
    return r * r + a * a * cos_th * cos_th


def delta(r, mass, a):
    return r * r - 2.0 * mass * r + a * a


def frame_dragging_angular_velocity(r, theta, config):
    """Angular velocity omega = -g_tphi / g_phiphi of the local non-rotating frame."""
    M = config.mass
    a = config.spin_length
    sin_th = math.sin(theta)
    A = (r * r + a * a) ** 2 - a * a * delta(r, M, a) * sin_th * sin_th
    return 2.0 * M * a * r / A


def metric_components(r, theta, config):
    """Non-zero Boyer-Lindquist components (g_tt, g_tphi, g_rr, g_thth, g_phph).

    g_rr diverges on the horizons.
    """
    M = config.mass
    a = config.spin_length
    sin_th = math.sin(theta)
    s2 = sin_th * sin_th
    sig = sigma(r, theta, a)
    dlt = delta(r, M, a)
    A = (r * r + a * a) ** 2 - a * a * dlt * s2
    return (
        -(1.0 - 2.0 * M * r / sig),
        -2.0 * M * a * r * s2 / sig,
        sig / dlt,
        sig,
        A * s2 / sig,
    )


def time_dilation_factor(r, theta, config):
    """d(tau)/dt for an observer at rest at (r, theta).

    Zero on and inside the ergosphere, where nothing can stay at rest.
    """
    g_tt = -(1.0 - 2.0 * config.mass * r / sigma(r, theta, config.spin_length))
    return math.sqrt(-g_tt) if g_tt < 0.0 else 0.0


# --- Coordinates ---

def boyer_lindquist_radius(position, a):
    x, y, z = position
    w = x * x + y * y + z * z - a * a
    return math.sqrt(0.5 * (w + math.sqrt(w * w + 4.0 * a * a * z * z)))


def cartesian_to_boyer_lindquist(position, a):
    x, y, z = position
    r = boyer_lindquist_radius(position, a)
    theta = math.acos(max(-1.0, min(1.0, z / r)))
    phi = math.atan2(y, x)
    return r, theta, phi


def boyer_lindquist_to_cartesian(r, theta, phi, a):
    rho = math.sqrt(r * r + a * a)
    sin_th = math.sin(theta)
    return np.array([
        rho * sin_th * math.cos(phi),
        rho * sin_th * math.sin(phi),
        r * math.cos(theta),
    ])


def embedding_jacobian(r, theta, phi, a):
    """Columns are d/dr, d/dtheta, d/dphi of the Cartesian embedding."""
    rho = math.sqrt(r * r + a * a)
    sin_th, cos_th = math.sin(theta), math.cos(theta)
    sin_ph, cos_ph = math.sin(phi), math.cos(phi)
    return np.array([
        [r / rho * sin_th * cos_ph, rho * cos_th * cos_ph, -rho * sin_th * sin_ph],
        [r / rho * sin_th * sin_ph, rho * cos_th * sin_ph, rho * sin_th * cos_ph],
        [cos_th, -r * sin_th, 0.0],
    ])


def oblate_basis(r, theta, phi, a):
    """Orthonormal (e_r, e_theta, e_phi) at a point off the spin axis."""
    J = embedding_jacobian(r, theta, phi, a)
    J /= np.linalg.norm(J, axis=0)
    return J[:, 0], J[:, 1], J[:, 2]


# --- Fast path: approximate accelerations on Cartesian vectors ---

def radial_acceleration(position, direction, config):
    """Photon bending towards the mass, -3/2 r_s |x cross v|^2 x / r^5.

    Exact orbit shape for a non-spinning hole; used for every spin.
    """
    rs = schwarzschild_radius(config)
    h = np.cross(position, direction)
    h2 = float(np.dot(h, h))
    r2 = float(np.dot(position, position))
    return -1.5 * rs * h2 * position / (r2 * r2 * math.sqrt(r2))


def frame_drag_acceleration(position, config):
    """Tangential push around the spin axis, prograde for positive spin."""
    coeff = math.copysign(frame_drag_coefficient(config), config.spin)
    r2 = float(np.dot(position, position))
    return coeff * np.cross(SPIN_AXIS, position) / (r2 * r2)


# --- Accurate path: Hamiltonian equations of motion ---
#
# y = (r, theta, phi, p_r, p_theta), with p_t = -E and p_phi = L constant.
# 2 Sigma H = Delta p_r^2 + p_theta^2 - P^2 / Delta + T^2 / sin^2(theta)
# P = (r^2 + a^2) E - a L,  T = L - a E sin^2(theta)

def _safe_sin(theta):
    s = math.sin(theta)
    if abs(s) < _AXIS_EPS:
        return math.copysign(_AXIS_EPS, s)
    return s


def _kerr_terms(y, constants, config):
    r, theta, _, p_r, p_th = y
    E = constants.energy
    L = constants.angular_momentum
    M = config.mass
    a = config.spin_length
    s = _safe_sin(theta)
    cs = math.cos(theta)
    s2 = s * s
    sig = r * r + a * a * cs * cs
    dlt = r * r - 2.0 * M * r + a * a
    P = (r * r + a * a) * E - a * L
    T = L - a * E * s2
    N = dlt * p_r * p_r + p_th * p_th - P * P / dlt + T * T / s2
    return r, s, cs, s2, sig, dlt, P, T, N


def hamiltonian(y, constants, config):
    """Null constraint; zero along an exact photon orbit."""
    _, _, _, _, sig, _, _, _, N = _kerr_terms(y, constants, config)
    return 0.5 * N / sig


def geodesic_rhs(y, constants, config):
    r, s, cs, s2, sig, dlt, P, T, N = _kerr_terms(y, constants, config)
    p_r, p_th = y[3], y[4]
    E = constants.energy
    M = config.mass
    a = config.spin_length

    dr = dlt * p_r / sig
    dtheta = p_th / sig
    dphi = (a * P / dlt + T / s2) / sig

    ddlt = 2.0 * r - 2.0 * M
    dN_dr = ddlt * p_r * p_r - (2.0 * P * 2.0 * r * E / dlt - P * P * ddlt / (dlt * dlt))
    dN_dth = -4.0 * a * E * T * cs / s - 2.0 * T * T * cs / (s2 * s)

    dp_r = -0.5 * dN_dr / sig + N * r / (sig * sig)
    dp_th = -0.5 * dN_dth / sig - N * a * a * cs * s / (sig * sig)
    return np.array([dr, dtheta, dphi, dp_r, dp_th])


def carter_constant(theta, p_theta, constants, config):
    a = config.spin_length
    E = constants.energy
    L = constants.angular_momentum
    s = _safe_sin(theta)
    cs = math.cos(theta)
    return p_theta * p_theta + cs * cs * (L * L / (s * s) - a * a * E * E)


def polar_potential(theta, constants, config):
    """p_theta^2 as a function of theta alone along an orbit with these constants."""
    a = config.spin_length
    E = constants.energy
    L = constants.angular_momentum
    s = _safe_sin(theta)
    cs = math.cos(theta)
    return constants.carter_constant - cs * cs * (L * L / (s * s) - a * a * E * E)
