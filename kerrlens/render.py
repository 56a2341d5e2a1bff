import logging
import math
import time

import matplotlib.pyplot as plt
import numpy as np

from kerrlens import metric
from kerrlens.config import Quality
from kerrlens.environment import ABSORBED_COLOR, ProceduralSky, shade
from kerrlens.frame import map_rows
from kerrlens.ray import OutcomeKind
from kerrlens.tracer import trace

logger = logging.getLogger(__name__)

PATH_COLORS = {
    OutcomeKind.CAPTURED: "#D55E00",
    OutcomeKind.ESCAPED: "#0072B2",
    OutcomeKind.INCONCLUSIVE: "#999999",
}


def _shade_row(args):
    j, origin, directions, params, sampler, absorbed_color = args
    row = np.zeros((len(directions), 3))
    for i, d in enumerate(directions):
        outcome = trace(origin, d, params.config, params.quality, params.settings)
        row[i] = shade(outcome, sampler, absorbed_color)
    return j, row


def render_frame(camera, params, sampler=None, width=160, height=90, workers=1,
                 absorbed_color=ABSORBED_COLOR):
    """Trace one ray per pixel and shade it. Returns a float (height, width, 3) image."""
    sampler = sampler or ProceduralSky()
    origin = camera.position()
    directions = camera.ray_directions(width, height)
    jobs = [(j, origin, directions[j], params, sampler, absorbed_color) for j in range(height)]

    image = np.zeros((height, width, 3))
    start = time.perf_counter()
    for j, row in map_rows(_shade_row, jobs, workers):
        image[j] = row
    logger.info("Rendered %dx%d frame (%s, mass=%.3g, spin=%.3g) in %.2fs",
                width, height, params.quality.value, params.config.mass, params.config.spin,
                time.perf_counter() - start)
    return image


def save_image(path, image):
    plt.imsave(path, np.clip(image, 0.0, 1.0))
    logger.info("Saved image to %s", path)


# --- Equatorial ray fans ---

def fan_rays(config, n_rays=24, distance=30.0, spread=2.5):
    """Parallel rays travelling +x in the equatorial plane, impact parameters
    spread around the Schwarzschild critical value 3 sqrt(3) M."""
    b_c = 3.0 * math.sqrt(3.0) * config.mass
    x0 = -distance * config.mass
    offsets = np.linspace(-spread * b_c, spread * b_c, n_rays)
    return [(np.array([x0, b, 0.0]), np.array([1.0, 0.0, 0.0])) for b in offsets]


def trace_fan(config, quality=Quality.ACCURATE, settings=None, **fan_kwargs):
    return [trace(o, d, config, quality, settings, record_path=True)
            for o, d in fan_rays(config, **fan_kwargs)]


def plot_paths(outcomes, config, path, title=None, limit=None):
    """Draw recorded ray paths projected on the equatorial plane."""
    # Equatorial radii of the oblate embedding are sqrt(r^2 + a^2)
    a = config.spin_length
    r_h = math.hypot(metric.horizon_radius(config), a)
    ergo = math.hypot(metric.ergosphere_radius(config, math.pi / 2.0), a)
    limit = limit or 15.0 * config.mass

    fig, ax = plt.subplots(figsize=(8, 8))
    ax.set_aspect("equal")
    ax.set_xlim(-limit, limit)
    ax.set_ylim(-limit, limit)
    ax.set_xlabel("x / M")
    ax.set_ylabel("y / M")
    ax.set_title(title or f"Photon paths, spin={config.spin:.2f}")

    ax.add_artist(plt.Circle((0.0, 0.0), r_h, color="black"))
    ax.add_artist(plt.Circle((0.0, 0.0), ergo, fill=False, ls="--", color="#E69F00"))

    for outcome in outcomes:
        if len(outcome.path) < 2:
            continue
        pts = np.array(outcome.path)
        ax.plot(pts[:, 0], pts[:, 1], lw=0.9, alpha=0.8, color=PATH_COLORS[outcome.kind])

    fig.savefig(path, dpi=150)
    plt.close(fig)
    logger.info("Saved %d ray paths to %s", len(outcomes), path)
