"""
Environment sampling
====================
Maps an escape direction to a colour. Colours are RGB floats in [0, 1].
"""
from __future__ import annotations

import logging
import math
from typing import Protocol, Tuple

import cv2
import numpy as np
from astropy.io import fits

logger = logging.getLogger(__name__)

Color = Tuple[float, float, float]

ABSORBED_COLOR: Color = (0.0, 0.0, 0.0)


class EnvironmentSampler(Protocol):
    def sample(self, direction) -> Color:
        ...


def direction_angles(direction):
    """(theta, phi) of a direction, theta from +z and phi in [0, 2 pi)."""
    x, y, z = direction
    n = math.sqrt(x * x + y * y + z * z)
    theta = math.acos(max(-1.0, min(1.0, z / n)))
    phi = math.atan2(y, x) % (2.0 * math.pi)
    return theta, phi


def _cell_hash(i, j, seed):
    h = (i * 73856093) ^ (j * 19349663) ^ (seed * 83492791)
    h = (h ^ (h >> 13)) * 1274126177
    return (h & 0xFFFF) / 65536.0


class ProceduralSky:
    """Checkered latitude/longitude grid sprinkled with stars.

    The checker pattern makes lensing distortion easy to read.
    """

    def __init__(self, grid_degrees=15.0, star_density=0.01, star_cell_degrees=0.5, seed=0,
                 dark=(0.02, 0.02, 0.06), light=(0.08, 0.10, 0.22)):
        self.grid_degrees = grid_degrees
        self.star_density = star_density
        self.star_cell_degrees = star_cell_degrees
        self.seed = seed
        self.dark = dark
        self.light = light

    def sample(self, direction) -> Color:
        theta, phi = direction_angles(direction)
        theta_deg, phi_deg = math.degrees(theta), math.degrees(phi)

        i = int(theta_deg // self.star_cell_degrees)
        j = int(phi_deg // self.star_cell_degrees)
        star = _cell_hash(i, j, self.seed)
        if star < self.star_density:
            brightness = 0.6 + 0.4 * star / self.star_density
            return (brightness, brightness, brightness)

        checker = (int(theta_deg // self.grid_degrees) + int(phi_deg // self.grid_degrees)) % 2
        return self.light if checker else self.dark


class SkyMapSampler:
    """Equirectangular sky image: columns span phi, rows span theta."""

    def __init__(self, image):
        image = np.asarray(image, dtype=np.float32)
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"expected an (H, W, 3) image, got shape {image.shape}")
        self.image = image

    @classmethod
    def from_array(cls, image):
        image = np.asarray(image)
        if image.ndim == 2:
            image = np.repeat(image[:, :, None], 3, axis=2)
        if image.dtype == np.uint8:
            image = image.astype(np.float32) / 255.0
        return cls(image)

    @classmethod
    def from_image(cls, path):
        bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if bgr is None:
            raise ValueError(f"could not read sky image {path}")
        logger.info("Loaded sky map %s (%dx%d)", path, bgr.shape[1], bgr.shape[0])
        return cls.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))

    @classmethod
    def from_fits(cls, path):
        """Greyscale sky from the first HDU carrying image data."""
        with fits.open(path) as hdul:
            img_data = None
            for hdu in hdul:
                data = getattr(hdu, "data", None)
                if data is not None:
                    img_data = np.array(data)
                    break

        if img_data is None:
            raise ValueError(f"no image data found in {path}")
        while img_data.ndim > 2:
            img_data = img_data[0]

        # convert to float32 and normalize
        img_data = np.nan_to_num(img_data.astype(np.float32))
        dst = np.zeros_like(img_data)
        norm = cv2.normalize(src=img_data, dst=dst, alpha=0, beta=255,
                             norm_type=cv2.NORM_MINMAX, dtype=cv2.CV_8U)
        logger.info("Loaded FITS sky map %s (%dx%d)", path, norm.shape[1], norm.shape[0])
        return cls.from_array(np.uint8(norm))

    def sample(self, direction) -> Color:
        theta, phi = direction_angles(direction)
        h, w = self.image.shape[:2]
        row = min(int(theta / math.pi * h), h - 1)
        col = min(int(phi / (2.0 * math.pi) * w), w - 1)
        r, g, b = self.image[row, col]
        return (float(r), float(g), float(b))


def shade(outcome, sampler, absorbed_color=ABSORBED_COLOR) -> Color:
    if outcome.captured or outcome.direction is None:
        return absorbed_color
    return sampler.sample(outcome.direction)
