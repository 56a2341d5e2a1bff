import math

import numpy as np


class OrbitCamera:
    """Pinhole camera orbiting the black hole. z is the spin axis."""

    def __init__(self, radius=30.0, azimuth=0.0, elevation=math.pi / 2.0 - 0.15,
                 fov_degrees=60.0, target=(0.0, 0.0, 0.0)):
        self.target = np.array(target, dtype=float)
        self.radius = radius
        self.azimuth = azimuth
        self.elevation = elevation  # polar angle from +z
        self.fov_degrees = fov_degrees

    def position(self):
        # Stay off the spin axis
        elevation = np.clip(self.elevation, 0.01, math.pi - 0.01)
        return self.target + np.array([
            self.radius * math.sin(elevation) * math.cos(self.azimuth),
            self.radius * math.sin(elevation) * math.sin(self.azimuth),
            self.radius * math.cos(elevation),
        ])

    def basis(self):
        """(right, up, forward) unit vectors."""
        pos = self.position()
        fwd = (self.target - pos) / np.linalg.norm(self.target - pos)
        up = np.array([0.0, 0.0, 1.0])
        right = np.cross(fwd, up)
        right /= np.linalg.norm(right)
        up = np.cross(right, fwd)
        return right, up, fwd

    def ray_directions(self, width, height):
        """Unit direction per pixel, shape (height, width, 3); row 0 is the top."""
        right, up, fwd = self.basis()
        tan_half_fov = math.tan(math.radians(self.fov_degrees) / 2.0)
        aspect = width / height
        u = (2.0 * (np.arange(width) + 0.5) / width - 1.0) * aspect * tan_half_fov
        v = (1.0 - 2.0 * (np.arange(height) + 0.5) / height) * tan_half_fov
        dirs = (u[None, :, None] * right + v[:, None, None] * up + fwd)
        return dirs / np.linalg.norm(dirs, axis=-1, keepdims=True)
