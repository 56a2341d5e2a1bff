import math

import cv2
import numpy as np
import pytest
from astropy.io import fits

from kerrlens.environment import (
    ABSORBED_COLOR,
    ProceduralSky,
    SkyMapSampler,
    direction_angles,
    shade,
)
from kerrlens.ray import OutcomeKind, Termination, TraceOutcome


def test_direction_angles():
    theta, phi = direction_angles((0.0, 0.0, 2.0))
    assert theta == pytest.approx(0.0)
    theta, phi = direction_angles((0.0, -1.0, 0.0))
    assert theta == pytest.approx(math.pi / 2.0)
    assert phi == pytest.approx(1.5 * math.pi)


def test_procedural_sky_is_deterministic_and_in_range():
    sky = ProceduralSky(seed=3)
    rng = np.random.default_rng(0)
    for d in rng.normal(size=(200, 3)):
        color = sky.sample(d)
        assert color == sky.sample(d)
        assert all(0.0 <= c <= 1.0 for c in color)


def test_procedural_sky_checker():
    sky = ProceduralSky(star_density=0.0)
    assert sky.sample((1.0, 0.0, 0.0)) == sky.dark
    twenty = math.radians(20.0)
    assert sky.sample((math.cos(twenty), math.sin(twenty), 0.0)) == sky.light


def test_sky_map_from_array_maps_rows_and_columns():
    image = np.zeros((4, 8, 3), dtype=np.float32)
    image[0, 0] = (1.0, 0.0, 0.0)
    image[3, 0] = (0.0, 1.0, 0.0)
    image[2, 4] = (0.0, 0.0, 1.0)
    sampler = SkyMapSampler.from_array(image)
    assert sampler.sample((0.0, 0.0, 1.0)) == (1.0, 0.0, 0.0)
    assert sampler.sample((0.0, 0.0, -1.0)) == (0.0, 1.0, 0.0)
    assert sampler.sample((-1.0, 0.0, 0.0)) == (0.0, 0.0, 1.0)


def test_sky_map_from_greyscale_uint8():
    sampler = SkyMapSampler.from_array(np.full((2, 2), 255, dtype=np.uint8))
    assert sampler.image.shape == (2, 2, 3)
    assert sampler.sample((1.0, 0.0, 0.0)) == (1.0, 1.0, 1.0)


def test_sky_map_rejects_bad_shape():
    with pytest.raises(ValueError):
        SkyMapSampler(np.zeros((4, 4, 2)))


def test_sky_map_from_image_is_rgb(tmp_path):
    rgb = np.zeros((4, 8, 3), dtype=np.uint8)
    rgb[:, :, 0] = 255
    path = tmp_path / "sky.png"
    assert cv2.imwrite(str(path), np.ascontiguousarray(rgb[:, :, ::-1]))
    sampler = SkyMapSampler.from_image(path)
    assert sampler.sample((1.0, 0.0, 0.0)) == (1.0, 0.0, 0.0)


def test_sky_map_from_missing_image(tmp_path):
    with pytest.raises(ValueError):
        SkyMapSampler.from_image(tmp_path / "missing.png")


def test_sky_map_from_fits_normalizes(tmp_path):
    data = np.arange(12, dtype=np.float32).reshape(3, 4)
    path = tmp_path / "sky.fits"
    fits.writeto(path, data)
    sampler = SkyMapSampler.from_fits(path)
    assert sampler.image.shape == (3, 4, 3)
    assert sampler.sample((0.0, 0.0, 1.0)) == (0.0, 0.0, 0.0)
    r, g, b = sampler.sample((0.0, 0.0, -1.0))
    assert r == g == b
    assert r == pytest.approx(8.0 / 11.0, abs=1.0 / 255.0)


def test_sky_map_from_fits_cube(tmp_path):
    data = np.random.default_rng(1).random((2, 5, 6)).astype(np.float32)
    path = tmp_path / "cube.fits"
    fits.writeto(path, data)
    assert SkyMapSampler.from_fits(path).image.shape == (5, 6, 3)


def test_shade():
    sky = ProceduralSky(star_density=0.0)
    captured = TraceOutcome(kind=OutcomeKind.CAPTURED, termination=Termination.HORIZON)
    escaped = TraceOutcome(kind=OutcomeKind.ESCAPED, termination=Termination.ESCAPE,
                           direction=np.array([1.0, 0.0, 0.0]))
    assert shade(captured, sky) == ABSORBED_COLOR
    assert shade(captured, sky, absorbed_color=(1.0, 0.0, 1.0)) == (1.0, 0.0, 1.0)
    assert shade(escaped, sky) == sky.dark
