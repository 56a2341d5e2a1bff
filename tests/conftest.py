import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from kerrlens.config import MassSpinConfig, TraceSettings


@pytest.fixture
def schwarzschild():
    return MassSpinConfig(mass=1.0, spin=0.0)


@pytest.fixture
def kerr():
    return MassSpinConfig(mass=1.0, spin=0.6)


@pytest.fixture
def settings():
    return TraceSettings()


def angle_between(u, v):
    u = np.asarray(u) / np.linalg.norm(u)
    v = np.asarray(v) / np.linalg.norm(v)
    return float(np.arccos(np.clip(np.dot(u, v), -1.0, 1.0)))
