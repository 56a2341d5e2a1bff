import math

import numpy as np
import pytest

from kerrlens.config import AdaptiveSettings, FixedStepSettings, MassSpinConfig, Quality, TraceSettings
from kerrlens.errors import StepSizeUnderflow
from kerrlens.integrators import (
    AdaptiveRK45Integrator,
    FixedStepIntegrator,
    cash_karp_step,
    make_integrator,
)
from kerrlens.ray import RayState


def test_fixed_step_scales_with_radius_and_clamps(schwarzschild):
    integrator = FixedStepIntegrator()
    assert integrator.step_size(100.0, schwarzschild) == pytest.approx(5.0)
    assert integrator.step_size(1000.0, schwarzschild) == pytest.approx(10.0)
    assert integrator.step_size(0.1, schwarzschild) == pytest.approx(0.01)

    heavy = MassSpinConfig(mass=2.0, spin=0.0)
    assert integrator.step_size(1000.0, heavy) == pytest.approx(20.0)
    assert integrator.step_size(0.1, heavy) == pytest.approx(0.02)


def test_fixed_step_respects_custom_settings(schwarzschild):
    integrator = FixedStepIntegrator(FixedStepSettings(step_fraction=0.1, min_step=0.5, max_step=2.0))
    assert integrator.step_size(10.0, schwarzschild) == pytest.approx(1.0)
    assert integrator.step_size(1.0, schwarzschild) == pytest.approx(0.5)
    assert integrator.step_size(50.0, schwarzschild) == pytest.approx(2.0)


def test_fixed_advance_updates_state_in_place(schwarzschild):
    integrator = FixedStepIntegrator()
    state = RayState.from_camera([30.0, 5.0, 0.0], [-1.0, 0.0, 0.0])
    start = state.position.copy()
    result = integrator.advance(state, schwarzschild)

    assert result is state
    h = 0.05 * math.hypot(30.0, 5.0)
    assert state.step_size == pytest.approx(h)
    assert state.affine_parameter == pytest.approx(h)
    assert np.linalg.norm(state.position - start) == pytest.approx(h)
    assert np.linalg.norm(state.direction) == pytest.approx(1.0)
    # Bent towards the hole
    assert state.direction[1] < 0.0


@pytest.mark.parametrize("quality", list(Quality))
def test_direction_stays_unit_length(quality, kerr):
    integrator = make_integrator(quality)
    state = RayState.from_camera([25.0, 6.0, 2.0], [-1.0, 0.1, 0.0])
    state = integrator.prepare(state, kerr)
    for _ in range(30):
        state = integrator.advance(state, kerr)
        assert np.linalg.norm(state.direction) == pytest.approx(1.0, abs=1e-12)
        assert np.all(np.isfinite(state.position))


def test_make_integrator_selects_strategy():
    settings = TraceSettings(adaptive=AdaptiveSettings(tolerance=1e-9))
    fast = make_integrator(Quality.FAST, settings)
    accurate = make_integrator("accurate", settings)
    assert isinstance(fast, FixedStepIntegrator)
    assert isinstance(accurate, AdaptiveRK45Integrator)
    assert accurate.settings.tolerance == 1e-9
    assert fast.settings is settings.fixed


def test_cash_karp_step_exponential():
    y5, err = cash_karp_step(np.array([1.0]), 0.1, lambda y: y)
    assert y5[0] == pytest.approx(math.exp(0.1), rel=1e-8)
    assert abs(err[0]) < 1e-6


def test_cash_karp_step_refuses_stage_inside_radius():
    assert cash_karp_step(np.array([1.0, 0.0]), 0.1, lambda y: -y, r_min=2.0) is None


def test_adaptive_prepare_sets_phase_and_initial_step(kerr):
    integrator = AdaptiveRK45Integrator()
    state = integrator.prepare(RayState.from_camera([20.0, 4.0, 1.0], [-1.0, 0.0, 0.0]), kerr)
    assert state.constants.energy == 1.0
    assert state.phase.shape == (5,)
    assert state.step_size == pytest.approx(0.02 * state.phase[0])


def test_adaptive_advance_prepares_lazily(kerr):
    integrator = AdaptiveRK45Integrator()
    state = RayState.from_camera([20.0, 4.0, 1.0], [-1.0, 0.0, 0.0])
    state = integrator.advance(state, kerr)
    assert state.phase is not None
    assert state.affine_parameter > 0.0


def test_adaptive_conserves_constants_of_motion(kerr):
    integrator = AdaptiveRK45Integrator()
    state = integrator.prepare(RayState.from_camera([30.0, 6.0, 2.0], [-1.0, 0.0, 0.0]), kerr)
    for _ in range(40):
        state = integrator.advance(state, kerr)
    h_drift, q_drift = integrator.drift(state, kerr)
    assert abs(h_drift) < 1e-4
    assert abs(q_drift) < 1e-3 * (1.0 + abs(state.constants.carter_constant))


def test_adaptive_step_never_exceeds_max(schwarzschild):
    integrator = AdaptiveRK45Integrator(AdaptiveSettings(max_step=2.0))
    state = integrator.prepare(RayState.from_camera([30.0, 0.0, 0.0], [1.0, 0.0, 0.0]), schwarzschild)
    for _ in range(20):
        before = state.affine_parameter
        state = integrator.advance(state, schwarzschild)
        assert state.affine_parameter - before <= 2.0 + 1e-12
        assert state.step_size <= 2.0 + 1e-12


def test_adaptive_underflow_raises(schwarzschild):
    integrator = AdaptiveRK45Integrator(AdaptiveSettings(min_step=100.0, max_step=200.0))
    state = integrator.prepare(RayState.from_camera([30.0, 5.0, 0.0], [-1.0, 0.0, 0.0]), schwarzschild)
    with pytest.raises(StepSizeUnderflow) as excinfo:
        integrator.advance(state, schwarzschild)
    assert excinfo.value.state is state


@pytest.mark.parametrize("spin", [0.0, 0.6])
def test_axis_crossing_lands_back_on_constraint(spin):
    config = MassSpinConfig(1.0, spin)
    integrator = AdaptiveRK45Integrator()
    state = integrator.prepare(RayState.from_camera([30.0, 1e-6, 8.0], [-1.0, 0.0, 0.0]), config)
    crossed = False
    for _ in range(80):
        state = integrator.advance(state, config)
        crossed = crossed or state.pole_crossing is not None
        if crossed and state.pole_crossing is None:
            break

    assert crossed
    assert state.pole_crossing is None
    assert 0.0 < state.phase[1] < math.pi
    # Carried over to the far side of the axis
    assert state.position[0] < 0.0
    h_drift, q_drift = integrator.drift(state, config)
    assert abs(h_drift) < 1e-4
    assert abs(q_drift) < 1e-6 * (1.0 + state.constants.carter_constant)


def test_equatorial_ray_never_crosses_axis(kerr):
    integrator = AdaptiveRK45Integrator()
    state = integrator.prepare(RayState.from_camera([30.0, 6.0, 0.0], [-1.0, 0.0, 0.0]), kerr)
    for _ in range(20):
        state = integrator.advance(state, kerr)
        assert state.pole_crossing is None
