"""Per-ray driver: steps a ray until it is captured, escapes, or runs out of steps."""
import logging

import numpy as np

from kerrlens import metric
from kerrlens.config import Quality, TraceSettings
from kerrlens.errors import (
    InvalidInitialCondition,
    IterationBudgetExhausted,
    StepSizeUnderflow,
    TraceError,
)
from kerrlens.integrators import make_integrator
from kerrlens.ray import OutcomeKind, RayState, Termination, TraceOutcome

logger = logging.getLogger(__name__)


class RayTracer:
    """Traces single rays for one black hole configuration.

    Holds no per-ray state, so one instance can serve any number of rays.
    """

    def __init__(self, config, integrator, settings=None, record_path=False):
        self.config = config
        self.integrator = integrator
        self.settings = settings or TraceSettings()
        self.record_path = record_path

    @property
    def capture_radius(self):
        return metric.horizon_radius(self.config) + self.settings.horizon_epsilon * self.config.mass

    @property
    def escape_radius(self):
        return self.settings.escape_radius * self.config.mass

    def _classify(self, state, steps, path):
        r = metric.boyer_lindquist_radius(state.position, self.config.spin_length)
        if r <= self.capture_radius:
            return self._outcome(OutcomeKind.CAPTURED, Termination.HORIZON, state, steps, path)
        if r >= self.escape_radius:
            outbound = float(np.dot(state.position, state.direction)) >= 0.0
            if outbound or not self.settings.require_outbound_escape:
                return self._outcome(OutcomeKind.ESCAPED, Termination.ESCAPE, state, steps, path,
                                     direction=state.direction.copy())
        return None

    def _outcome(self, kind, termination, state, steps, path, direction=None):
        return TraceOutcome(
            kind=kind,
            termination=termination,
            direction=direction,
            position=state.position.copy(),
            steps=steps,
            affine_parameter=state.affine_parameter,
            path=path,
        )

    def march(self, state, path=None):
        """Step until classified. Raises the ``kerrlens.errors`` signals."""
        if path is None:
            path = []
        steps = 0
        prepared = False
        try:
            while True:
                outcome = self._classify(state, steps, path)
                if outcome is not None:
                    return outcome
                if steps >= self.settings.max_steps:
                    raise IterationBudgetExhausted(f"no outcome after {steps} steps")
                if not prepared:
                    state = self.integrator.prepare(state, self.config)
                    prepared = True
                state = self.integrator.advance(state, self.config)
                steps += 1
                if self.record_path:
                    path.append(state.position.copy())
        except TraceError as e:
            if e.state is None:
                e.state = state
            e.steps = steps
            raise

    def run(self, state):
        """Trace one ray. Returns CAPTURED, ESCAPED or INCONCLUSIVE; the trace
        errors never escape."""
        path = [state.position.copy()] if self.record_path else []
        try:
            return self.march(state, path)
        except InvalidInitialCondition as e:
            logger.debug("Invalid initial condition: %s", e)
            return self._outcome(OutcomeKind.CAPTURED, Termination.INVALID_INITIAL_CONDITION,
                                 e.state, e.steps, path)
        except StepSizeUnderflow as e:
            logger.debug("Step size underflow, treating ray as captured: %s", e)
            return self._outcome(OutcomeKind.CAPTURED, Termination.STEP_UNDERFLOW,
                                 e.state, e.steps, path)
        except IterationBudgetExhausted as e:
            logger.debug("Iteration budget exhausted after %d steps", e.steps)
            return self._outcome(OutcomeKind.INCONCLUSIVE, Termination.BUDGET_EXHAUSTED,
                                 e.state, e.steps, path, direction=e.state.direction.copy())


def trace(origin, direction, config, quality=Quality.FAST, settings=None, record_path=False):
    """Trace one camera ray and return its resolved ``TraceOutcome``.

    Total: every input produces CAPTURED or ESCAPED. A degenerate ray comes
    back as CAPTURED, an exhausted step budget as ESCAPED along the last
    direction.
    """
    settings = settings or TraceSettings()
    tracer = RayTracer(config, make_integrator(quality, settings), settings, record_path)
    try:
        state = RayState.from_camera(origin, direction)
    except InvalidInitialCondition as e:
        logger.debug("Rejected camera ray: %s", e)
        return TraceOutcome(
            kind=OutcomeKind.CAPTURED,
            termination=Termination.INVALID_INITIAL_CONDITION,
            position=np.array(origin, dtype=float).reshape(3),
        )
    return tracer.run(state).resolved()
