"""Failure signals raised while tracing a single ray.

None of these leave ``kerrlens.tracer.trace``: the driver turns each one into
a renderable outcome.
"""


class TraceError(Exception):
    """Base class. ``state`` is the ray state when the error was raised and
    ``steps`` the number of steps taken so far."""

    def __init__(self, message, state=None, steps=0):
        super().__init__(message)
        self.state = state
        self.steps = steps


class InvalidInitialCondition(TraceError):
    """Degenerate camera ray (zero direction, origin on the spin axis, ...)."""


class StepSizeUnderflow(TraceError):
    """The adaptive step fell below its minimum without meeting tolerance."""


class IterationBudgetExhausted(TraceError):
    """The step ceiling was reached before the ray was classified."""
