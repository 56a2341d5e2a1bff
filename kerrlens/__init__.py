"""
kerrlens
========
Light ray tracing through the spacetime of a spinning black hole.

Modules:
    - metric:       Kerr metric functions, coordinates, equations of motion
    - conserved:    Constants of motion for a camera ray
    - integrators:  Fixed-step and adaptive RK45 step strategies
    - tracer:       Per-ray driver and the ``trace`` entry point
    - frame:        Whole-frame tracing over a process pool
    - environment:  Escape direction to colour
    - camera, render: Image and path plot output
"""
from kerrlens.config import (
    AdaptiveSettings,
    FixedStepSettings,
    FrameParameters,
    LiveParameters,
    MassSpinConfig,
    Quality,
    TraceSettings,
)
from kerrlens.errors import (
    InvalidInitialCondition,
    IterationBudgetExhausted,
    StepSizeUnderflow,
    TraceError,
)
from kerrlens.ray import ConservedQuantities, OutcomeKind, RayState, Termination, TraceOutcome
from kerrlens.tracer import RayTracer, trace

__all__ = [
    "AdaptiveSettings",
    "ConservedQuantities",
    "FixedStepSettings",
    "FrameParameters",
    "InvalidInitialCondition",
    "IterationBudgetExhausted",
    "LiveParameters",
    "MassSpinConfig",
    "OutcomeKind",
    "Quality",
    "RayState",
    "RayTracer",
    "StepSizeUnderflow",
    "Termination",
    "TraceError",
    "TraceOutcome",
    "TraceSettings",
    "trace",
]
