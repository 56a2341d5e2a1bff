from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

import numpy as np

from kerrlens.errors import InvalidInitialCondition


@dataclass(frozen=True)
class ConservedQuantities:
    energy: float
    angular_momentum: float
    carter_constant: float


@dataclass
class RayState:
    position: np.ndarray
    direction: np.ndarray
    affine_parameter: float = 0.0
    step_size: float = 0.0
    # Adaptive integrator only: (r, theta, phi, p_r, p_theta) and constants of motion
    phase: Optional[np.ndarray] = None
    constants: Optional[ConservedQuantities] = None
    # Polar angle at which an axis crossing began, None when not crossing
    pole_crossing: Optional[float] = None

    @classmethod
    def from_camera(cls, origin, direction) -> "RayState":
        """Fresh state for a camera ray; the direction is normalized here."""
        position = np.array(origin, dtype=float).reshape(3)
        d = np.array(direction, dtype=float).reshape(3)
        if not np.all(np.isfinite(position)):
            raise InvalidInitialCondition(f"non-finite ray origin {position}")
        norm = float(np.linalg.norm(d))
        if not math.isfinite(norm) or norm == 0.0:
            raise InvalidInitialCondition(f"degenerate ray direction {d}")
        return cls(position=position, direction=d / norm)

    def copy(self) -> "RayState":
        return replace(
            self,
            position=self.position.copy(),
            direction=self.direction.copy(),
            phase=None if self.phase is None else self.phase.copy(),
        )


class OutcomeKind(Enum):
    CAPTURED = "captured"
    ESCAPED = "escaped"
    INCONCLUSIVE = "inconclusive"


class Termination(Enum):
    HORIZON = "horizon"
    ESCAPE = "escape"
    BUDGET_EXHAUSTED = "budget_exhausted"
    STEP_UNDERFLOW = "step_underflow"
    INVALID_INITIAL_CONDITION = "invalid_initial_condition"


@dataclass
class TraceOutcome:
    kind: OutcomeKind
    termination: Termination
    direction: Optional[np.ndarray] = None
    position: Optional[np.ndarray] = None
    steps: int = 0
    affine_parameter: float = 0.0
    path: List[np.ndarray] = field(default_factory=list)

    @property
    def captured(self) -> bool:
        return self.kind is OutcomeKind.CAPTURED

    @property
    def escaped(self) -> bool:
        return self.kind is OutcomeKind.ESCAPED

    def resolved(self) -> "TraceOutcome":
        """Inconclusive rays count as escaped along their last direction."""
        if self.kind is OutcomeKind.INCONCLUSIVE:
            return replace(self, kind=OutcomeKind.ESCAPED)
        return self
