"""
General-purpose dynamics shared by all bodies.

Timestep estimation follows the usual advection criterion:

    dt = 0.25 * h / max(v_max, U_ref)

where ``v_max`` is the largest particle speed and ``U_ref`` a reference
flow speed given by the case setup.
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from ..core.body import SPHBody
from ..core.config import TINY_REAL
from ..core.reduce import ReduceLowerBound, ReduceMax, ReduceOperation, ReduceUpperBound
from .base import LocalDynamics, LocalDynamicsReduce
from .delegates import DataDelegateSimple

# Advection CFL factor
ADVECTION_CFL = 0.25


class TimeStepInitialization(LocalDynamics, DataDelegateSimple):
    """Reset the prior acceleration to gravity at the start of a step."""

    def __init__(self, sph_body: SPHBody, gravity: Optional[Sequence[float]] = None):
        LocalDynamics.__init__(self, sph_body)
        DataDelegateSimple.__init__(self, sph_body)
        dimension = self.particles.dimension
        self.gravity = np.zeros(dimension) if gravity is None else np.asarray(gravity, dtype=np.float64)
        if self.gravity.shape != (dimension,):
            raise ValueError(f"gravity must have shape ({dimension},), got {self.gravity.shape}")

    def update(self, index_i: int, dt: float = 0.0):
        self.particles.acc_prior[index_i] = self.gravity


class BodyLowerBound(LocalDynamicsReduce, DataDelegateSimple):
    """Component-wise lower bound of particle positions."""

    operation = ReduceLowerBound()

    def __init__(self, sph_body: SPHBody):
        LocalDynamics.__init__(self, sph_body)
        DataDelegateSimple.__init__(self, sph_body)
        self.reference = np.full(self.particles.dimension, np.inf)

    def reduce(self, index_i: int, dt: float = 0.0) -> np.ndarray:
        return self.particles.pos[index_i]


class BodyUpperBound(LocalDynamicsReduce, DataDelegateSimple):
    """Component-wise upper bound of particle positions."""

    operation = ReduceUpperBound()

    def __init__(self, sph_body: SPHBody):
        LocalDynamics.__init__(self, sph_body)
        DataDelegateSimple.__init__(self, sph_body)
        self.reference = np.full(self.particles.dimension, -np.inf)

    def reduce(self, index_i: int, dt: float = 0.0) -> np.ndarray:
        return self.particles.pos[index_i]


class ReduceBounds(ReduceOperation):
    """Merge (lower, upper) pairs."""

    def __call__(self, x, y):
        return np.minimum(x[0], y[0]), np.maximum(x[1], y[1])


class BoundingBoxReduce(LocalDynamicsReduce, DataDelegateSimple):
    """Axis-aligned bounding box of the real particles in one fold."""

    operation = ReduceBounds()

    def __init__(self, sph_body: SPHBody):
        LocalDynamics.__init__(self, sph_body)
        DataDelegateSimple.__init__(self, sph_body)
        dimension = self.particles.dimension
        self.reference = (np.full(dimension, np.inf), np.full(dimension, -np.inf))

    def reduce(self, index_i: int, dt: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        position = self.particles.pos[index_i]
        return position, position


class MaximumSpeed(LocalDynamicsReduce, DataDelegateSimple):
    """Largest particle speed."""

    operation = ReduceMax()
    reference = 0.0

    def __init__(self, sph_body: SPHBody):
        LocalDynamics.__init__(self, sph_body)
        DataDelegateSimple.__init__(self, sph_body)

    def reduce(self, index_i: int, dt: float = 0.0) -> float:
        velocity = self.particles.vel[index_i]
        return float(np.sqrt(np.dot(velocity, velocity)))


class AdvectionTimeStepSize(MaximumSpeed):
    """Advection-limited time step from the largest speed.

    Args:
        sph_body: Body whose particles are scanned
        reference_speed: Lower bound on the speed used in the criterion
    """

    def __init__(self, sph_body: SPHBody, reference_speed: float):
        super().__init__(sph_body)
        if reference_speed < 0.0:
            raise ValueError(f"reference_speed must be non-negative, got {reference_speed}")
        self.reference_speed = reference_speed
        self.smoothing_length = sph_body.sph_adaptation.h_ref

    def output_result(self, value: float) -> float:
        return ADVECTION_CFL * self.smoothing_length / (max(value, self.reference_speed) + TINY_REAL)
