"""
Inflow, outflow and damping conditions on parts of a fluid body.

Target velocities are callables ``target_velocity(position, velocity, time)``
returning the velocity a particle is driven toward.

Emitter dynamics loop over particle identities (unsorted indexes) and map
each one to its current storage row through ``sorted_id``.
"""

import logging
from typing import Callable

import numpy as np

from ..core.body import BodyPartByCell, BodyPartByParticle, BodyRegionByCell, BodyRegionByParticle, FluidBody
from ..core.config import TINY_REAL
from ..core.particles import FluidParticles
from ..physics.materials import WeaklyCompressibleFluid
from .base import PartLocalDynamicsByCell, PartLocalDynamicsByParticle
from .delegates import DataDelegateSimple

logger = logging.getLogger(__name__)

TargetVelocity = Callable[[np.ndarray, np.ndarray, float], np.ndarray]


class FluidDataSimple(DataDelegateSimple):
    body_type = FluidBody
    particles_type = FluidParticles
    material_type = WeaklyCompressibleFluid


class FlowRelaxationBuffer(PartLocalDynamicsByCell, FluidDataSimple):
    """Relax velocities in a buffer zone toward a target profile."""

    relaxation_rate = 0.3

    def __init__(self, fluid_body: FluidBody, body_part: BodyPartByCell, target_velocity: TargetVelocity):
        PartLocalDynamicsByCell.__init__(self, fluid_body, body_part)
        FluidDataSimple.__init__(self, fluid_body)
        self.target_velocity = target_velocity

    def update(self, index_i: int, dt: float = 0.0):
        particles = self.particles
        velocity = particles.vel[index_i]
        target = self.target_velocity(particles.pos[index_i], velocity, self.physical_time)
        velocity += self.relaxation_rate * (np.asarray(target) - velocity)


class InflowBoundaryCondition(FlowRelaxationBuffer):
    """Impose the target velocity outright."""

    relaxation_rate = 1.0


class DampingBoundaryCondition(PartLocalDynamicsByCell, FluidDataSimple):
    """Damp velocities across a zone, quadratically in the first coordinate.

    The factor grows from 0 at the lower x bound of the zone to 1 at the
    upper x bound; velocities are scaled by ``1 - dt * strength * factor²``.
    """

    def __init__(self, fluid_body: FluidBody, body_part: BodyRegionByCell, strength: float = 5.0):
        PartLocalDynamicsByCell.__init__(self, fluid_body, body_part)
        FluidDataSimple.__init__(self, fluid_body)
        self.strength = strength
        self.damping_zone_bounds = body_part.find_bounds()

    def update(self, index_i: int, dt: float = 0.0):
        lower, upper = self.damping_zone_bounds
        damping_factor = (self.particles.pos[index_i, 0] - lower[0]) / (upper[0] - lower[0] + TINY_REAL)
        self.particles.vel[index_i] *= 1.0 - dt * self.strength * damping_factor * damping_factor


class EmitterInflowCondition(PartLocalDynamicsByParticle, FluidDataSimple):
    """Set target velocity, reference density and its pressure on an emitter."""

    def __init__(self, fluid_body: FluidBody, body_part: BodyPartByParticle, target_velocity: TargetVelocity):
        PartLocalDynamicsByParticle.__init__(self, fluid_body, body_part)
        FluidDataSimple.__init__(self, fluid_body)
        self.target_velocity = target_velocity
        self.rho0 = self.material.reference_density()
        self.inflow_pressure = self.material.get_pressure(self.rho0)

    def update(self, unsorted_index_i: int, dt: float = 0.0):
        particles = self.particles
        index_i = particles.sorted_id[unsorted_index_i]
        particles.vel[index_i] = self.target_velocity(particles.pos[index_i], particles.vel[index_i],
                                                      self.physical_time)
        particles.rho[index_i] = self.rho0
        particles.p[index_i] = self.inflow_pressure


class EmitterInflowInjecting(PartLocalDynamicsByParticle, FluidDataSimple):
    """Emit new particles from an emitter region.

    A particle leaving the region through its bound along ``axis`` leaves a
    copy of itself behind in a buffer slot and is translated back by the
    region length, with its density and pressure reset. The reset applies to
    lower-bound crossings too, so an emitter with ``positive=False`` does more
    than translate the particle back. The buffer holds
    ``len(body_part) * buffer_width`` slots, allocated here; the particle store
    needs that many rows of ``buffer_capacity`` once other dynamics hold its
    arrays.

    Args:
        fluid_body: Body owning the emitter
        body_part: Emitter region
        buffer_width: Buffer slots per emitter particle
        axis: Axis along which particles leave the region
        positive: Leave through the upper bound (True) or the lower bound
    """

    def __init__(self, fluid_body: FluidBody, body_part: BodyRegionByParticle,
                 buffer_width: int, axis: int, positive: bool = True):
        PartLocalDynamicsByParticle.__init__(self, fluid_body, body_part)
        FluidDataSimple.__init__(self, fluid_body)
        if not 0 <= axis < self.particles.dimension:
            raise ValueError(f"axis must be in [0, {self.particles.dimension}), got {axis}")
        if buffer_width < 0:
            raise ValueError(f"buffer_width must be non-negative, got {buffer_width}")
        self.axis = axis
        self.positive = positive
        self.body_part_bounds = body_part.find_bounds()
        lower, upper = self.body_part_bounds
        self.periodic_translation = upper[axis] - lower[axis]
        self.rho0 = self.material.reference_density()

        total_buffer_particles = len(body_part) * buffer_width
        self.particles.add_buffer_particles(total_buffer_particles)
        logger.info("%s: %d buffer particles for emitter '%s'", type(self).__name__,
                    total_buffer_particles, body_part.name)

    def _crossed(self, position: np.ndarray) -> bool:
        lower, upper = self.body_part_bounds
        if self.positive:
            return position[self.axis] > upper[self.axis]
        return position[self.axis] < lower[self.axis]

    def update(self, unsorted_index_i: int, dt: float = 0.0):
        particles = self.particles
        index_i = particles.sorted_id[unsorted_index_i]
        if not self._crossed(particles.pos[index_i]):
            return

        particles.allocate_buffer_particle(index_i, context=type(self).__name__)
        shift = -self.periodic_translation if self.positive else self.periodic_translation
        particles.pos[index_i, self.axis] += shift
        particles.rho[index_i] = self.rho0
        particles.p[index_i] = self.material.get_pressure(self.rho0)
        self.set_body_updated()
