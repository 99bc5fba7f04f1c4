"""
Simulation system, bodies and body parts.

An ``SPHSystem`` owns the domain, the engine configuration and the
simulation clock. Each ``SPHBody`` owns its particle store, its material
handle and its cell linked list. Body parts name a subset of a body either
by particle identity or by the cells they occupy.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .backend import get_pool_manager
from .cell_linked_list import CellLinkedList, CellLists
from .clock import SimulationClock
from .config import EngineConfig, configure_logging
from .kernel import CubicSplineKernel
from .particles import BaseParticles

logger = logging.getLogger(__name__)

Bounds = Tuple[np.ndarray, np.ndarray]


class SPHAdaptation:
    """Smoothing length and kernel derived from the particle spacing."""

    def __init__(self, resolution_ref: float, h_spacing_ratio: float = 1.3, dimension: int = 2):
        if resolution_ref <= 0.0:
            raise ValueError(f"resolution_ref must be positive, got {resolution_ref}")
        self.spacing_ref = resolution_ref
        self.h_spacing_ratio = h_spacing_ratio
        self.h_ref = h_spacing_ratio * resolution_ref
        self.kernel = CubicSplineKernel(dimension)

    @property
    def cutoff_radius(self) -> float:
        return self.kernel.cutoff_radius(self.h_ref)


class SPHSystem:
    """Domain, configuration and clock shared by all bodies of one simulation."""

    def __init__(self, domain_lower: Sequence[float], domain_upper: Sequence[float],
                 resolution_ref: float, config: Optional[EngineConfig] = None):
        self.domain_lower = np.asarray(domain_lower, dtype=np.float64)
        self.domain_upper = np.asarray(domain_upper, dtype=np.float64)
        if self.domain_lower.shape != self.domain_upper.shape:
            raise ValueError("domain bounds must have the same dimension")
        self.resolution_ref = resolution_ref
        self.config = config if config is not None else EngineConfig()

        configure_logging(self.config.log_level)
        pool = get_pool_manager()
        pool.set_num_threads(self.config.num_threads)
        pool.set_grain_size(self.config.grain_size, self.config.cell_grain_size)

        self.clock = SimulationClock()
        self.bodies: List["SPHBody"] = []
        self.relations: list = []

    @property
    def dimension(self) -> int:
        return len(self.domain_lower)

    def add_body(self, body: "SPHBody"):
        if any(existing.name == body.name for existing in self.bodies):
            raise ValueError(f"Body name '{body.name}' is already used")
        self.bodies.append(body)

    def add_relation(self, relation):
        self.relations.append(relation)

    def initialize_system_cell_linked_lists(self):
        for body in self.bodies:
            body.update_cell_linked_list()

    def initialize_system_configurations(self):
        for relation in self.relations:
            relation.update_configuration()

    def advance_time(self, dt: float) -> float:
        return self.clock.advance(dt)


class SPHBody:
    """A set of particles with one material, living in an ``SPHSystem``."""

    def __init__(self, system: SPHSystem, name: str, particles: BaseParticles, material,
                 adaptation: Optional[SPHAdaptation] = None):
        if particles.dimension != system.dimension:
            raise ValueError(
                f"Body '{name}' is {particles.dimension}D but the system is {system.dimension}D"
            )
        self.system = system
        self.name = name
        self.particles = particles
        self.material = material
        self.sph_adaptation = adaptation if adaptation is not None else SPHAdaptation(
            system.resolution_ref, system.config.h_spacing_ratio, system.dimension)
        self.cell_linked_list = CellLinkedList(system.domain_lower, system.domain_upper,
                                               self.sph_adaptation.cutoff_radius)
        self.newly_updated = True
        system.add_body(self)

    @property
    def clock(self) -> SimulationClock:
        return self.system.clock

    def set_newly_updated(self):
        self.newly_updated = True

    def update_cell_linked_list(self):
        self.cell_linked_list.update(self.particles)
        self.newly_updated = False

    def sort_particles(self):
        """Sort particles by cell for cache-coherent neighbor access."""
        self.cell_linked_list.sort_particles(self.particles)
        self.newly_updated = False

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, particles={self.particles.total_real_particles})"


class FluidBody(SPHBody):
    """Body made of fluid particles."""


class SolidBody(SPHBody):
    """Body made of solid particles."""


class BodyPart:
    def __init__(self, sph_body: SPHBody, name: str):
        self.sph_body = sph_body
        self.name = name


class BodyPartByParticle(BodyPart):
    """Body part given by particle identities (unsorted indexes)."""

    def __init__(self, sph_body: SPHBody, name: str, unsorted_indexes: Sequence[int] = ()):
        super().__init__(sph_body, name)
        self.body_part_particles = np.asarray(unsorted_indexes, dtype=np.int64)

    def __len__(self):
        return len(self.body_part_particles)


class BodyRegionByParticle(BodyPartByParticle):
    """Real particles lying inside an axis-aligned box when the part is built."""

    def __init__(self, sph_body: SPHBody, lower: Sequence[float], upper: Sequence[float],
                 name: Optional[str] = None):
        self.lower = np.asarray(lower, dtype=np.float64)
        self.upper = np.asarray(upper, dtype=np.float64)
        particles = sph_body.particles
        n = particles.total_real_particles
        positions = particles.pos[:n]
        inside = np.all((positions >= self.lower) & (positions <= self.upper), axis=1)
        super().__init__(sph_body, name or f"{sph_body.name}_region",
                         particles.unsorted_id[:n][inside])

    def find_bounds(self) -> Bounds:
        return self.lower.copy(), self.upper.copy()


class BodyPartByCell(BodyPart):
    """Body part given by the cells it occupies."""

    def __init__(self, sph_body: SPHBody, name: str, cells: Optional[CellLists] = None):
        super().__init__(sph_body, name)
        self.body_part_cells = cells if cells is not None else CellLists()

    def particle_indexes(self) -> np.ndarray:
        """Current real particles in the part's cells."""
        members = [cell.real_particle_indexes for cell in self.body_part_cells]
        return np.concatenate(members) if members else np.empty(0, dtype=np.int64)


class BodyRegionByCell(BodyPartByCell):
    """Cells of the body's grid overlapping an axis-aligned box."""

    def __init__(self, sph_body: SPHBody, lower: Sequence[float], upper: Sequence[float],
                 name: Optional[str] = None):
        self.lower = np.asarray(lower, dtype=np.float64)
        self.upper = np.asarray(upper, dtype=np.float64)
        cells = sph_body.cell_linked_list.cells_in_bounds(self.lower, self.upper)
        super().__init__(sph_body, name or f"{sph_body.name}_cells", cells)

    def find_bounds(self) -> Bounds:
        return self.lower.copy(), self.upper.copy()
