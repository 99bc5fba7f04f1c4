"""
Body relations and the neighbor configurations they own.

A relation declares which particles interact: a body with itself (inner),
a body with other bodies (contact), or both (complex). ``update_configuration``
rebuilds the whole neighbor table first and only then swaps it into the
configuration object that dynamics hold, so a reader never sees a partly
rebuilt table.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy.spatial import cKDTree

from .body import SPHBody
from .config import TINY_REAL
from .kernel import CubicSplineKernel

logger = logging.getLogger(__name__)


@dataclass
class Neighborhood:
    """Neighbors of one particle, ordered by distance."""
    j: np.ndarray        # neighbor indexes, shape (k,)
    r_ij: np.ndarray     # distances, shape (k,)
    e_ij: np.ndarray     # unit vectors from j to i, shape (k, dim)
    W_ij: np.ndarray     # kernel values, shape (k,)
    dW_ij: np.ndarray    # kernel radial derivatives, shape (k,)

    @property
    def current_size(self) -> int:
        return len(self.j)

    @classmethod
    def empty(cls, dimension: int) -> "Neighborhood":
        return cls(j=np.empty(0, dtype=np.int64), r_ij=np.empty(0),
                   e_ij=np.empty((0, dimension)), W_ij=np.empty(0), dW_ij=np.empty(0))


class ParticleConfiguration(list):
    """Neighborhood of every real particle, indexed by sorted index."""


def build_neighborhood(displacement: np.ndarray, j: np.ndarray, cutoff: float,
                       kernel: CubicSplineKernel, h: float) -> Neighborhood:
    """Keep candidates closer than ``cutoff`` and fill their geometric data.

    Args:
        displacement: x_i - x_j for each candidate, shape (k, dim)
        j: Candidate indexes, shape (k,)
        cutoff: Interaction radius
        kernel: Kernel evaluated on the kept distances
        h: Smoothing length
    """
    distance = np.sqrt(np.sum(displacement * displacement, axis=1))
    within = distance < cutoff
    distance = distance[within]
    order = np.argsort(distance, kind="stable")
    distance = distance[order]
    displacement = displacement[within][order]
    return Neighborhood(
        j=np.asarray(j[within][order], dtype=np.int64),
        r_ij=distance,
        e_ij=displacement / (distance[:, np.newaxis] + TINY_REAL),
        W_ij=kernel.W(distance, h),
        dW_ij=kernel.dW(distance, h),
    )


class BaseBodyRelation:
    """Relation of one body to a set of particles."""

    def __init__(self, sph_body: SPHBody):
        self.sph_body = sph_body
        sph_body.system.add_relation(self)

    def update_configuration(self):
        raise NotImplementedError


class BodyRelationInner(BaseBodyRelation):
    """Particles of one body against themselves, searched through the cell list."""

    def __init__(self, sph_body: SPHBody):
        super().__init__(sph_body)
        adaptation = sph_body.sph_adaptation
        self.kernel = adaptation.kernel
        self.h = adaptation.h_ref
        self.cutoff_radius = adaptation.cutoff_radius
        if self.cutoff_radius > sph_body.cell_linked_list.grid_spacing:
            raise ValueError(
                f"Cutoff radius {self.cutoff_radius} exceeds the cell size "
                f"{sph_body.cell_linked_list.grid_spacing} of body '{sph_body.name}'"
            )
        self.inner_configuration = ParticleConfiguration()

    def update_configuration(self):
        particles = self.sph_body.particles
        cell_linked_list = self.sph_body.cell_linked_list
        n = particles.total_real_particles
        if len(cell_linked_list.cell_of_particle) != n:
            self.sph_body.update_cell_linked_list()

        positions = particles.pos[:n]
        empty = Neighborhood.empty(particles.dimension)
        configuration = [empty] * n
        for cell in cell_linked_list.cells:
            members = cell.real_particle_indexes
            if len(members) == 0:
                continue
            candidates = cell_linked_list.neighbor_candidates(cell)
            displacement = positions[members][:, np.newaxis, :] - positions[candidates][np.newaxis, :, :]
            for row, i in enumerate(members):
                not_self = candidates != i
                configuration[i] = build_neighborhood(displacement[row][not_self], candidates[not_self],
                                                      self.cutoff_radius, self.kernel, self.h)

        self.inner_configuration[:] = configuration
        logger.debug("Inner configuration of '%s' rebuilt for %d particles", self.sph_body.name, n)


class BodyRelationContact(BaseBodyRelation):
    """Particles of one body against the particles of other bodies."""

    def __init__(self, sph_body: SPHBody, contact_bodies: Sequence[SPHBody]):
        super().__init__(sph_body)
        if not contact_bodies:
            raise ValueError(f"Contact relation of '{sph_body.name}' needs at least one contact body")
        if any(body is sph_body for body in contact_bodies):
            raise ValueError(f"Body '{sph_body.name}' cannot be in contact with itself")
        adaptation = sph_body.sph_adaptation
        self.kernel = adaptation.kernel
        self.h = adaptation.h_ref
        self.cutoff_radius = adaptation.cutoff_radius
        self.contact_bodies: List[SPHBody] = list(contact_bodies)
        self.contact_configuration: List[ParticleConfiguration] = [
            ParticleConfiguration() for _ in self.contact_bodies
        ]

    def update_configuration(self):
        particles = self.sph_body.particles
        n = particles.total_real_particles
        positions = particles.pos[:n]
        empty = Neighborhood.empty(particles.dimension)

        for contact_body, shared_configuration in zip(self.contact_bodies, self.contact_configuration):
            contact_particles = contact_body.particles
            m = contact_particles.total_real_particles
            configuration = [empty] * n
            if n > 0 and m > 0:
                contact_positions = contact_particles.pos[:m]
                tree = cKDTree(contact_positions)
                candidate_lists = tree.query_ball_point(positions, r=self.cutoff_radius)
                for i, candidates in enumerate(candidate_lists):
                    if not candidates:
                        continue
                    j = np.asarray(candidates, dtype=np.int64)
                    configuration[i] = build_neighborhood(positions[i] - contact_positions[j], j,
                                                          self.cutoff_radius, self.kernel, self.h)
            shared_configuration[:] = configuration

        logger.debug("Contact configuration of '%s' rebuilt against %s", self.sph_body.name,
                     [body.name for body in self.contact_bodies])


class ComplexBodyRelation:
    """Inner relation plus contact relation of the same body."""

    def __init__(self, inner_relation: BodyRelationInner, contact_relation: BodyRelationContact):
        if inner_relation.sph_body is not contact_relation.sph_body:
            raise ValueError("Inner and contact relations must belong to the same body")
        self.inner_relation = inner_relation
        self.contact_relation = contact_relation

    @classmethod
    def from_body(cls, sph_body: SPHBody, contact_bodies: Sequence[SPHBody]) -> "ComplexBodyRelation":
        return cls(BodyRelationInner(sph_body), BodyRelationContact(sph_body, contact_bodies))

    @property
    def sph_body(self) -> SPHBody:
        return self.inner_relation.sph_body

    @property
    def inner_configuration(self) -> ParticleConfiguration:
        return self.inner_relation.inner_configuration

    @property
    def contact_bodies(self) -> List[SPHBody]:
        return self.contact_relation.contact_bodies

    @property
    def contact_configuration(self) -> List[ParticleConfiguration]:
        return self.contact_relation.contact_configuration

    def update_configuration(self):
        self.inner_relation.update_configuration()
        self.contact_relation.update_configuration()
