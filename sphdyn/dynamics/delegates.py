"""
Data binding between a dynamics and the body, particles, material and
neighbor configurations it works on.

Required types are class attributes. Binding happens once, in the
constructor, and fails with ``CapabilityMismatchError`` when the bound
object is of the wrong kind. Handles are read-only afterwards.
"""

import logging
from typing import Tuple

import numpy as np

from ..core.body import SPHBody
from ..core.clock import SimulationClock
from ..core.exceptions import CapabilityMismatchError
from ..core.particles import BaseParticles
from ..core.relation import (
    BodyRelationContact,
    BodyRelationInner,
    ComplexBodyRelation,
    ParticleConfiguration,
)
from ..physics.materials import BaseMaterial

logger = logging.getLogger(__name__)


def require_capability(owner: str, role: str, obj, required: type):
    """Raise ``CapabilityMismatchError`` unless ``obj`` is a ``required``."""
    if not isinstance(obj, required):
        error = CapabilityMismatchError(owner, role, obj, required)
        logger.error("%s", error)
        raise error


class DataDelegateSimple:
    """Binds one body with its particles and material."""

    body_type = SPHBody
    particles_type = BaseParticles
    material_type = BaseMaterial

    def __init__(self, sph_body: SPHBody):
        self._bind_body(sph_body)

    def _bind_body(self, sph_body: SPHBody):
        owner = type(self).__name__
        require_capability(owner, "body", sph_body, self.body_type)
        require_capability(owner, "particles", sph_body.particles, self.particles_type)
        require_capability(owner, "material", sph_body.material, self.material_type)
        self._sph_body = sph_body
        self._particles = sph_body.particles
        self._material = sph_body.material

    @property
    def sph_body(self) -> SPHBody:
        return self._sph_body

    @property
    def particles(self):
        return self._particles

    @property
    def material(self):
        return self._material

    # storage arrays are replaced when buffer particles are added
    @property
    def sorted_id(self) -> np.ndarray:
        return self._particles.sorted_id

    @property
    def unsorted_id(self) -> np.ndarray:
        return self._particles.unsorted_id

    @property
    def clock(self) -> SimulationClock:
        return self._sph_body.clock


class DataDelegateInner(DataDelegateSimple):
    """Adds the inner neighbor configuration of an inner relation."""

    relation_type = BodyRelationInner

    def __init__(self, inner_relation: BodyRelationInner):
        require_capability(type(self).__name__, "relation", inner_relation, self.relation_type)
        self._bind_body(inner_relation.sph_body)
        self._bind_inner(inner_relation)

    def _bind_inner(self, inner_relation: BodyRelationInner):
        self._inner_relation = inner_relation
        self._inner_configuration = inner_relation.inner_configuration

    @property
    def inner_relation(self) -> BodyRelationInner:
        return self._inner_relation

    @property
    def inner_configuration(self) -> ParticleConfiguration:
        return self._inner_configuration


class DataDelegateContact(DataDelegateSimple):
    """Adds contact bodies, their particles, materials and configurations."""

    relation_type = BodyRelationContact
    contact_body_type = SPHBody
    contact_particles_type = BaseParticles
    contact_material_type = BaseMaterial

    def __init__(self, contact_relation: BodyRelationContact):
        require_capability(type(self).__name__, "relation", contact_relation, self.relation_type)
        self._bind_body(contact_relation.sph_body)
        self._bind_contact(contact_relation)

    def _bind_contact(self, contact_relation: BodyRelationContact):
        owner = type(self).__name__
        for k, body in enumerate(contact_relation.contact_bodies):
            require_capability(owner, f"contact body {k}", body, self.contact_body_type)
            require_capability(owner, f"contact particles {k}", body.particles, self.contact_particles_type)
            require_capability(owner, f"contact material {k}", body.material, self.contact_material_type)
        self._contact_relation = contact_relation
        self._contact_bodies = tuple(contact_relation.contact_bodies)
        self._contact_particles = tuple(body.particles for body in self._contact_bodies)
        self._contact_material = tuple(body.material for body in self._contact_bodies)
        self._contact_configuration = tuple(contact_relation.contact_configuration)

    @property
    def contact_relation(self) -> BodyRelationContact:
        return self._contact_relation

    @property
    def contact_bodies(self) -> Tuple[SPHBody, ...]:
        return self._contact_bodies

    @property
    def contact_particles(self) -> Tuple[BaseParticles, ...]:
        return self._contact_particles

    @property
    def contact_material(self) -> tuple:
        return self._contact_material

    @property
    def contact_configuration(self) -> Tuple[ParticleConfiguration, ...]:
        return self._contact_configuration


class DataDelegateComplex(DataDelegateInner, DataDelegateContact):
    """Inner and contact data of a complex relation."""

    relation_type = ComplexBodyRelation

    def __init__(self, complex_relation: ComplexBodyRelation):
        require_capability(type(self).__name__, "relation", complex_relation, self.relation_type)
        self._bind_body(complex_relation.sph_body)
        self._bind_inner(complex_relation.inner_relation)
        self._bind_contact(complex_relation.contact_relation)
        self._complex_relation = complex_relation

    @property
    def complex_relation(self) -> ComplexBodyRelation:
        return self._complex_relation

