"""
Exception types raised by the particle-dynamics engine.

Each error also derives from the builtin it refines, so code that already
catches ``TypeError``/``RuntimeError``/``ValueError`` keeps working.
"""


class SPHDynamicsError(Exception):
    """Base class for all engine errors."""


class CapabilityMismatchError(SPHDynamicsError, TypeError):
    """A dynamics was bound to a body, particle store, material or relation
    of the wrong kind."""

    def __init__(self, owner: str, role: str, obj, required):
        self.owner = owner
        self.role = role
        self.required = required
        self.actual = type(obj)
        required_name = required.__name__ if isinstance(required, type) else str(required)
        super().__init__(
            f"{owner}: {role} is {type(obj).__name__}, "
            f"requires {required_name}"
        )


class BufferExhaustedError(SPHDynamicsError, RuntimeError):
    """Activating one more buffer particle would exceed the store capacity."""

    def __init__(self, total_real_particles: int, real_particles_bound: int, context: str = ""):
        self.total_real_particles = total_real_particles
        self.real_particles_bound = real_particles_bound
        prefix = f"{context}: " if context else ""
        super().__init__(
            f"{prefix}not enough buffer particles "
            f"({total_real_particles} real of {real_particles_bound} bound)"
        )


class ReductionContractError(SPHDynamicsError, ValueError):
    """A reduction operator is not declared associative and commutative."""


class BufferReservationError(SPHDynamicsError, RuntimeError):
    """Buffer growth would reallocate variable arrays already handed out."""

    def __init__(self, requested_bound: int, capacity: int):
        self.requested_bound = requested_bound
        self.capacity = capacity
        super().__init__(
            f"buffer bound {requested_bound} exceeds reserved capacity {capacity} "
            f"after variables were handed out; pass buffer_capacity when creating the particles"
        )
