"""
Particle storage using a Structure-of-Arrays (SoA) layout.

This design provides:
- Named per-particle variables registered by the engine and by physics code
- A sorted index (storage order, spatially coherent after sorting) and an
  unsorted index (stable particle identity)
- Real particles followed by inactive buffer slots for later activation
- Pre-allocated capacity, so arrays handed out stay valid while buffer
  slots are added within the reserve
"""

import logging
import threading
from typing import Dict, Optional, Tuple

import numpy as np

from .exceptions import BufferExhaustedError, BufferReservationError

logger = logging.getLogger(__name__)


def _variable(name: str) -> property:
    return property(lambda self: self.variables[name], doc=f"Per-particle '{name}' array.")


class BaseParticles:
    """Structure of arrays shared by every dynamics bound to one body.

    Rows ``[0, total_real_particles)`` are real particles; rows up to
    ``real_particles_bound`` are buffer slots, and rows up to ``capacity``
    are reserved for buffers added later. ``sorted_id[unsorted_id[i]] == i``
    holds for every row.

    Args:
        dimension: Spatial dimension (2 or 3)
        number_of_particles: Initial real particles
        buffer_capacity: Rows reserved for ``add_buffer_particles``
    """

    pos = _variable("pos")
    vel = _variable("vel")
    acc = _variable("acc")
    acc_prior = _variable("acc_prior")
    mass = _variable("mass")
    vol = _variable("vol")

    def __init__(self, dimension: int = 2, number_of_particles: int = 0, buffer_capacity: int = 0):
        if dimension not in (2, 3):
            raise ValueError(f"Unsupported dimension: {dimension}")
        if number_of_particles < 0:
            raise ValueError(f"number_of_particles must be non-negative, got {number_of_particles}")
        if buffer_capacity < 0:
            raise ValueError(f"buffer_capacity must be non-negative, got {buffer_capacity}")
        self.dimension = dimension
        self.total_real_particles = number_of_particles
        self.real_particles_bound = number_of_particles
        self.variables: Dict[str, np.ndarray] = {}
        self._variable_specs: Dict[str, Tuple[tuple, np.dtype, float]] = {}
        # set once register_variable/get_variable returned an array to a caller
        self._variables_handed_out = False
        # counter increment on buffer activation is the serialization point
        self._buffer_lock = threading.Lock()

        capacity = number_of_particles + buffer_capacity
        self.unsorted_id = np.arange(capacity, dtype=np.int64)
        self.sorted_id = np.arange(capacity, dtype=np.int64)

        self._allocate_variable("pos", (dimension,))
        self._allocate_variable("vel", (dimension,))
        self._allocate_variable("acc", (dimension,))
        self._allocate_variable("acc_prior", (dimension,))
        self._allocate_variable("mass", initial=1.0)
        self._allocate_variable("vol", initial=1.0)

    @classmethod
    def from_positions(cls, positions: np.ndarray, volume: Optional[float] = None, **kwargs) -> "BaseParticles":
        """Create a store holding one real particle per row of ``positions``.

        Args:
            positions: (N, dim) array of initial positions
            volume: Volume per particle (default leaves vol at 1.0)
            **kwargs: Forwarded to the constructor of ``cls``
        """
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2:
            raise ValueError(f"positions must have shape (N, dim), got {positions.shape}")
        particles = cls(dimension=positions.shape[1], number_of_particles=positions.shape[0], **kwargs)
        particles.pos[:] = positions
        if volume is not None:
            particles.vol[:] = volume
        return particles

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------
    @property
    def capacity(self) -> int:
        return len(self.unsorted_id)

    def _allocate_variable(self, name: str, shape_suffix: tuple = (),
                           dtype=np.float64, initial: float = 0.0) -> np.ndarray:
        if name in self.variables:
            existing_suffix, existing_dtype, _ = self._variable_specs[name]
            if existing_suffix != tuple(shape_suffix) or existing_dtype != np.dtype(dtype):
                raise ValueError(f"Variable '{name}' already registered with a different layout")
            return self.variables[name]
        array = np.full((self.capacity,) + tuple(shape_suffix), initial, dtype=dtype)
        self.variables[name] = array
        self._variable_specs[name] = (tuple(shape_suffix), np.dtype(dtype), initial)
        return array

    def register_variable(self, name: str, shape_suffix: tuple = (),
                          dtype=np.float64, initial: float = 0.0) -> np.ndarray:
        """Allocate a per-particle array, or return the existing one.

        The returned array stays valid as long as buffer growth fits in the
        reserved capacity.
        """
        array = self._allocate_variable(name, shape_suffix, dtype, initial)
        self._variables_handed_out = True
        return array

    def get_variable(self, name: str) -> np.ndarray:
        try:
            array = self.variables[name]
        except KeyError:
            raise KeyError(
                f"{type(self).__name__} has no variable '{name}'. "
                f"Registered: {sorted(self.variables)}"
            ) from None
        self._variables_handed_out = True
        return array

    def real_view(self, name: str) -> np.ndarray:
        """Rows of a variable belonging to real particles."""
        return self.get_variable(name)[:self.total_real_particles]

    # ------------------------------------------------------------------
    # Buffer particles
    # ------------------------------------------------------------------
    def add_buffer_particles(self, buffer_size: int):
        """Raise the bound by ``buffer_size`` inactive slots.

        Slots come from the reserved capacity first. Beyond it every variable
        is reallocated, which is refused once arrays were handed out through
        ``register_variable``/``get_variable``.

        Raises:
            BufferReservationError: If growth would invalidate handed-out arrays
        """
        if buffer_size < 0:
            raise ValueError(f"buffer_size must be non-negative, got {buffer_size}")
        if buffer_size == 0:
            return
        with self._buffer_lock:
            new_bound = self.real_particles_bound + buffer_size
            old_capacity = self.capacity
            if new_bound > old_capacity:
                if self._variables_handed_out:
                    error = BufferReservationError(new_bound, old_capacity)
                    logger.error("%s", error)
                    raise error
                extra_rows = new_bound - old_capacity
                for name, array in self.variables.items():
                    suffix, dtype, initial = self._variable_specs[name]
                    extra = np.full((extra_rows,) + suffix, initial, dtype=dtype)
                    self.variables[name] = np.concatenate((array, extra))
                new_ids = np.arange(old_capacity, new_bound, dtype=np.int64)
                self.unsorted_id = np.concatenate((self.unsorted_id, new_ids))
                self.sorted_id = np.concatenate((self.sorted_id, new_ids))
            self.real_particles_bound = new_bound
        logger.info("Added %d buffer particles (bound now %d)", buffer_size, self.real_particles_bound)

    def copy_from_another_particle(self, index: int, another_index: int):
        """Copy every variable of ``another_index`` into ``index``."""
        for array in self.variables.values():
            array[index] = array[another_index]

    def allocate_buffer_particle(self, source_index: int, context: str = "") -> int:
        """Activate the next buffer slot as a copy of ``source_index``.

        The bound check, the state copy and the counter increment happen
        under one lock, so concurrent callers always receive distinct slots.

        Returns:
            Sorted index of the newly real particle

        Raises:
            BufferExhaustedError: If no buffer slot is left
        """
        with self._buffer_lock:
            if self.total_real_particles >= self.real_particles_bound:
                error = BufferExhaustedError(self.total_real_particles, self.real_particles_bound, context)
                logger.critical("%s", error)
                raise error
            new_index = self.total_real_particles
            self.copy_from_another_particle(new_index, source_index)
            self.total_real_particles = new_index + 1
        return new_index

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------
    def update_sorted_id(self, order: np.ndarray):
        """Reorder real particles so that new row ``k`` holds old row ``order[k]``.

        All variables and the identity map are permuted; ``sorted_id`` is
        rebuilt from ``unsorted_id``.
        """
        n = self.total_real_particles
        order = np.asarray(order, dtype=np.int64)
        if order.shape != (n,) or not np.array_equal(np.sort(order), np.arange(n)):
            raise ValueError("order must be a permutation of the real particle indexes")
        for array in self.variables.values():
            array[:n] = array[order]
        self.unsorted_id[:n] = self.unsorted_id[order]
        self.sorted_id[self.unsorted_id] = np.arange(self.capacity, dtype=np.int64)

    def check_index_mapping(self) -> bool:
        """True when ``sorted_id[unsorted_id[i]] == i`` for all real particles."""
        n = self.total_real_particles
        return bool(np.array_equal(self.sorted_id[self.unsorted_id[:n]], np.arange(n)))


class FluidParticles(BaseParticles):
    """Particles carrying density and pressure for fluid dynamics."""

    rho = _variable("rho")
    p = _variable("p")
    drho_dt = _variable("drho_dt")
    rho_sum = _variable("rho_sum")

    def __init__(self, dimension: int = 2, number_of_particles: int = 0,
                 reference_density: float = 1.0, buffer_capacity: int = 0):
        super().__init__(dimension, number_of_particles, buffer_capacity)
        self._allocate_variable("rho", initial=reference_density)
        self._allocate_variable("p")
        self._allocate_variable("drho_dt")
        self._allocate_variable("rho_sum", initial=reference_density)


class SolidParticles(BaseParticles):
    """Particles carrying initial position and surface normal for solids."""

    pos0 = _variable("pos0")
    n = _variable("n")

    def __init__(self, dimension: int = 2, number_of_particles: int = 0, buffer_capacity: int = 0):
        super().__init__(dimension, number_of_particles, buffer_capacity)
        self._allocate_variable("pos0", (dimension,))
        self._allocate_variable("n", (dimension,))

    @classmethod
    def from_positions(cls, positions: np.ndarray, volume: Optional[float] = None, **kwargs) -> "SolidParticles":
        particles = super().from_positions(positions, volume, **kwargs)
        particles.pos0[:] = particles.pos
        return particles
