"""
Cell linked list and its color-split cell groups.

The background grid uses a cell size no smaller than the interaction
cutoff, so a particle only interacts with particles in the 3^d block of
cells around its own. Cells are colored by ``index mod 3`` along each axis:
two cells of one color are at least two cells apart, their neighborhoods
never overlap, and all cells of one color can be processed concurrently.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numba as nb
import numpy as np

from .particles import BaseParticles

logger = logging.getLogger(__name__)


@nb.njit(cache=True)
def compute_cell_indexes_numba(positions: np.ndarray, n_real: int,
                               domain_lower: np.ndarray, grid_spacing: float,
                               number_of_cells: np.ndarray) -> np.ndarray:
    """Grid coordinates of each real particle, clipped to the grid."""
    dim = positions.shape[1]
    cell_indexes = np.empty((n_real, dim), dtype=np.int64)
    for i in range(n_real):
        for k in range(dim):
            c = int(np.floor((positions[i, k] - domain_lower[k]) / grid_spacing))
            cell_indexes[i, k] = max(0, min(c, number_of_cells[k] - 1))
    return cell_indexes


@dataclass(eq=False)
class Cell:
    """One background cell and the real particles it currently holds."""
    index: Tuple[int, ...]
    linear_index: int
    color: int
    lower: np.ndarray
    upper: np.ndarray
    real_particle_indexes: np.ndarray = field(
        default_factory=lambda: np.empty(0, dtype=np.int64))


class CellLists(list):
    """A list of cells, iterated by particle membership."""


class SplitCellLists(list):
    """Cells grouped by color; entry ``k`` is the ``CellLists`` of color ``k``."""


class CellLinkedList:
    """Uniform grid over the system domain with persistent cell objects.

    Cells are allocated once; ``update`` refreshes their particle membership
    in place, so cell lists held by body parts stay valid.
    """

    def __init__(self, domain_lower: Sequence[float], domain_upper: Sequence[float],
                 grid_spacing: float):
        """Allocate the grid.

        Args:
            domain_lower: Lower corner of the domain
            domain_upper: Upper corner of the domain
            grid_spacing: Cell size, at least the interaction cutoff radius
        """
        self.domain_lower = np.asarray(domain_lower, dtype=np.float64)
        self.domain_upper = np.asarray(domain_upper, dtype=np.float64)
        if self.domain_lower.shape != self.domain_upper.shape or self.domain_lower.ndim != 1:
            raise ValueError("domain bounds must be vectors of the same dimension")
        if np.any(self.domain_upper <= self.domain_lower):
            raise ValueError(f"Empty domain: {self.domain_lower} to {self.domain_upper}")
        if grid_spacing <= 0.0:
            raise ValueError(f"grid_spacing must be positive, got {grid_spacing}")

        self.dimension = len(self.domain_lower)
        self.grid_spacing = float(grid_spacing)
        domain_size = self.domain_upper - self.domain_lower
        self.number_of_cells = (np.floor(domain_size / grid_spacing).astype(np.int64) + 1)
        self.grid_shape = tuple(int(n) for n in self.number_of_cells)
        self.number_of_colors = 3 ** self.dimension

        self.cells: List[Cell] = []
        self.split_cell_lists = SplitCellLists(CellLists() for _ in range(self.number_of_colors))
        for linear_index, index in enumerate(np.ndindex(self.grid_shape)):
            color = sum((c % 3) * 3 ** k for k, c in enumerate(index))
            lower = self.domain_lower + np.asarray(index) * grid_spacing
            cell = Cell(index=index, linear_index=linear_index, color=color,
                        lower=lower, upper=lower + grid_spacing)
            self.cells.append(cell)
            self.split_cell_lists[color].append(cell)

        self.cell_of_particle = np.empty(0, dtype=np.int64)
        logger.info("Cell linked list: %s cells, grid spacing %g",
                    "x".join(str(n) for n in self.grid_shape), grid_spacing)

    def cell_linear_indexes(self, particles: BaseParticles) -> np.ndarray:
        """Linear cell index of every real particle."""
        n = particles.total_real_particles
        if n == 0:
            return np.empty(0, dtype=np.int64)
        positions = np.ascontiguousarray(particles.pos[:n], dtype=np.float64)
        cell_indexes = compute_cell_indexes_numba(positions, n, self.domain_lower,
                                                  self.grid_spacing, self.number_of_cells)
        return np.ravel_multi_index(cell_indexes.T, self.grid_shape).astype(np.int64)

    def update(self, particles: BaseParticles):
        """Rebuild the particle membership of every cell."""
        linear = self.cell_linear_indexes(particles)
        order = np.argsort(linear, kind="stable")
        sorted_cells = linear[order]
        all_cells = np.arange(len(self.cells))
        starts = np.searchsorted(sorted_cells, all_cells, side="left")
        ends = np.searchsorted(sorted_cells, all_cells, side="right")
        for cell, start, end in zip(self.cells, starts, ends):
            cell.real_particle_indexes = order[start:end]
        self.cell_of_particle = linear

    def sort_particles(self, particles: BaseParticles):
        """Reorder particles by cell, then rebuild membership for the new order."""
        linear = self.cell_linear_indexes(particles)
        particles.update_sorted_id(np.argsort(linear, kind="stable"))
        self.update(particles)

    def neighbor_cells(self, cell: Cell, search_depth: int = 1) -> CellLists:
        """Cells within ``search_depth`` grid steps of ``cell``, itself included."""
        index = np.asarray(cell.index)
        lower = np.maximum(index - search_depth, 0)
        upper = np.minimum(index + search_depth, self.number_of_cells - 1)
        block = np.ndindex(tuple(int(n) for n in upper - lower + 1))
        return CellLists(self.cells[np.ravel_multi_index(tuple(lower + np.asarray(offset)), self.grid_shape)]
                         for offset in block)

    def neighbor_candidates(self, cell: Cell, search_depth: int = 1) -> np.ndarray:
        """Real particle indexes in the block of cells around ``cell``."""
        members = [c.real_particle_indexes for c in self.neighbor_cells(cell, search_depth)]
        return np.concatenate(members) if members else np.empty(0, dtype=np.int64)

    def cells_in_bounds(self, lower: Sequence[float], upper: Sequence[float]) -> CellLists:
        """Cells whose box overlaps the box ``[lower, upper]``."""
        lower = np.asarray(lower, dtype=np.float64)
        upper = np.asarray(upper, dtype=np.float64)
        return CellLists(cell for cell in self.cells
                         if np.all(cell.upper >= lower) and np.all(cell.lower <= upper))

    @staticmethod
    def cell_distance(cell_a: Cell, cell_b: Cell) -> float:
        """Smallest distance between the boxes of two cells."""
        gap = np.maximum(0.0, np.maximum(cell_a.lower - cell_b.upper, cell_b.lower - cell_a.upper))
        return float(np.sqrt(np.sum(gap * gap)))

    def get_statistics(self) -> dict:
        """Occupancy statistics for debugging."""
        counts = np.array([len(cell.real_particle_indexes) for cell in self.cells])
        occupied = counts > 0
        return {
            'total_cells': len(self.cells),
            'occupied_cells': int(np.sum(occupied)),
            'occupancy_rate': float(np.sum(occupied)) / len(self.cells),
            'max_particles_per_cell': int(np.max(counts)) if len(counts) else 0,
            'number_of_colors': self.number_of_colors,
        }
