"""
Cell linked list tests.

Tests grid allocation, particle membership, sorting and the coloring
invariant that makes same-colored cells safe to process concurrently.
"""

import itertools

import numpy as np
import pytest

from sphdyn.core.cell_linked_list import CellLinkedList, compute_cell_indexes_numba
from sphdyn.core.particles import BaseParticles


@pytest.fixture
def random_particles():
    rng = np.random.default_rng(42)
    return BaseParticles.from_positions(rng.uniform(0.0, 1.0, size=(300, 2)))


class TestGrid:
    """Test grid allocation."""

    def test_grid_shape(self):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.26)
        assert cell_linked_list.grid_shape == (4, 4)
        assert len(cell_linked_list.cells) == 16
        assert cell_linked_list.number_of_colors == 9
        assert sum(len(cells) for cells in cell_linked_list.split_cell_lists) == 16

    def test_invalid_grid(self):
        with pytest.raises(ValueError):
            CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.0)
        with pytest.raises(ValueError):
            CellLinkedList([0.0, 0.0], [0.0, 1.0], 0.1)

    @pytest.mark.parametrize("dimension", [2, 3])
    def test_same_color_cells_are_separated(self, dimension):
        spacing = 0.1
        cell_linked_list = CellLinkedList(np.zeros(dimension), np.full(dimension, 0.75), spacing)
        for color, cells in enumerate(cell_linked_list.split_cell_lists):
            assert all(cell.color == color for cell in cells)
            for cell_a, cell_b in itertools.combinations(cells, 2):
                assert CellLinkedList.cell_distance(cell_a, cell_b) > spacing

    def test_neighbor_cells_block(self):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.2)
        center = cell_linked_list.cells[np.ravel_multi_index((2, 2), cell_linked_list.grid_shape)]
        corner = cell_linked_list.cells[0]
        assert len(cell_linked_list.neighbor_cells(center)) == 9
        assert len(cell_linked_list.neighbor_cells(corner)) == 4


class TestMembership:
    """Test particle membership updates."""

    def test_every_particle_in_one_cell(self, random_particles):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.15)
        cell_linked_list.update(random_particles)
        members = np.concatenate([cell.real_particle_indexes for cell in cell_linked_list.cells])
        assert sorted(members.tolist()) == list(range(300))

    def test_members_lie_in_their_cell(self, random_particles):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.15)
        cell_linked_list.update(random_particles)
        for cell in cell_linked_list.cells:
            positions = random_particles.pos[cell.real_particle_indexes]
            assert np.all(positions >= cell.lower - 1e-12)
            assert np.all(positions <= cell.upper + 1e-12)

    def test_cells_are_persistent(self, random_particles):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.15)
        cells_before = list(cell_linked_list.cells)
        part = cell_linked_list.cells_in_bounds([0.0, 0.0], [0.2, 0.2])
        cell_linked_list.update(random_particles)
        random_particles.pos[:, :] = 1.0 - random_particles.pos
        cell_linked_list.update(random_particles)
        assert all(a is b for a, b in zip(cells_before, cell_linked_list.cells))
        assert all(cell in cell_linked_list.cells for cell in part)

    def test_positions_outside_domain_are_clipped(self):
        positions = np.array([[-0.5, 0.5], [1.5, 2.0]])
        indexes = compute_cell_indexes_numba(positions, 2, np.zeros(2), 0.5, np.array([3, 3]))
        np.testing.assert_array_equal(indexes, [[0, 1], [2, 2]])

    def test_sort_particles(self, random_particles):
        original = random_particles.pos.copy()
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.15)
        cell_linked_list.sort_particles(random_particles)
        assert random_particles.check_index_mapping()
        assert np.all(np.diff(cell_linked_list.cell_of_particle) >= 0)
        for cell in cell_linked_list.cells:
            indexes = cell.real_particle_indexes
            if len(indexes):
                np.testing.assert_array_equal(indexes, np.arange(indexes[0], indexes[0] + len(indexes)))
        np.testing.assert_array_equal(random_particles.pos[random_particles.sorted_id[:300]], original)

    def test_statistics(self, random_particles):
        cell_linked_list = CellLinkedList([0.0, 0.0], [1.0, 1.0], 0.15)
        cell_linked_list.update(random_particles)
        stats = cell_linked_list.get_statistics()
        assert stats['total_cells'] == 49
        assert stats['max_particles_per_cell'] >= 1
        assert stats['number_of_colors'] == 9
