"""
Particle store tests.

Tests variable registration, the sorted/unsorted index maps and buffer
particle activation, including concurrent activation.
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from sphdyn.core.exceptions import BufferExhaustedError, BufferReservationError
from sphdyn.core.particles import BaseParticles, FluidParticles, SolidParticles


class TestVariables:
    """Test registered per-particle arrays."""

    def test_default_variables(self):
        particles = BaseParticles(dimension=3, number_of_particles=4)
        assert particles.pos.shape == (4, 3)
        assert particles.vel.shape == (4, 3)
        assert np.all(particles.mass == 1.0)
        assert np.all(particles.vol == 1.0)

    def test_register_returns_existing(self):
        particles = BaseParticles(number_of_particles=3)
        first = particles.register_variable("phi", initial=2.0)
        assert particles.register_variable("phi", initial=2.0) is first
        with pytest.raises(ValueError):
            particles.register_variable("phi", (2,))

    def test_unknown_variable(self):
        particles = BaseParticles(number_of_particles=1)
        with pytest.raises(KeyError, match="Registered"):
            particles.get_variable("temperature")

    def test_fluid_and_solid_variables(self):
        fluid = FluidParticles(number_of_particles=2, reference_density=1000.0)
        assert np.all(fluid.rho == 1000.0)
        assert np.all(fluid.p == 0.0)
        solid = SolidParticles.from_positions(np.array([[0.1, 0.2], [0.3, 0.4]]))
        np.testing.assert_array_equal(solid.pos0, solid.pos)

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            BaseParticles(dimension=1)
        with pytest.raises(ValueError):
            BaseParticles(number_of_particles=-1)
        with pytest.raises(ValueError):
            BaseParticles.from_positions(np.zeros(3))


class TestIndexMapping:
    """Test sorted/unsorted index bijection."""

    def test_initial_identity(self):
        particles = BaseParticles(number_of_particles=5)
        assert particles.check_index_mapping()
        np.testing.assert_array_equal(particles.sorted_id, np.arange(5))

    def test_resort_keeps_mapping(self):
        positions = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0]])
        particles = BaseParticles.from_positions(positions)
        particles.update_sorted_id(np.array([2, 0, 3, 1]))
        assert particles.check_index_mapping()
        np.testing.assert_array_equal(particles.unsorted_id, [2, 0, 3, 1])
        for identity in range(4):
            np.testing.assert_array_equal(particles.pos[particles.sorted_id[identity]], positions[identity])

    def test_resort_rejects_non_permutation(self):
        particles = BaseParticles(number_of_particles=3)
        with pytest.raises(ValueError):
            particles.update_sorted_id(np.array([0, 0, 1]))


class TestBufferParticles:
    """Test buffer slot activation."""

    def test_add_buffer_keeps_values(self):
        particles = BaseParticles.from_positions(np.array([[0.5, 0.5], [0.6, 0.6]]))
        particles.add_buffer_particles(3)
        assert particles.capacity == 5
        assert particles.real_particles_bound == 5
        assert particles.total_real_particles == 2
        np.testing.assert_array_equal(particles.pos[:2], [[0.5, 0.5], [0.6, 0.6]])
        assert particles.check_index_mapping()

    def test_allocate_copies_state(self):
        particles = BaseParticles.from_positions(np.array([[0.5, 0.5], [0.6, 0.6]]))
        particles.add_buffer_particles(1)
        particles.vel[1] = [1.0, -1.0]
        new_index = particles.allocate_buffer_particle(1)
        assert new_index == 2
        assert particles.total_real_particles == 3
        np.testing.assert_array_equal(particles.pos[2], [0.6, 0.6])
        np.testing.assert_array_equal(particles.vel[2], [1.0, -1.0])
        assert particles.unsorted_id[2] == 2

    def test_injection_past_bound_raises(self):
        capacity = 4
        particles = BaseParticles(number_of_particles=1)
        particles.add_buffer_particles(capacity - 1)
        for _ in range(capacity - 1):
            particles.allocate_buffer_particle(0)
        assert particles.total_real_particles == capacity

        with pytest.raises(BufferExhaustedError) as excinfo:
            particles.allocate_buffer_particle(0, context="emitter")
        assert "emitter" in str(excinfo.value)
        assert particles.total_real_particles == capacity
        assert particles.capacity == capacity
        assert isinstance(excinfo.value, RuntimeError)

    def test_concurrent_allocation_distinct_slots(self):
        real, buffer = 10, 200
        particles = BaseParticles(number_of_particles=real)
        particles.add_buffer_particles(buffer)
        particles.pos[:real, 0] = np.arange(real)

        with ThreadPoolExecutor(max_workers=8) as executor:
            slots = list(executor.map(lambda k: particles.allocate_buffer_particle(k % real), range(buffer)))

        assert sorted(slots) == list(range(real, real + buffer))
        assert particles.total_real_particles == real + buffer
        sources = np.array([k % real for k in range(buffer)])
        np.testing.assert_array_equal(particles.pos[slots, 0], sources)

    def test_negative_buffer(self):
        with pytest.raises(ValueError):
            BaseParticles().add_buffer_particles(-1)


class TestReservedCapacity:
    """Test buffer growth against arrays already handed out."""

    def test_growth_within_reserve_keeps_arrays(self):
        particles = BaseParticles(number_of_particles=3, buffer_capacity=5)
        assert particles.capacity == 8
        assert particles.real_particles_bound == 3
        phi = particles.register_variable("phi", initial=4.0)
        pos = particles.get_variable("pos")

        particles.add_buffer_particles(2)
        particles.add_buffer_particles(3)
        assert particles.real_particles_bound == 8
        assert particles.get_variable("phi") is phi
        assert particles.pos is pos

        phi[1] = 9.0
        slot = particles.allocate_buffer_particle(1)
        assert phi[slot] == 9.0
        assert particles.check_index_mapping()

    def test_growth_past_reserve_after_hand_out_raises(self):
        particles = BaseParticles(number_of_particles=3, buffer_capacity=1)
        particles.register_variable("phi")
        with pytest.raises(BufferReservationError) as excinfo:
            particles.add_buffer_particles(2)
        assert isinstance(excinfo.value, RuntimeError)
        assert particles.real_particles_bound == 3
        assert particles.capacity == 4

    def test_growth_past_reserve_reallocates_when_unbound(self):
        particles = BaseParticles(number_of_particles=2, buffer_capacity=1)
        particles.pos[:] = 0.5
        particles.add_buffer_particles(4)
        assert particles.capacity == particles.real_particles_bound == 6
        np.testing.assert_array_equal(particles.pos[:2], np.full((2, 2), 0.5))
        assert len(particles.sorted_id) == 6

    def test_real_view_tracks_count(self):
        particles = BaseParticles(number_of_particles=2, buffer_capacity=2)
        particles.add_buffer_particles(2)
        assert particles.real_view("mass").shape == (2,)
        particles.allocate_buffer_particle(0)
        view = particles.real_view("pos")
        assert view.shape == (3, 2)
        view[2] = [1.0, 1.0]
        np.testing.assert_array_equal(particles.pos[2], [1.0, 1.0])

    def test_negative_reserve(self):
        with pytest.raises(ValueError):
            BaseParticles(buffer_capacity=-1)
