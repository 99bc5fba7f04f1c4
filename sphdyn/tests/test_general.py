"""
General dynamics tests: step initialization, bounds and time step size.
"""

import numpy as np
import pytest

from sphdyn.dynamics.base import ReduceDynamics, SimpleDynamics
from sphdyn.dynamics.general import (
    AdvectionTimeStepSize,
    BodyLowerBound,
    BodyUpperBound,
    BoundingBoxReduce,
    MaximumSpeed,
    TimeStepInitialization,
)


class TestTimeStepInitialization:
    """Test prior acceleration reset."""

    def test_sets_gravity(self, fluid_body, execution_mode):
        particles = fluid_body.particles
        particles.acc_prior[:] = 3.0
        SimpleDynamics(TimeStepInitialization(fluid_body, [0.0, -9.81])).run(0.0, execution_mode)
        np.testing.assert_array_equal(particles.acc_prior[:particles.total_real_particles],
                                      np.tile([0.0, -9.81], (particles.total_real_particles, 1)))

    def test_default_zero(self, fluid_body):
        fluid_body.particles.acc_prior[:] = 1.0
        SimpleDynamics(TimeStepInitialization(fluid_body)).exec()
        assert np.all(fluid_body.particles.acc_prior == 0.0)

    def test_gravity_shape_checked(self, fluid_body):
        with pytest.raises(ValueError):
            TimeStepInitialization(fluid_body, [0.0, 0.0, -9.81])


class TestBounds:
    """Test bounding reductions over positions."""

    def test_lower_and_upper(self, fluid_body, lattice_positions, execution_mode):
        lower = ReduceDynamics(BodyLowerBound(fluid_body)).run(0.0, execution_mode)
        upper = ReduceDynamics(BodyUpperBound(fluid_body)).run(0.0, execution_mode)
        np.testing.assert_allclose(lower, lattice_positions.min(axis=0))
        np.testing.assert_allclose(upper, lattice_positions.max(axis=0))

    def test_bounding_box(self, fluid_body, lattice_positions, execution_mode):
        lower, upper = ReduceDynamics(BoundingBoxReduce(fluid_body)).run(0.0, execution_mode)
        np.testing.assert_allclose(lower, lattice_positions.min(axis=0))
        np.testing.assert_allclose(upper, lattice_positions.max(axis=0))

    def test_positions_not_modified(self, fluid_body, lattice_positions):
        ReduceDynamics(BoundingBoxReduce(fluid_body), grain_size=3).parallel_exec()
        np.testing.assert_array_equal(fluid_body.particles.pos[:64], lattice_positions)


class TestTimeStepSize:
    """Test speed reductions and the advection criterion."""

    def test_maximum_speed(self, fluid_body, execution_mode):
        fluid_body.particles.vel[17] = [3.0, 4.0]
        assert ReduceDynamics(MaximumSpeed(fluid_body)).run(0.0, execution_mode) == pytest.approx(5.0)

    def test_advection_step_uses_speed(self, fluid_body, execution_mode):
        fluid_body.particles.vel[5] = [0.0, 2.0]
        h = fluid_body.sph_adaptation.h_ref
        dt = ReduceDynamics(AdvectionTimeStepSize(fluid_body, reference_speed=1.0)).run(0.0, execution_mode)
        assert dt == pytest.approx(0.25 * h / 2.0)

    def test_advection_step_reference_speed(self, fluid_body):
        h = fluid_body.sph_adaptation.h_ref
        dt = ReduceDynamics(AdvectionTimeStepSize(fluid_body, reference_speed=1.0)).exec()
        assert dt == pytest.approx(0.25 * h)

    def test_negative_reference_speed(self, fluid_body):
        with pytest.raises(ValueError):
            AdvectionTimeStepSize(fluid_body, reference_speed=-1.0)
