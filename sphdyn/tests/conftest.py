"""Pytest configuration and shared fixtures for engine tests."""
import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure(config):
    """Configure pytest environment for engine tests."""
    # Add workspace root to Python path for sphdyn package imports
    workspace_root = Path(__file__).parent.parent.parent
    if str(workspace_root) not in sys.path:
        sys.path.insert(0, str(workspace_root))


# Side of the square ring; adjacent corners are neighbors, diagonal ones are not
RING_SIDE = 0.2
RING_RESOLUTION = 0.1  # cutoff = 2 * 1.3 * 0.1 = 0.26


@pytest.fixture
def engine_config():
    from sphdyn.core.config import EngineConfig
    return EngineConfig(num_threads=4, grain_size=1, cell_grain_size=1, log_level="WARNING")


@pytest.fixture
def system(engine_config):
    """Unit square system with a small pool and tiny chunks."""
    from sphdyn.core.body import SPHSystem
    return SPHSystem([0.0, 0.0], [1.0, 1.0], RING_RESOLUTION, engine_config)


@pytest.fixture
def ring_positions():
    lower = 0.4
    upper = lower + RING_SIDE
    return np.array([[lower, lower], [upper, lower], [upper, upper], [lower, upper]])


@pytest.fixture
def ring_body(system, ring_positions):
    """Four particles at the corners of a square, two neighbors each."""
    from sphdyn.core.body import SPHBody
    from sphdyn.core.particles import BaseParticles
    from sphdyn.physics.materials import BaseMaterial
    body = SPHBody(system, "ring", BaseParticles.from_positions(ring_positions), BaseMaterial())
    body.update_cell_linked_list()
    return body


@pytest.fixture
def ring_inner(ring_body):
    from sphdyn.core.relation import BodyRelationInner
    relation = BodyRelationInner(ring_body)
    relation.update_configuration()
    return relation


@pytest.fixture
def lattice_positions():
    """Regular 8x8 lattice with spacing equal to the system resolution."""
    x = 0.15 + RING_RESOLUTION * np.arange(8)
    xx, yy = np.meshgrid(x, x, indexing="ij")
    return np.column_stack([xx.ravel(), yy.ravel()])


@pytest.fixture
def fluid_body(system, lattice_positions):
    from sphdyn.core.body import FluidBody
    from sphdyn.core.particles import FluidParticles
    from sphdyn.physics.materials import WeaklyCompressibleFluid
    particles = FluidParticles.from_positions(lattice_positions, volume=RING_RESOLUTION ** 2,
                                              reference_density=1000.0)
    body = FluidBody(system, "water", particles,
                     WeaklyCompressibleFluid(density_ref=1000.0, sound_speed_ref=10.0))
    body.update_cell_linked_list()
    return body


@pytest.fixture(params=["sequential", "threads"])
def execution_mode(request):
    """Run a test once per execution backend."""
    from sphdyn.core.backend import ExecutionBackend
    return ExecutionBackend(request.param)
