"""
System-level tests: configuration, logging, clock, worker pool and bodies.
"""

import logging

import numpy as np
import pytest

from sphdyn.core.backend import (
    WorkerPoolManager,
    get_num_threads,
    get_pool_manager,
    log_pool_info,
    parallel_map_chunks,
    shutdown_pool,
)
from sphdyn.core.body import BodyRegionByCell, BodyRegionByParticle, FluidBody, SPHBody, SPHSystem
from sphdyn.core.clock import SimulationClock
from sphdyn.core.config import EngineConfig, PACKAGE_LOGGER, configure_logging
from sphdyn.core.particles import BaseParticles, FluidParticles
from sphdyn.core.relation import BodyRelationInner
from sphdyn.physics.materials import BaseMaterial, LinearElasticSolid, WeaklyCompressibleFluid


class TestEngineConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.num_threads >= 1
        assert config.grain_size == 256
        assert config.h_spacing_ratio == 1.3

    def test_from_dict(self):
        config = EngineConfig.from_dict({"num_threads": 2, "grain_size": 8})
        assert config.num_threads == 2
        assert config.grain_size == 8

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="threads"):
            EngineConfig.from_dict({"threads": 2})

    @pytest.mark.parametrize("kwargs", [{"num_threads": 0}, {"grain_size": 0},
                                        {"cell_grain_size": 0}, {"h_spacing_ratio": -1.0}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_system_applies_config(self):
        SPHSystem([0.0, 0.0], [1.0, 1.0], 0.1, EngineConfig(num_threads=3, grain_size=5, cell_grain_size=2))
        info = get_pool_manager().info()
        assert info.num_threads == 3 == get_num_threads()
        assert info.grain_size == 5
        assert info.cell_grain_size == 2


class TestLogging:
    """Test package logger setup."""

    def test_single_handler(self):
        logger = configure_logging("DEBUG")
        configure_logging("INFO")
        assert logger.name == PACKAGE_LOGGER
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_buffer_growth_logged(self, caplog):
        configure_logging("INFO")
        with caplog.at_level(logging.INFO, logger=PACKAGE_LOGGER):
            BaseParticles(number_of_particles=2).add_buffer_particles(3)
        assert any("buffer" in record.getMessage() for record in caplog.records)


class TestClock:
    """Test the simulation clock."""

    def test_advance(self):
        clock = SimulationClock()
        assert clock.advance(0.5) == 0.5
        assert clock.advance(0.25) == 0.75
        assert clock.physical_time == 0.75

    def test_cannot_go_back(self):
        clock = SimulationClock(1.0)
        with pytest.raises(ValueError):
            clock.advance(-0.1)
        assert clock.physical_time == 1.0

    def test_reset(self):
        clock = SimulationClock()
        clock.advance(2.0)
        clock.reset()
        assert clock.physical_time == 0.0

    def test_systems_have_separate_clocks(self, system):
        other = SPHSystem([0.0, 0.0], [1.0, 1.0], 0.1, system.config)
        system.advance_time(1.0)
        assert other.clock.physical_time == 0.0
        body = SPHBody(system, "b", BaseParticles(number_of_particles=1), BaseMaterial())
        assert body.clock.physical_time == 1.0


class TestWorkerPool:
    """Test chunking and pool settings."""

    @pytest.mark.parametrize("n", [0, 1, 5, 100, 1001])
    @pytest.mark.parametrize("grain_size", [1, 16, 256])
    def test_chunks_cover_range(self, n, grain_size):
        pool = WorkerPoolManager(num_threads=4)
        chunks = pool.chunk_ranges(n, grain_size)
        covered = [i for chunk in chunks for i in chunk]
        assert covered == list(range(n))
        assert all(len(chunk) >= min(grain_size, n) for chunk in chunks[:-1])

    def test_results_in_chunk_order(self):
        pool = WorkerPoolManager(num_threads=4, grain_size=1)
        try:
            results = pool.parallel_map_chunks(40, lambda chunk: chunk.start)
            assert results == [chunk.start for chunk in pool.chunk_ranges(40)]
        finally:
            pool.shutdown()

    def test_log_pool_info(self, system, caplog):
        with caplog.at_level(logging.INFO, logger=PACKAGE_LOGGER):
            log_pool_info()
        messages = [record.getMessage() for record in caplog.records]
        assert any(message.startswith("threads:") and message.endswith("4") for message in messages)

    def test_shutdown_then_reuse(self, system):
        parallel_map_chunks(8, lambda chunk: chunk.start, grain_size=1)
        assert get_pool_manager().info().started
        shutdown_pool()
        assert not get_pool_manager().info().started
        results = parallel_map_chunks(8, lambda chunk: len(chunk), grain_size=1)
        assert sum(results) == 8

    def test_invalid_settings(self):
        pool = WorkerPoolManager(num_threads=2)
        with pytest.raises(ValueError):
            pool.set_num_threads(0)
        with pytest.raises(ValueError):
            pool.set_grain_size(0)
        with pytest.raises(ValueError):
            pool.set_grain_size(4, cell_grain_size=0)


class TestBodies:
    """Test body setup and body parts."""

    def test_duplicate_name(self, system):
        SPHBody(system, "a", BaseParticles(number_of_particles=1), BaseMaterial())
        with pytest.raises(ValueError):
            SPHBody(system, "a", BaseParticles(number_of_particles=1), BaseMaterial())

    def test_dimension_mismatch(self, system):
        with pytest.raises(ValueError):
            SPHBody(system, "a", BaseParticles(dimension=3, number_of_particles=1), BaseMaterial())

    def test_cell_spacing_is_cutoff(self, ring_body):
        assert ring_body.cell_linked_list.grid_spacing == pytest.approx(0.26)

    def test_initialize_system(self, system, lattice_positions):
        particles = FluidParticles.from_positions(lattice_positions, reference_density=1000.0)
        body = FluidBody(system, "tank", particles, WeaklyCompressibleFluid(density_ref=1000.0))
        relation = BodyRelationInner(body)
        system.initialize_system_cell_linked_lists()
        assert sum(len(cell.real_particle_indexes) for cell in body.cell_linked_list.cells) == 64
        system.initialize_system_configurations()
        assert len(relation.inner_configuration) == 64
        assert relation.inner_configuration[9].current_size > 0

    def test_region_by_particle_stores_identities(self, fluid_body):
        region = BodyRegionByParticle(fluid_body, [0.0, 0.0], [0.2, 0.2])
        assert len(region) == 1
        identity = region.body_part_particles[0]
        fluid_body.sort_particles()
        np.testing.assert_allclose(fluid_body.particles.pos[fluid_body.particles.sorted_id[identity]],
                                   [0.15, 0.15])

    def test_region_by_cell_follows_updates(self, fluid_body):
        region = BodyRegionByCell(fluid_body, [0.0, 0.0], [0.1, 0.1])
        assert sorted(region.particle_indexes().tolist()) == [0, 1, 8, 9]
        fluid_body.particles.pos[:5] = [0.05, 0.05]
        fluid_body.update_cell_linked_list()
        assert sorted(region.particle_indexes().tolist()) == [0, 1, 2, 3, 4, 8, 9]
        np.testing.assert_array_equal(region.find_bounds()[1], [0.1, 0.1])


class TestMaterials:
    """Test material handles."""

    def test_fluid_pressure(self):
        fluid = WeaklyCompressibleFluid(density_ref=1000.0, sound_speed_ref=10.0)
        assert fluid.get_pressure(1000.0) == 0.0
        assert fluid.get_pressure(1010.0) == pytest.approx(1000.0)
        assert fluid.get_density(fluid.get_pressure(995.0)) == pytest.approx(995.0)
        assert fluid.get_sound_speed() == 10.0
        assert fluid.get_sound_speed(p=50.0, rho=1005.0) == 10.0
        np.testing.assert_allclose(fluid.get_pressure(np.array([1000.0, 1001.0])), [0.0, 100.0])

    def test_solid_moduli(self):
        solid = LinearElasticSolid(density_ref=1000.0, youngs_modulus=3.0, poisson_ratio=0.25)
        assert solid.bulk_modulus == pytest.approx(2.0)
        assert solid.shear_modulus == pytest.approx(1.2)

    def test_invalid_material(self):
        with pytest.raises(ValueError):
            BaseMaterial(density_ref=0.0)
        with pytest.raises(ValueError):
            LinearElasticSolid(poisson_ratio=0.5)
