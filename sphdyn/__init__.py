"""Particle-dynamics execution engine for mesh-free (SPH) simulation."""

from . import core
from . import dynamics
from . import physics

from .core import (
    # Worker pool
    ExecutionBackend,
    set_num_threads,
    get_num_threads,
    set_grain_size,
    log_pool_info,
    shutdown_pool,

    # System and bodies
    EngineConfig,
    SimulationClock,
    SPHSystem,
    SPHBody,
    FluidBody,
    SolidBody,
    BaseParticles,
    FluidParticles,
    SolidParticles,

    # Iteration and reduction
    particle_for,
    particle_parallel_for,
    particle_reduce,
    particle_parallel_reduce,

    # Errors
    SPHDynamicsError,
    CapabilityMismatchError,
    BufferExhaustedError,
    BufferReservationError,
    ReductionContractError
)
from .dynamics import (
    StagedDynamics,
    PipelineShape,
    SimpleDynamics,
    InteractionDynamics,
    InteractionWithUpdate,
    Dynamics1Level,
    ReduceDynamics
)

__version__ = "0.1.0"

__all__ = [
    # Modules
    'core',
    'dynamics',
    'physics',

    # Worker pool
    'ExecutionBackend',
    'set_num_threads',
    'get_num_threads',
    'set_grain_size',
    'log_pool_info',
    'shutdown_pool',

    # System and bodies
    'EngineConfig',
    'SimulationClock',
    'SPHSystem',
    'SPHBody',
    'FluidBody',
    'SolidBody',
    'BaseParticles',
    'FluidParticles',
    'SolidParticles',

    # Iteration and reduction
    'particle_for',
    'particle_parallel_for',
    'particle_reduce',
    'particle_parallel_reduce',

    # Errors
    'SPHDynamicsError',
    'CapabilityMismatchError',
    'BufferExhaustedError',
    'BufferReservationError',
    'ReductionContractError',

    # Pipeline
    'StagedDynamics',
    'PipelineShape',
    'SimpleDynamics',
    'InteractionDynamics',
    'InteractionWithUpdate',
    'Dynamics1Level',
    'ReduceDynamics'
]
