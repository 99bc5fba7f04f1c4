"""Core engine components: worker pool, particles, cells, bodies, relations, iteration."""

from .backend import (
    ExecutionBackend,
    WorkerPoolManager,
    get_pool_manager,
    set_num_threads,
    get_num_threads,
    set_grain_size,
    parallel_for,
    parallel_map_chunks,
    log_pool_info,
    shutdown_pool
)
from .body import (
    SPHAdaptation,
    SPHSystem,
    SPHBody,
    FluidBody,
    SolidBody,
    BodyPart,
    BodyPartByParticle,
    BodyRegionByParticle,
    BodyPartByCell,
    BodyRegionByCell
)
from .cell_linked_list import Cell, CellLists, SplitCellLists, CellLinkedList
from .clock import SimulationClock
from .config import EngineConfig, TINY_REAL, configure_logging
from .exceptions import (
    SPHDynamicsError,
    CapabilityMismatchError,
    BufferExhaustedError,
    BufferReservationError,
    ReductionContractError
)
from .iterators import (
    LoopKind,
    particle_for,
    particle_parallel_for,
    particle_range_for,
    particle_parallel_range_for
)
from .kernel import CubicSplineKernel
from .particles import BaseParticles, FluidParticles, SolidParticles
from .reduce import (
    ReduceOperation,
    ReduceSum,
    ReduceMax,
    ReduceMin,
    ReduceOR,
    ReduceAND,
    ReduceLowerBound,
    ReduceUpperBound,
    FunctionReduceOperation,
    particle_reduce,
    particle_parallel_reduce
)
from .relation import (
    Neighborhood,
    ParticleConfiguration,
    BodyRelationInner,
    BodyRelationContact,
    ComplexBodyRelation
)

__all__ = [
    # Worker pool
    'ExecutionBackend',
    'WorkerPoolManager',
    'get_pool_manager',
    'set_num_threads',
    'get_num_threads',
    'set_grain_size',
    'parallel_for',
    'parallel_map_chunks',
    'log_pool_info',
    'shutdown_pool',
    # Bodies
    'SPHAdaptation',
    'SPHSystem',
    'SPHBody',
    'FluidBody',
    'SolidBody',
    'BodyPart',
    'BodyPartByParticle',
    'BodyRegionByParticle',
    'BodyPartByCell',
    'BodyRegionByCell',
    # Cells
    'Cell',
    'CellLists',
    'SplitCellLists',
    'CellLinkedList',
    # Config
    'SimulationClock',
    'EngineConfig',
    'TINY_REAL',
    'configure_logging',
    # Errors
    'SPHDynamicsError',
    'CapabilityMismatchError',
    'BufferExhaustedError',
    'BufferReservationError',
    'ReductionContractError',
    # Iteration
    'LoopKind',
    'particle_for',
    'particle_parallel_for',
    'particle_range_for',
    'particle_parallel_range_for',
    # Particles
    'CubicSplineKernel',
    'BaseParticles',
    'FluidParticles',
    'SolidParticles',
    # Reduction
    'ReduceOperation',
    'ReduceSum',
    'ReduceMax',
    'ReduceMin',
    'ReduceOR',
    'ReduceAND',
    'ReduceLowerBound',
    'ReduceUpperBound',
    'FunctionReduceOperation',
    'particle_reduce',
    'particle_parallel_reduce',
    # Relations
    'Neighborhood',
    'ParticleConfiguration',
    'BodyRelationInner',
    'BodyRelationContact',
    'ComplexBodyRelation'
]
