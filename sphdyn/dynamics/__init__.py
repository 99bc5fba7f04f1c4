"""Particle dynamics: staged pipeline, data binding and bundled local dynamics."""

from .base import (
    BaseParticleDynamics,
    ParticleDynamics,
    PipelineShape,
    StagedDynamics,
    SimpleDynamics,
    InteractionDynamics,
    InteractionWithUpdate,
    Dynamics1Level,
    ReduceDynamics,
    LocalDynamics,
    LocalDynamicsReduce,
    PartLocalDynamicsByParticle,
    PartLocalDynamicsByCell
)
from .delegates import (
    DataDelegateSimple,
    DataDelegateInner,
    DataDelegateContact,
    DataDelegateComplex
)
from .general import (
    TimeStepInitialization,
    BodyLowerBound,
    BodyUpperBound,
    BoundingBoxReduce,
    MaximumSpeed,
    AdvectionTimeStepSize
)
from .fluid_boundary import (
    FluidDataSimple,
    FlowRelaxationBuffer,
    InflowBoundaryCondition,
    DampingBoundaryCondition,
    EmitterInflowCondition,
    EmitterInflowInjecting
)

__all__ = [
    # Pipeline
    'BaseParticleDynamics',
    'ParticleDynamics',
    'PipelineShape',
    'StagedDynamics',
    'SimpleDynamics',
    'InteractionDynamics',
    'InteractionWithUpdate',
    'Dynamics1Level',
    'ReduceDynamics',
    'LocalDynamics',
    'LocalDynamicsReduce',
    'PartLocalDynamicsByParticle',
    'PartLocalDynamicsByCell',
    # Data binding
    'DataDelegateSimple',
    'DataDelegateInner',
    'DataDelegateContact',
    'DataDelegateComplex',
    # General
    'TimeStepInitialization',
    'BodyLowerBound',
    'BodyUpperBound',
    'BoundingBoxReduce',
    'MaximumSpeed',
    'AdvectionTimeStepSize',
    # Fluid boundaries
    'FluidDataSimple',
    'FlowRelaxationBuffer',
    'InflowBoundaryCondition',
    'DampingBoundaryCondition',
    'EmitterInflowCondition',
    'EmitterInflowInjecting'
]
