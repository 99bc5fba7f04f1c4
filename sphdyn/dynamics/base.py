"""
Particle dynamics and the staged pipeline.

Every dynamics exposes ``exec(dt)`` (sequential) and ``parallel_exec(dt)``
(worker pool). A ``StagedDynamics`` runs its present stages in the fixed
order

    setup -> initialization -> [pre-processes -> interaction -> post-processes] -> update

where each stage except setup is a full sweep over the loop range. The
per-particle stage functions come from a *local dynamics* object, which
knows one particle and its neighbors but nothing about iteration.
"""

import abc
import enum
import logging
from typing import Callable, List, Optional

from ..core.backend import ExecutionBackend
from ..core.body import BodyPartByCell, BodyPartByParticle, SPHBody
from ..core.clock import SimulationClock
from ..core.exceptions import CapabilityMismatchError
from ..core.iterators import particle_for, particle_parallel_for
from ..core.reduce import check_reduce_operation, particle_parallel_reduce, particle_reduce

logger = logging.getLogger(__name__)

StageFunctor = Callable[[int, float], None]


class BaseParticleDynamics(abc.ABC):
    """Anything that can be executed once per time step."""

    @abc.abstractmethod
    def exec(self, dt: float = 0.0):
        """Run sequentially on the calling thread."""

    @abc.abstractmethod
    def parallel_exec(self, dt: float = 0.0):
        """Run on the shared worker pool."""

    def run(self, dt: float = 0.0, backend: ExecutionBackend = ExecutionBackend.SEQUENTIAL):
        if backend is ExecutionBackend.THREADS:
            return self.parallel_exec(dt)
        return self.exec(dt)


class ParticleDynamics(BaseParticleDynamics):
    """One functor swept over one loop range."""

    def __init__(self, loop_range, functor: StageFunctor):
        self.loop_range = loop_range
        self.functor = functor

    def exec(self, dt: float = 0.0):
        particle_for(self.loop_range, self.functor, dt)

    def parallel_exec(self, dt: float = 0.0):
        particle_parallel_for(self.loop_range, self.functor, dt)


class PipelineShape(enum.Enum):
    """Which stages a pipeline has."""
    SIMPLE = "simple"
    INTERACTION = "interaction"
    INTERACTION_WITH_UPDATE = "interaction_with_update"
    INTERACTION_1LEVEL = "interaction_1level"


class StagedDynamics(BaseParticleDynamics):
    """Pipeline with optional stage slots and ordered pre/post processes.

    Args:
        loop_range: Grouping every sweep runs over
        setup: Called once per execution as ``setup(dt)``, never swept
        initialization: Per-particle functor run before the interaction
        interaction: Per-particle functor wrapped by pre/post processes
        update: Per-particle functor run last
        name: Label for log messages
    """

    def __init__(self, loop_range, setup: Optional[Callable[[float], None]] = None,
                 initialization: Optional[StageFunctor] = None,
                 interaction: Optional[StageFunctor] = None,
                 update: Optional[StageFunctor] = None,
                 name: Optional[str] = None):
        if initialization is None and interaction is None and update is None:
            raise ValueError("A staged dynamics needs at least one per-particle stage")
        self.loop_range = loop_range
        self.setup = setup
        self.initialization = initialization
        self.interaction = interaction
        self.update = update
        self.name = name or type(self).__name__
        self.pre_processes: List[BaseParticleDynamics] = []
        self.post_processes: List[BaseParticleDynamics] = []

    @property
    def shape(self) -> PipelineShape:
        if self.interaction is None:
            return PipelineShape.SIMPLE
        if self.update is None:
            return PipelineShape.INTERACTION
        if self.initialization is None:
            return PipelineShape.INTERACTION_WITH_UPDATE
        return PipelineShape.INTERACTION_1LEVEL

    def _check_process(self, dynamics: BaseParticleDynamics, kind: str):
        if self.interaction is None:
            raise ValueError(f"{self.name}: cannot add a {kind} process without an interaction stage")
        if not isinstance(dynamics, BaseParticleDynamics):
            raise TypeError(f"{self.name}: {kind} process must be a particle dynamics, "
                            f"got {type(dynamics).__name__}")

    def add_pre_process(self, dynamics: BaseParticleDynamics):
        """Run ``dynamics`` right before the interaction sweep, in registration order."""
        self._check_process(dynamics, "pre")
        self.pre_processes.append(dynamics)

    def add_post_process(self, dynamics: BaseParticleDynamics):
        """Run ``dynamics`` right after the interaction sweep, in registration order."""
        self._check_process(dynamics, "post")
        self.post_processes.append(dynamics)

    def _run(self, dt: float, backend: ExecutionBackend):
        sweep = particle_parallel_for if backend is ExecutionBackend.THREADS else particle_for
        if self.setup is not None:
            self.setup(dt)
        if self.initialization is not None:
            sweep(self.loop_range, self.initialization, dt)
        if self.interaction is not None:
            for process in self.pre_processes:
                process.run(dt, backend)
            sweep(self.loop_range, self.interaction, dt)
            for process in self.post_processes:
                process.run(dt, backend)
        if self.update is not None:
            sweep(self.loop_range, self.update, dt)

    def exec(self, dt: float = 0.0):
        self._run(dt, ExecutionBackend.SEQUENTIAL)

    def parallel_exec(self, dt: float = 0.0):
        self._run(dt, ExecutionBackend.THREADS)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, shape={self.shape.value})"


def _stage(local_dynamics, stage: str, owner: str) -> Callable:
    method = getattr(local_dynamics, stage, None)
    if not callable(method):
        error = CapabilityMismatchError(owner, "local dynamics", local_dynamics, f"a '{stage}' stage")
        logger.error("%s", error)
        raise error
    return method


class _LocalStagedDynamics(StagedDynamics):
    """Staged dynamics whose stages are methods of one local dynamics."""

    stages: tuple = ()

    def __init__(self, local_dynamics):
        owner = type(self).__name__
        functors = {stage: _stage(local_dynamics, stage, owner) for stage in self.stages}
        super().__init__(local_dynamics.loop_range,
                         setup=getattr(local_dynamics, "setup_dynamics", None),
                         name=f"{owner}[{type(local_dynamics).__name__}]",
                         **functors)
        self.local_dynamics = local_dynamics


class SimpleDynamics(_LocalStagedDynamics):
    """Setup plus one per-particle ``update`` sweep."""
    stages = ("update",)


class InteractionDynamics(_LocalStagedDynamics):
    """Interaction sweep only."""
    stages = ("interaction",)


class InteractionWithUpdate(_LocalStagedDynamics):
    """Interaction sweep followed by an update sweep."""
    stages = ("interaction", "update")


class Dynamics1Level(_LocalStagedDynamics):
    """Initialization, interaction and update sweeps."""
    stages = ("initialization", "interaction", "update")


class ReduceDynamics(BaseParticleDynamics):
    """Fold a local reduce over its loop range and return the result."""

    def __init__(self, local_dynamics, grain_size: Optional[int] = None):
        owner = type(self).__name__
        self.reduce = _stage(local_dynamics, "reduce", owner)
        self.operation = local_dynamics.operation
        check_reduce_operation(self.operation)
        self.local_dynamics = local_dynamics
        self.loop_range = local_dynamics.loop_range
        self.grain_size = grain_size

    def _output(self, value):
        output_result = getattr(self.local_dynamics, "output_result", None)
        return output_result(value) if output_result is not None else value

    def _setup(self, dt: float):
        setup = getattr(self.local_dynamics, "setup_dynamics", None)
        if setup is not None:
            setup(dt)

    def exec(self, dt: float = 0.0):
        self._setup(dt)
        value = particle_reduce(self.loop_range, self.local_dynamics.reference,
                                self.reduce, self.operation, dt)
        return self._output(value)

    def parallel_exec(self, dt: float = 0.0):
        self._setup(dt)
        value = particle_parallel_reduce(self.loop_range, self.local_dynamics.reference,
                                         self.reduce, self.operation, dt, self.grain_size)
        return self._output(value)


# ----------------------------------------------------------------------
# Local dynamics
# ----------------------------------------------------------------------
class LocalDynamics:
    """Per-particle physics bound to one body; iterated by a staged dynamics."""

    def __init__(self, sph_body: SPHBody):
        self._sph_body = sph_body

    @property
    def sph_body(self) -> SPHBody:
        return self._sph_body

    @property
    def loop_range(self):
        return self._sph_body.particles

    @property
    def clock(self) -> SimulationClock:
        return self._sph_body.clock

    @property
    def physical_time(self) -> float:
        return self._sph_body.clock.physical_time

    def set_body_updated(self):
        self._sph_body.set_newly_updated()

    def setup_dynamics(self, dt: float = 0.0):
        pass


class LocalDynamicsReduce(LocalDynamics):
    """Local dynamics returning one value per particle for a fold.

    Subclasses set ``operation`` and ``reference`` and implement ``reduce``.
    """

    operation = None
    reference = None

    def reduce(self, index_i: int, dt: float = 0.0):
        raise NotImplementedError

    def output_result(self, value):
        return value


class PartLocalDynamicsByParticle(LocalDynamics):
    """Local dynamics over a body part given by particle identities.

    The loop range yields unsorted indexes; map them through ``sorted_id``.
    """

    def __init__(self, sph_body: SPHBody, body_part: BodyPartByParticle):
        super().__init__(sph_body)
        if body_part.sph_body is not sph_body:
            raise ValueError(f"Body part '{body_part.name}' belongs to another body")
        self.body_part = body_part

    @property
    def loop_range(self):
        return self.body_part.body_part_particles


class PartLocalDynamicsByCell(LocalDynamics):
    """Local dynamics over the particles currently in a body part's cells."""

    def __init__(self, sph_body: SPHBody, body_part: BodyPartByCell):
        super().__init__(sph_body)
        if body_part.sph_body is not sph_body:
            raise ValueError(f"Body part '{body_part.name}' belongs to another body")
        self.body_part = body_part

    @property
    def loop_range(self):
        return self.body_part.body_part_cells
