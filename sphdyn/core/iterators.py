"""
Iteration engine: apply per-particle functors over particle groupings.

Groupings (loop ranges):
1. Flat range - an ``int`` or a particle store (``range(total_real_particles)``
   resolved at call time)
2. Color-split cell lists - ``SplitCellLists``, swept forward then backward
   with half time steps
3. Index subset - a sequence or integer array of indexes (body part)
4. Cell-list membership - ``CellLists``, every particle in the listed cells

A particle functor is called as ``functor(index, dt)``. Range functors get a
whole sub-range instead (see ``particle_range_for``). Implementations are
registered per (grouping, backend, functor kind) and looked up on dispatch.
"""

import enum
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .backend import ExecutionBackend, get_pool_manager
from .cell_linked_list import CellLists, SplitCellLists
from .particles import BaseParticles

ParticleFunctor = Callable[[int, float], None]


class LoopKind(enum.Enum):
    """Particle groupings understood by the iteration engine."""
    RANGE = "range"
    SPLIT_CELLS = "split_cells"
    INDEX_LIST = "index_list"
    CELL_LIST = "cell_list"


def loop_kind(loop_range) -> LoopKind:
    """Classify a loop range. Raises TypeError for unknown groupings."""
    if isinstance(loop_range, SplitCellLists):
        return LoopKind.SPLIT_CELLS
    if isinstance(loop_range, CellLists):
        return LoopKind.CELL_LIST
    if isinstance(loop_range, (BaseParticles, int, np.integer)):
        return LoopKind.RANGE
    if isinstance(loop_range, (np.ndarray, list, tuple, range)):
        return LoopKind.INDEX_LIST
    raise TypeError(f"Unsupported loop range type: {type(loop_range).__name__}")


def range_size(loop_range) -> int:
    """Number of indexes in a flat range, read at call time."""
    if isinstance(loop_range, BaseParticles):
        return loop_range.total_real_particles
    size = int(loop_range)
    if size < 0:
        raise ValueError(f"Range size must be non-negative, got {size}")
    return size


def index_array(indexes: Sequence[int]) -> np.ndarray:
    array = np.asarray(indexes, dtype=np.int64)
    if array.ndim != 1:
        raise ValueError(f"Index list must be one-dimensional, got shape {array.shape}")
    return array


_iterators: Dict[Tuple[LoopKind, ExecutionBackend, bool], Callable] = {}


def register_iterator(kind: LoopKind, backend: ExecutionBackend, range_functor: bool = False):
    """Decorator registering the iterator for one grouping and backend."""
    def decorator(func):
        _iterators[(kind, backend, range_functor)] = func
        return func
    return decorator


def iterate(loop_range, functor: Callable, dt: float = 0.0,
            backend: ExecutionBackend = ExecutionBackend.SEQUENTIAL,
            range_functor: bool = False, grain_size: Optional[int] = None):
    """Dispatch ``functor`` over ``loop_range`` with the given backend."""
    key = (loop_kind(loop_range), backend, range_functor)
    try:
        implementation = _iterators[key]
    except KeyError:
        raise ValueError(f"No iterator registered for {key}") from None
    implementation(loop_range, functor, dt, grain_size)


# Public API
def particle_for(loop_range, functor: ParticleFunctor, dt: float = 0.0):
    """Apply ``functor(index, dt)`` sequentially over a grouping."""
    iterate(loop_range, functor, dt, ExecutionBackend.SEQUENTIAL)


def particle_parallel_for(loop_range, functor: ParticleFunctor, dt: float = 0.0,
                          grain_size: Optional[int] = None):
    """Apply ``functor(index, dt)`` over a grouping on the worker pool."""
    iterate(loop_range, functor, dt, ExecutionBackend.THREADS, grain_size=grain_size)


def particle_range_for(loop_range, range_functor: Callable, dt: float = 0.0):
    """Apply a range functor sequentially.

    Call signature per grouping:
        flat range:   range_functor(index_range, dt)
        index subset: range_functor(index_range, indexes, dt), index_range
                      indexes into ``indexes``
        cell lists:   range_functor(cell_particle_indexes, dt) per cell
        split cells:  range_functor(cell_particle_indexes, dt / 2) per cell,
                      reversed in the backward sweep
    """
    iterate(loop_range, range_functor, dt, ExecutionBackend.SEQUENTIAL, range_functor=True)


def particle_parallel_range_for(loop_range, range_functor: Callable, dt: float = 0.0,
                                grain_size: Optional[int] = None):
    """Parallel counterpart of ``particle_range_for``."""
    iterate(loop_range, range_functor, dt, ExecutionBackend.THREADS,
            range_functor=True, grain_size=grain_size)


# ----------------------------------------------------------------------
# Flat range
# ----------------------------------------------------------------------
@register_iterator(LoopKind.RANGE, ExecutionBackend.SEQUENTIAL)
def _range_for(loop_range, functor, dt, grain_size=None):
    for i in range(range_size(loop_range)):
        functor(i, dt)


@register_iterator(LoopKind.RANGE, ExecutionBackend.THREADS)
def _range_parallel_for(loop_range, functor, dt, grain_size=None):
    def body(chunk: range):
        for i in chunk:
            functor(i, dt)
    get_pool_manager().parallel_for(range_size(loop_range), body, grain_size)


@register_iterator(LoopKind.RANGE, ExecutionBackend.SEQUENTIAL, range_functor=True)
def _range_for_ranges(loop_range, functor, dt, grain_size=None):
    size = range_size(loop_range)
    if size > 0:
        functor(range(0, size), dt)


@register_iterator(LoopKind.RANGE, ExecutionBackend.THREADS, range_functor=True)
def _range_parallel_for_ranges(loop_range, functor, dt, grain_size=None):
    get_pool_manager().parallel_for(range_size(loop_range), lambda chunk: functor(chunk, dt), grain_size)


# ----------------------------------------------------------------------
# Color-split cell sweep: forward over colors, then backward, dt/2 each
# ----------------------------------------------------------------------
@register_iterator(LoopKind.SPLIT_CELLS, ExecutionBackend.SEQUENTIAL)
def _split_for(split_cell_lists, functor, dt, grain_size=None):
    half_dt = 0.5 * dt
    for cell_lists in split_cell_lists:
        for cell in cell_lists:
            for i in cell.real_particle_indexes.tolist():
                functor(i, half_dt)

    for cell_lists in reversed(split_cell_lists):
        for cell in cell_lists:
            for i in cell.real_particle_indexes[::-1].tolist():
                functor(i, half_dt)


@register_iterator(LoopKind.SPLIT_CELLS, ExecutionBackend.THREADS)
def _split_parallel_for(split_cell_lists, functor, dt, grain_size=None):
    pool = get_pool_manager()
    cell_grain = grain_size if grain_size is not None else pool.cell_grain_size
    half_dt = 0.5 * dt

    def sweep(cell_lists, backward: bool):
        def body(chunk: range):
            for l in chunk:
                indexes = cell_lists[l].real_particle_indexes
                for i in (indexes[::-1] if backward else indexes).tolist():
                    functor(i, half_dt)
        # each color is a barrier: the pool drains before the next color
        pool.parallel_for(len(cell_lists), body, cell_grain)

    for cell_lists in split_cell_lists:
        sweep(cell_lists, backward=False)
    for cell_lists in reversed(split_cell_lists):
        sweep(cell_lists, backward=True)


@register_iterator(LoopKind.SPLIT_CELLS, ExecutionBackend.SEQUENTIAL, range_functor=True)
def _split_for_ranges(split_cell_lists, functor, dt, grain_size=None):
    half_dt = 0.5 * dt
    for cell_lists in split_cell_lists:
        for cell in cell_lists:
            functor(cell.real_particle_indexes, half_dt)
    for cell_lists in reversed(split_cell_lists):
        for cell in cell_lists:
            functor(cell.real_particle_indexes[::-1], half_dt)


@register_iterator(LoopKind.SPLIT_CELLS, ExecutionBackend.THREADS, range_functor=True)
def _split_parallel_for_ranges(split_cell_lists, functor, dt, grain_size=None):
    pool = get_pool_manager()
    cell_grain = grain_size if grain_size is not None else pool.cell_grain_size
    half_dt = 0.5 * dt

    def sweep(cell_lists, backward: bool):
        def body(chunk: range):
            for l in chunk:
                indexes = cell_lists[l].real_particle_indexes
                functor(indexes[::-1] if backward else indexes, half_dt)
        pool.parallel_for(len(cell_lists), body, cell_grain)

    for cell_lists in split_cell_lists:
        sweep(cell_lists, backward=False)
    for cell_lists in reversed(split_cell_lists):
        sweep(cell_lists, backward=True)


# ----------------------------------------------------------------------
# Index subset (body part by particle)
# ----------------------------------------------------------------------
@register_iterator(LoopKind.INDEX_LIST, ExecutionBackend.SEQUENTIAL)
def _list_for(indexes, functor, dt, grain_size=None):
    for i in index_array(indexes).tolist():
        functor(i, dt)


@register_iterator(LoopKind.INDEX_LIST, ExecutionBackend.THREADS)
def _list_parallel_for(indexes, functor, dt, grain_size=None):
    array = index_array(indexes)

    def body(chunk: range):
        for i in array[chunk.start:chunk.stop].tolist():
            functor(i, dt)
    get_pool_manager().parallel_for(len(array), body, grain_size)


@register_iterator(LoopKind.INDEX_LIST, ExecutionBackend.SEQUENTIAL, range_functor=True)
def _list_for_ranges(indexes, functor, dt, grain_size=None):
    array = index_array(indexes)
    if len(array) > 0:
        functor(range(0, len(array)), array, dt)


@register_iterator(LoopKind.INDEX_LIST, ExecutionBackend.THREADS, range_functor=True)
def _list_parallel_for_ranges(indexes, functor, dt, grain_size=None):
    array = index_array(indexes)
    get_pool_manager().parallel_for(len(array), lambda chunk: functor(chunk, array, dt), grain_size)


# ----------------------------------------------------------------------
# Cell-list membership (body part by cell)
# ----------------------------------------------------------------------
@register_iterator(LoopKind.CELL_LIST, ExecutionBackend.SEQUENTIAL)
def _cells_for(cell_lists, functor, dt, grain_size=None):
    for cell in cell_lists:
        for i in cell.real_particle_indexes.tolist():
            functor(i, dt)


@register_iterator(LoopKind.CELL_LIST, ExecutionBackend.THREADS)
def _cells_parallel_for(cell_lists, functor, dt, grain_size=None):
    pool = get_pool_manager()

    def body(chunk: range):
        for l in chunk:
            for i in cell_lists[l].real_particle_indexes.tolist():
                functor(i, dt)
    pool.parallel_for(len(cell_lists), body,
                      grain_size if grain_size is not None else pool.cell_grain_size)


@register_iterator(LoopKind.CELL_LIST, ExecutionBackend.SEQUENTIAL, range_functor=True)
def _cells_for_ranges(cell_lists, functor, dt, grain_size=None):
    for cell in cell_lists:
        functor(cell.real_particle_indexes, dt)


@register_iterator(LoopKind.CELL_LIST, ExecutionBackend.THREADS, range_functor=True)
def _cells_parallel_for_ranges(cell_lists, functor, dt, grain_size=None):
    pool = get_pool_manager()

    def body(chunk: range):
        for l in chunk:
            functor(cell_lists[l].real_particle_indexes, dt)
    pool.parallel_for(len(cell_lists), body,
                      grain_size if grain_size is not None else pool.cell_grain_size)
