"""
Reduction engine: fold a per-particle value over a particle grouping.

Operators are small objects flagged ``associative`` and ``commutative``.
The parallel fold reduces each chunk on its own, then combines the chunk
results in chunk order starting from the reference value, which therefore
enters the result exactly once.
"""

from typing import Callable, Iterable, Optional

import numpy as np

from .backend import get_pool_manager
from .exceptions import ReductionContractError
from .iterators import LoopKind, index_array, loop_kind, range_size


class ReduceOperation:
    """Binary combining operator of a reduction."""
    associative = True
    commutative = True

    def __call__(self, x, y):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class ReduceSum(ReduceOperation):
    def __call__(self, x, y):
        return x + y


class ReduceMax(ReduceOperation):
    def __call__(self, x, y):
        return max(x, y)


class ReduceMin(ReduceOperation):
    def __call__(self, x, y):
        return min(x, y)


class ReduceOR(ReduceOperation):
    def __call__(self, x, y):
        return bool(x) or bool(y)


class ReduceAND(ReduceOperation):
    def __call__(self, x, y):
        return bool(x) and bool(y)


class ReduceLowerBound(ReduceOperation):
    """Component-wise minimum of vectors."""

    def __call__(self, x, y):
        return np.minimum(x, y)


class ReduceUpperBound(ReduceOperation):
    """Component-wise maximum of vectors."""

    def __call__(self, x, y):
        return np.maximum(x, y)


class FunctionReduceOperation(ReduceOperation):
    """Wraps a plain binary function the caller vouches for."""

    def __init__(self, function: Callable, associative: bool = True, commutative: bool = True):
        self.function = function
        self.associative = associative
        self.commutative = commutative

    def __call__(self, x, y):
        return self.function(x, y)

    def __repr__(self):
        return f"FunctionReduceOperation({getattr(self.function, '__name__', self.function)!r})"


def check_reduce_operation(operation):
    """Raise ``ReductionContractError`` unless the operator may be regrouped."""
    if not callable(operation):
        raise ReductionContractError(f"Reduce operation {operation!r} is not callable")
    if not (getattr(operation, "associative", False) and getattr(operation, "commutative", False)):
        raise ReductionContractError(
            f"Reduce operation {operation!r} must be marked associative and commutative"
        )


def _check_grouping(loop_range) -> LoopKind:
    kind = loop_kind(loop_range)
    if kind is LoopKind.SPLIT_CELLS:
        raise TypeError("Color-split cell lists are not a reduction grouping")
    return kind


def _fold(indexes: Iterable[int], value, functor, operation, dt):
    for i in indexes:
        value = operation(value, functor(i, dt))
    return value


def particle_reduce(loop_range, reference, functor: Callable, operation, dt: float = 0.0):
    """Sequential fold of ``functor(index, dt)`` from ``reference``, in order."""
    check_reduce_operation(operation)
    kind = _check_grouping(loop_range)
    if kind is LoopKind.RANGE:
        return _fold(range(range_size(loop_range)), reference, functor, operation, dt)
    if kind is LoopKind.INDEX_LIST:
        return _fold(index_array(loop_range).tolist(), reference, functor, operation, dt)
    value = reference
    for cell in loop_range:
        value = _fold(cell.real_particle_indexes.tolist(), value, functor, operation, dt)
    return value


_EMPTY = object()


def _fold_chunk(indexes: Iterable[int], functor, operation, dt):
    value = _EMPTY
    for i in indexes:
        result = functor(i, dt)
        value = result if value is _EMPTY else operation(value, result)
    return value


def particle_parallel_reduce(loop_range, reference, functor: Callable, operation,
                             dt: float = 0.0, grain_size: Optional[int] = None):
    """Chunked fold on the worker pool.

    Args:
        loop_range: Flat range, index list or ``CellLists``
        reference: Identity-like seed, applied once
        functor: ``functor(index, dt)`` returning the per-particle value
        operation: ``ReduceOperation`` marked associative and commutative
        dt: Passed to ``functor`` unchanged
        grain_size: Minimum chunk size (particles, or cells for cell lists)

    Returns:
        The combined value
    """
    check_reduce_operation(operation)
    kind = _check_grouping(loop_range)
    pool = get_pool_manager()

    if kind is LoopKind.RANGE:
        partials = pool.parallel_map_chunks(
            range_size(loop_range), lambda chunk: _fold_chunk(chunk, functor, operation, dt), grain_size)
    elif kind is LoopKind.INDEX_LIST:
        array = index_array(loop_range)
        partials = pool.parallel_map_chunks(
            len(array),
            lambda chunk: _fold_chunk(array[chunk.start:chunk.stop].tolist(), functor, operation, dt),
            grain_size)
    else:
        def body(chunk: range):
            members = [loop_range[l].real_particle_indexes for l in chunk]
            indexes = np.concatenate(members).tolist() if members else []
            return _fold_chunk(indexes, functor, operation, dt)
        partials = pool.parallel_map_chunks(
            len(loop_range), body, grain_size if grain_size is not None else pool.cell_grain_size)

    value = reference
    for partial in partials:
        if partial is not _EMPTY:
            value = operation(value, partial)
    return value
