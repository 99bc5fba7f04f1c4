"""
Execution backends and the shared worker pool.

Two backends are supported:
1. SEQUENTIAL - plain loops on the calling thread
2. THREADS - chunked work on one process-wide ThreadPoolExecutor

Every parallel dispatch blocks until all of its chunks are finished, so a
call is also a barrier between phases (colors, stages).
"""

import enum
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, TypeVar

from .config import DEFAULT_GRAIN_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on chunks per worker before the grain size takes over
CHUNKS_PER_THREAD = 4


class ExecutionBackend(enum.Enum):
    """Available execution modes."""
    SEQUENTIAL = "sequential"
    THREADS = "threads"


@dataclass
class PoolInfo:
    """Snapshot of the worker pool settings."""
    num_threads: int
    grain_size: int
    cell_grain_size: int
    started: bool


_worker_state = threading.local()


def _run_in_worker(body: Callable[[range], T], chunk: range) -> T:
    _worker_state.active = True
    try:
        return body(chunk)
    finally:
        _worker_state.active = False


class WorkerPoolManager:
    """Owns the shared thread pool and splits index ranges into chunks."""

    def __init__(self, num_threads: Optional[int] = None,
                 grain_size: int = DEFAULT_GRAIN_SIZE, cell_grain_size: int = 1):
        self._num_threads = num_threads or os.cpu_count() or 1
        self._grain_size = grain_size
        self._cell_grain_size = cell_grain_size
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @property
    def num_threads(self) -> int:
        return self._num_threads

    @property
    def grain_size(self) -> int:
        return self._grain_size

    @property
    def cell_grain_size(self) -> int:
        return self._cell_grain_size

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._num_threads, thread_name_prefix="sphdyn-worker"
                )
                logger.debug("Worker pool started with %d threads", self._num_threads)
            return self._executor

    def set_num_threads(self, num_threads: int):
        """Resize the pool. Running work finishes on the old pool first."""
        if num_threads < 1:
            raise ValueError(f"num_threads must be positive, got {num_threads}")
        with self._lock:
            if num_threads == self._num_threads:
                return
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
            self._num_threads = num_threads
        logger.info("Worker pool set to %d threads", num_threads)

    def set_grain_size(self, grain_size: int, cell_grain_size: Optional[int] = None):
        if grain_size < 1:
            raise ValueError(f"grain_size must be positive, got {grain_size}")
        self._grain_size = grain_size
        if cell_grain_size is not None:
            if cell_grain_size < 1:
                raise ValueError(f"cell_grain_size must be positive, got {cell_grain_size}")
            self._cell_grain_size = cell_grain_size

    @staticmethod
    def in_worker() -> bool:
        """True when called from inside a pool task."""
        return getattr(_worker_state, "active", False)

    def chunk_ranges(self, n: int, grain_size: Optional[int] = None) -> List[range]:
        """Split ``range(n)`` into contiguous chunks of at least ``grain_size``."""
        if n <= 0:
            return []
        grain = grain_size if grain_size is not None else self._grain_size
        if grain < 1:
            raise ValueError(f"grain_size must be positive, got {grain}")
        per_chunk = max(grain, -(-n // (self._num_threads * CHUNKS_PER_THREAD)))
        return [range(begin, min(begin + per_chunk, n)) for begin in range(0, n, per_chunk)]

    def parallel_map_chunks(self, n: int, body: Callable[[range], T],
                            grain_size: Optional[int] = None) -> List[T]:
        """Run ``body(chunk)`` for every chunk of ``range(n)`` on the pool.

        Returns the per-chunk results in chunk order. If any chunk raises,
        all submitted chunks are still awaited before the first failure (in
        chunk order) is re-raised.
        """
        chunks = self.chunk_ranges(n, grain_size)
        if not chunks:
            return []
        # nested dispatch from a worker would wait on its own pool
        if len(chunks) == 1 or self.in_worker():
            return [body(chunk) for chunk in chunks]

        executor = self._get_executor()
        futures = [executor.submit(_run_in_worker, body, chunk) for chunk in chunks]
        wait(futures)
        for future in futures:
            error = future.exception()
            if error is not None:
                raise error
        return [future.result() for future in futures]

    def parallel_for(self, n: int, body: Callable[[range], None],
                     grain_size: Optional[int] = None):
        """Run ``body(chunk)`` over all chunks of ``range(n)`` and block until done."""
        self.parallel_map_chunks(n, body, grain_size)

    def info(self) -> PoolInfo:
        return PoolInfo(
            num_threads=self._num_threads,
            grain_size=self._grain_size,
            cell_grain_size=self._cell_grain_size,
            started=self._executor is not None,
        )

    def log_info(self):
        info = self.info()
        logger.info("sphdyn worker pool")
        logger.info("=" * 40)
        logger.info("threads:         %d", info.num_threads)
        logger.info("grain size:      %d", info.grain_size)
        logger.info("cell grain size: %d", info.cell_grain_size)
        logger.info("started:         %s", info.started)
        logger.info("=" * 40)

    def shutdown(self):
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


# Global pool manager instance
_pool_manager = WorkerPoolManager()


# Public API
def get_pool_manager() -> WorkerPoolManager:
    return _pool_manager


def set_num_threads(num_threads: int):
    _pool_manager.set_num_threads(num_threads)


def get_num_threads() -> int:
    return _pool_manager.num_threads


def set_grain_size(grain_size: int, cell_grain_size: Optional[int] = None):
    _pool_manager.set_grain_size(grain_size, cell_grain_size)


def chunk_ranges(n: int, grain_size: Optional[int] = None) -> List[range]:
    return _pool_manager.chunk_ranges(n, grain_size)


def parallel_for(n: int, body: Callable[[range], None], grain_size: Optional[int] = None):
    _pool_manager.parallel_for(n, body, grain_size)


def parallel_map_chunks(n: int, body: Callable[[range], T],
                        grain_size: Optional[int] = None) -> List[T]:
    return _pool_manager.parallel_map_chunks(n, body, grain_size)


def log_pool_info():
    _pool_manager.log_info()


def shutdown_pool():
    _pool_manager.shutdown()
