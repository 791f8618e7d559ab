from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List

import numpy as np

from .errors import ComputeError

logger = logging.getLogger(__name__)


class _Cell:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value = 0.0


class ThreadedAccumulator:
    """Sums result vectors on a small thread pool while the kernel keeps running.

    ``add`` copies the vector and returns immediately. Each pool thread adds
    into its own cell, so the hot path takes no lock; the cells are combined
    only in :meth:`finish_and_get`, after every submitted vector has been
    summed.
    """

    def __init__(self, threads: int = 4):
        if threads < 1:
            raise ValueError(f"threads must be >= 1 (got {threads})")
        self._pool = ThreadPoolExecutor(max_workers=threads,
                                        thread_name_prefix="facetvf-sum")
        self._local = threading.local()
        self._cells: List[_Cell] = []
        self._cells_lock = threading.Lock()
        self._futures = []
        self._closed = False

    def _cell(self) -> _Cell:
        cell = getattr(self._local, "cell", None)
        if cell is None:
            cell = _Cell()
            with self._cells_lock:
                self._cells.append(cell)
            self._local.cell = cell
        return cell

    def _sum_into_cell(self, values: np.ndarray) -> None:
        self._cell().value += float(np.sum(values))

    def add(self, values: np.ndarray) -> None:
        if self._closed:
            raise RuntimeError("accumulator already drained")
        # The caller may overwrite its buffer on the next dispatch.
        local_copy = np.array(values, dtype=np.float64, copy=True)
        self._futures.append(self._pool.submit(self._sum_into_cell, local_copy))

    @property
    def pending(self) -> int:
        return sum(1 for f in self._futures if not f.done())

    def finish_and_get(self) -> float:
        """Block until all partial sums are applied and return the total."""
        if not self._closed:
            self._closed = True
            wait(self._futures)
            self._pool.shutdown(wait=True)
            errors = [f.exception() for f in self._futures if f.exception() is not None]
            if errors:
                raise ComputeError(f"Summation failed: {errors[0]}") from errors[0]
            logger.debug("Accumulator drained %d vectors", len(self._futures))
        return float(sum(cell.value for cell in self._cells))

    def close(self) -> None:
        """Drop queued work without waiting; used when a run is aborted."""
        self._closed = True
        for f in self._futures:
            f.cancel()
        self._pool.shutdown(wait=False)


__all__ = ["ThreadedAccumulator"]
