from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import numpy as np

from .accumulator import ThreadedAccumulator
from .backends import CpuBackend
from .errors import ComputeError, RunCancelled
from .geometry import TriangleBatch

logger = logging.getLogger(__name__)

ResultConsumer = Callable[[np.ndarray], None]
ProgressCallback = Callable[[int, int], None]


class ViewFactorKernel:
    """Evaluates every emitter/receiver triangle pair of a run.

    Emitters are processed strictly one after another; for each emitter the
    backend computes the contributions of all receivers in parallel and the
    resulting vector is handed to a consumer (normally an accumulator).
    The batches are only read.
    """

    def __init__(self, emitter: TriangleBatch, receiver: TriangleBatch,
                 interconnect: Optional[TriangleBatch] = None, backend=None):
        self.emitter = emitter
        self.receiver = receiver
        self.interconnect = interconnect if interconnect is not None else TriangleBatch.empty()
        self.backend = backend if backend is not None else CpuBackend()
        self._transferred = False

    @property
    def is_degenerate(self) -> bool:
        return self.emitter.count == 0 or self.receiver.count == 0

    def transfer(self) -> None:
        """Stage the batches on the backend (a device copy on CUDA)."""
        if not self.is_degenerate:
            self.backend.transfer(self.emitter, self.receiver, self.interconnect)
        self._transferred = True

    def calculate(self, on_result: ResultConsumer,
                  on_progress: Optional[ProgressCallback] = None,
                  cancel: Optional[threading.Event] = None) -> None:
        """Dispatch once per emitter triangle, feeding each result vector to ``on_result``.

        ``on_progress(current, total)`` is called after every dispatch with a
        1-based ``current``. ``cancel`` is polled between dispatches.
        """
        if not self._transferred:
            raise ComputeError("calculate() called before transfer()")
        if self.is_degenerate:
            logger.info("Empty emitter or receiver batch; nothing to compute")
            return

        total = self.emitter.count
        try:
            for e in range(total):
                if cancel is not None and cancel.is_set():
                    raise RunCancelled(f"Run cancelled after {e}/{total} emitter triangles")
                on_result(self.backend.dispatch(e))
                if on_progress is not None:
                    on_progress(e + 1, total)
        finally:
            self.backend.release()

    def run(self, accumulator_threads: int = 4, normalize: bool = False) -> float:
        """Transfer, compute and sum in one call, without any event reporting."""
        self.transfer()
        adder = ThreadedAccumulator(accumulator_threads)
        try:
            self.calculate(adder.add)
        except BaseException:
            adder.close()
            raise
        total = adder.finish_and_get()
        return normalized(total, self.emitter, normalize)


def normalized(total: float, emitter: TriangleBatch, normalize: bool) -> float:
    """Divide ``total`` by the emitter area when ``normalize`` is set."""
    if not normalize:
        return total
    area = emitter.total_area
    return total / area if area > 0.0 else 0.0


__all__ = ["ViewFactorKernel", "normalized"]
