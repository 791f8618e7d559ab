from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from numba import cuda, set_num_threads

from .errors import ComputeError
from .geometry import TriangleBatch
from .utils.cpu_kernel import kernel_view_factor_cpu
from .utils.cuda_kernel import kernel_view_factor

logger = logging.getLogger(__name__)


class CpuBackend:
    """Runs the per-receiver work items on numba's CPU thread pool.

    ``transfer`` only keeps references to the batches; nothing is copied.
    """
    name = "cpu"

    def __init__(self, threads: Optional[int] = None):
        self.threads = threads
        self._args = None
        self._out = None

    def transfer(self, emitter: TriangleBatch, receiver: TriangleBatch,
                 interconnect: TriangleBatch) -> None:
        if self.threads:
            set_num_threads(self.threads)
        self._args = (
            emitter.center, emitter.normal, emitter.area,
            receiver.center, receiver.normal, receiver.area,
            interconnect.vertex_a, interconnect.edge_ba, interconnect.edge_ca,
        )
        self._out = np.zeros(receiver.count, np.float64)

    def dispatch(self, emitter_index: int) -> np.ndarray:
        """Evaluate every receiver for one emitter triangle.

        The returned buffer is reused by the next dispatch.
        """
        if self._args is None:
            raise ComputeError("dispatch() called before transfer()")
        kernel_view_factor_cpu(emitter_index, *self._args, self._out)
        return self._out

    def release(self) -> None:
        self._args = None
        self._out = None


class CudaBackend:
    """Runs the per-receiver work items as a 1-D CUDA grid."""
    name = "gpu"

    def __init__(self, threads: Optional[int] = None):
        self.threads = threads or 256
        self._args = None
        self._d_out = None
        self._h_out = None
        self._blocks = 0

    def transfer(self, emitter: TriangleBatch, receiver: TriangleBatch,
                 interconnect: TriangleBatch) -> None:
        try:
            self.threads = min(self.threads, cuda.get_current_device().MAX_THREADS_PER_BLOCK)
            host = (
                emitter.center, emitter.normal, emitter.area,
                receiver.center, receiver.normal, receiver.area,
                interconnect.vertex_a, interconnect.edge_ba, interconnect.edge_ca,
            )
            self._args = tuple(cuda.to_device(np.ascontiguousarray(a)) for a in host)
            n = receiver.count
            self._d_out = cuda.device_array(n, dtype=np.float64)
            self._h_out = cuda.pinned_array(n, dtype=np.float64)
            self._blocks = (n + self.threads - 1) // self.threads
        except Exception as exc:
            raise ComputeError(f"CUDA transfer failed: {exc}") from exc

    def dispatch(self, emitter_index: int) -> np.ndarray:
        if self._args is None:
            raise ComputeError("dispatch() called before transfer()")
        try:
            kernel_view_factor[self._blocks, self.threads](
                emitter_index, *self._args, self._d_out)
            cuda.synchronize()
            self._d_out.copy_to_host(self._h_out)
        except Exception as exc:
            raise ComputeError(f"CUDA dispatch failed: {exc}") from exc
        return self._h_out

    def release(self) -> None:
        self._args = None
        self._d_out = None
        self._h_out = None


def select_backend(device: str = "auto", gpu_threads: Optional[int] = None,
                   cpu_threads: Optional[int] = None):
    """Return the backend for ``device`` (``auto``, ``gpu`` or ``cpu``)."""
    dev = (device or "auto").lower()
    if dev not in ("auto", "gpu", "cpu"):
        raise ValueError(f"device must be 'auto', 'gpu', or 'cpu' (got {device!r})")
    have_cuda = cuda.is_available()
    if dev == "gpu" and not have_cuda:
        raise ComputeError("device='gpu' requested but CUDA is not available")
    if dev == "gpu" or (dev == "auto" and have_cuda):
        logger.debug("Using CUDA backend")
        return CudaBackend(gpu_threads)
    logger.debug("Using CPU backend")
    return CpuBackend(cpu_threads)


__all__ = ["CpuBackend", "CudaBackend", "select_backend"]
