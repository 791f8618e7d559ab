from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class RunParams:
    """Configuration for a single view-factor run.

    Parameters
    ----------
    device : {"auto","gpu","cpu"}
        Compute backend. GPU uses a CUDA kernel, CPU uses numba njit with a
        parallel receiver loop. ``auto`` picks CUDA when it is available.
    gpu_threads : int, optional
        CUDA threads per block (leave None for a reasonable default).
    cpu_threads : int, optional
        Number of numba threads for the CPU backend. None keeps numba's
        default.
    accumulator_threads : int
        Worker threads summing per-emitter result vectors.
    normalize : bool
        Divide the summed contributions by the emitter's total area. The
        default returns the plain sum.
    download_timeout : float
        Timeout in seconds for meshes fetched over HTTP.
    """
    device: str = "auto"
    gpu_threads: Optional[int] = None
    cpu_threads: Optional[int] = None
    accumulator_threads: int = 4
    normalize: bool = False
    download_timeout: float = 30.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WorkerParams:
    """Configuration for the distributed worker loop.

    Parameters
    ----------
    coordinator : str
        Base URL of the job coordinator.
    poll_interval : float
        Seconds to wait before polling again when no job is available or the
        coordinator is unreachable.
    max_jobs : int, optional
        Stop after this many jobs. None runs indefinitely.
    request_timeout : float
        Timeout in seconds for coordinator requests.
    """
    coordinator: str = "http://localhost:8124"
    poll_interval: float = 5.0
    max_jobs: Optional[int] = None
    request_timeout: float = 30.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["RunParams", "WorkerParams"]
