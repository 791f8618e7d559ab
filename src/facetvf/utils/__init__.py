from __future__ import annotations

"""Numerical kernels.

Only the CPU-safe math helpers are re-exported here so the package imports
cleanly without CUDA; the CUDA kernel module is loaded by its direct
importers.
"""

from .kernel_math import (  # noqa: F401
    PARALLEL_EPS,
    intersection_distance,
    magnitude,
    occludes,
    pair_contribution,
    receiver_contribution,
    triangle_area,
)

__all__ = [
    "PARALLEL_EPS",
    "intersection_distance",
    "magnitude",
    "occludes",
    "pair_contribution",
    "receiver_contribution",
    "triangle_area",
]
