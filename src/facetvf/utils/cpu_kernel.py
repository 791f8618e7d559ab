from __future__ import annotations
import numba as nb

from .kernel_math import receiver_contribution


@nb.njit(parallel=True, cache=True)
def kernel_view_factor_cpu(e,
                           e_center, e_normal, e_area,
                           r_center, r_normal, r_area,
                           i_vertex_a, i_edge_ba, i_edge_ca,
                           out):
    """Fill ``out[r]`` with the contribution of emitter ``e`` to receiver ``r``.

    The receiver loop is spread over numba's thread pool; every work item
    reads the shared batches and writes only its own slot.
    """
    for r in nb.prange(out.shape[0]):
        out[r] = receiver_contribution(
            e, r,
            e_center, e_normal, e_area,
            r_center, r_normal, r_area,
            i_vertex_a, i_edge_ba, i_edge_ca,
        )


__all__ = ["kernel_view_factor_cpu"]
