from __future__ import annotations
import math
from numba import cuda

# Device copies of utils.kernel_math; CUDA kernels cannot call CPU njit code.


@cuda.jit(device=True, inline=True)
def _magnitude(x, y, z):
    return math.sqrt(x*x + y*y + z*z)


@cuda.jit(device=True, inline=True)
def _intersection_distance(ox, oy, oz, dx, dy, dz,
                           ax, ay, az, e1x, e1y, e1z, e2x, e2y, e2z):
    px = dy*e2z - dz*e2y
    py = dz*e2x - dx*e2z
    pz = dx*e2y - dy*e2x
    det = e1x*px + e1y*py + e1z*pz
    if det < 1e-8 and det > -1e-8:
        return 0.0
    inv = 1.0/det
    tx = ox - ax; ty = oy - ay; tz = oz - az
    u = (tx*px + ty*py + tz*pz)*inv
    if u < 0.0 or u > 1.0:
        return 0.0
    qx = ty*e1z - tz*e1y
    qy = tz*e1x - tx*e1z
    qz = tx*e1y - ty*e1x
    v = (dx*qx + dy*qy + dz*qz)*inv
    if v < 0.0 or u + v > 1.0:
        return 0.0
    return (e2x*qx + e2y*qy + e2z*qz)*inv


@cuda.jit
def kernel_view_factor(e,
                       e_center, e_normal, e_area,
                       r_center, r_normal, r_area,
                       i_vertex_a, i_edge_ba, i_edge_ca,
                       out):
    r = cuda.grid(1)
    if r >= out.shape[0]:
        return
    ox = e_center[e, 0]; oy = e_center[e, 1]; oz = e_center[e, 2]
    rx = r_center[r, 0] - ox
    ry = r_center[r, 1] - oy
    rz = r_center[r, 2] - oz
    ray_length = _magnitude(rx, ry, rz)

    for i in range(i_vertex_a.shape[0]):
        t = _intersection_distance(
            ox, oy, oz, rx, ry, rz,
            i_vertex_a[i, 0], i_vertex_a[i, 1], i_vertex_a[i, 2],
            i_edge_ba[i, 0], i_edge_ba[i, 1], i_edge_ba[i, 2],
            i_edge_ca[i, 0], i_edge_ca[i, 1], i_edge_ca[i, 2],
        )
        if t > 0.0 and t <= ray_length:
            out[r] = 0.0
            return

    enx = e_normal[e, 0]; eny = e_normal[e, 1]; enz = e_normal[e, 2]
    rnx = r_normal[r, 0]; rny = r_normal[r, 1]; rnz = r_normal[r, 2]
    e_norm = _magnitude(enx, eny, enz)
    r_norm = _magnitude(rnx, rny, rnz)
    if ray_length == 0.0 or e_norm == 0.0 or r_norm == 0.0:
        out[r] = 0.0
        return

    cos_one = abs(enx*rx + eny*ry + enz*rz) / (e_norm*ray_length)
    cos_two = abs(rnx*rx + rny*ry + rnz*rz) / (r_norm*ray_length)
    out[r] = (cos_one*cos_two*e_area[e]*r_area[r]
              / (math.pi*ray_length*ray_length))


__all__ = ["kernel_view_factor"]
