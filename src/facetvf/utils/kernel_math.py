from __future__ import annotations
import math
import numba as nb

PARALLEL_EPS = 1e-8


@nb.njit(inline="always", cache=True)
def magnitude(x: float, y: float, z: float) -> float:
    return math.sqrt(x * x + y * y + z * z)


@nb.njit(cache=True)
def triangle_area(ax, ay, az, bx, by, bz, cx, cy, cz) -> float:
    """Area of triangle ABC as half the magnitude of (B-A) x (C-A).

    Written component-wise so it can run inside kernels without allocating.
    """
    x1 = bx - ax
    y1 = by - ay
    z1 = bz - az

    x2 = cx - ax
    y2 = cy - ay
    z2 = cz - az

    nx = y1 * z2 - z1 * y2
    ny = z1 * x2 - x1 * z2
    nz = x1 * y2 - y1 * x2
    return 0.5 * math.sqrt(nx * nx + ny * ny + nz * nz)


@nb.njit(cache=True)
def intersection_distance(ox, oy, oz, dx, dy, dz,
                          ax, ay, az,
                          e1x, e1y, e1z,
                          e2x, e2y, e2z) -> float:
    """Moeller-Trumbore ray/triangle test.

    ``(ox,oy,oz)`` is the ray origin, ``(dx,dy,dz)`` the (unnormalised) ray
    direction, ``A`` the triangle's reference vertex and ``e1 = B-A``,
    ``e2 = C-A`` its edges. Returns the ray parameter ``t`` of the hit, or
    ``0.0`` when there is no intersection (parallel ray or a miss).
    """
    # pvec = d x e2
    px = dy * e2z - dz * e2y
    py = dz * e2x - dx * e2z
    pz = dx * e2y - dy * e2x

    det = e1x * px + e1y * py + e1z * pz
    if -PARALLEL_EPS < det < PARALLEL_EPS:
        return 0.0
    inv_det = 1.0 / det

    tx = ox - ax
    ty = oy - ay
    tz = oz - az
    u = (tx * px + ty * py + tz * pz) * inv_det
    if u < 0.0 or u > 1.0:
        return 0.0

    # qvec = t x e1
    qx = ty * e1z - tz * e1y
    qy = tz * e1x - tx * e1z
    qz = tx * e1y - ty * e1x
    v = (dx * qx + dy * qy + dz * qz) * inv_det
    if v < 0.0 or u + v > 1.0:
        return 0.0

    return (e2x * qx + e2y * qy + e2z * qz) * inv_det


@nb.njit(inline="always", cache=True)
def occludes(t: float, ray_length: float) -> bool:
    return 0.0 < t <= ray_length


@nb.njit(cache=True)
def pair_contribution(enx, eny, enz, e_area,
                      rnx, rny, rnz, r_area,
                      rx, ry, rz, ray_length) -> float:
    """Radiative contribution of an unoccluded emitter/receiver pair.

    Both cosines are taken in absolute value, so back-facing pairs contribute
    like front-facing ones. Coincident centroids or zero normals give 0.
    """
    e_norm = magnitude(enx, eny, enz)
    r_norm = magnitude(rnx, rny, rnz)
    if ray_length == 0.0 or e_norm == 0.0 or r_norm == 0.0:
        return 0.0

    cos_one = abs(enx * rx + eny * ry + enz * rz) / (e_norm * ray_length)
    cos_two = abs(rnx * rx + rny * ry + rnz * rz) / (r_norm * ray_length)
    return cos_one * cos_two * e_area * r_area / (math.pi * ray_length * ray_length)


@nb.njit(cache=True)
def receiver_contribution(e, r,
                          e_center, e_normal, e_area,
                          r_center, r_normal, r_area,
                          i_vertex_a, i_edge_ba, i_edge_ca) -> float:
    """Work item for one ``(emitter, receiver)`` pair.

    Traces the centroid-to-centroid segment against every interconnect
    triangle and returns 0 as soon as one of them blocks it.
    """
    ox = e_center[e, 0]
    oy = e_center[e, 1]
    oz = e_center[e, 2]
    rx = r_center[r, 0] - ox
    ry = r_center[r, 1] - oy
    rz = r_center[r, 2] - oz
    ray_length = magnitude(rx, ry, rz)

    for i in range(i_vertex_a.shape[0]):
        t = intersection_distance(
            ox, oy, oz, rx, ry, rz,
            i_vertex_a[i, 0], i_vertex_a[i, 1], i_vertex_a[i, 2],
            i_edge_ba[i, 0], i_edge_ba[i, 1], i_edge_ba[i, 2],
            i_edge_ca[i, 0], i_edge_ca[i, 1], i_edge_ca[i, 2],
        )
        if occludes(t, ray_length):
            return 0.0

    return pair_contribution(
        e_normal[e, 0], e_normal[e, 1], e_normal[e, 2], e_area[e],
        r_normal[r, 0], r_normal[r, 1], r_normal[r, 2], r_area[r],
        rx, ry, rz, ray_length,
    )


__all__ = [
    "PARALLEL_EPS",
    "magnitude",
    "triangle_area",
    "intersection_distance",
    "occludes",
    "pair_contribution",
    "receiver_contribution",
]
