import math
import struct

import numpy as np
import pytest

from facetvf.geometry import Facets


def facing_pair(d: float = 2.0):
    """Unit right triangle at z=0 facing +z and its copy at z=d facing -z."""
    tri = np.array([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)])
    emitter = Facets.from_arrays([(0.0, 0.0, 1.0)], [tri])
    receiver = Facets.from_arrays([(0.0, 0.0, -1.0)], [tri + (0.0, 0.0, d)])
    return emitter, receiver


def square(z: float, normal_z: float, size: float = 1.0):
    V = np.array([(0, 0, z), (size, 0, z), (size, size, z), (0, size, z)], np.float64)
    F = np.array([[0, 1, 2], [0, 2, 3]], np.int64)
    tri = V[F]
    normals = np.tile((0.0, 0.0, normal_z), (2, 1))
    return Facets.from_arrays(normals, tri)


def brute_force_vf(emitter: Facets, receiver: Facets) -> float:
    """Reference sum written with plain Python math."""
    total = 0.0
    for ne, te in zip(emitter.normals, emitter.vertices):
        ce = te.mean(axis=0)
        ae = 0.5 * np.linalg.norm(np.cross(te[1] - te[0], te[2] - te[0]))
        for nr, tr in zip(receiver.normals, receiver.vertices):
            cr = tr.mean(axis=0)
            ar = 0.5 * np.linalg.norm(np.cross(tr[1] - tr[0], tr[2] - tr[0]))
            ray = cr - ce
            L = math.sqrt(float(ray @ ray))
            c1 = abs(float(ne @ ray)) / (np.linalg.norm(ne) * L)
            c2 = abs(float(nr @ ray)) / (np.linalg.norm(nr) * L)
            total += c1 * c2 * ae * ar / (math.pi * L * L)
    return total


def write_binary_stl(path, facets: Facets, announced=None):
    with open(path, "wb") as fh:
        fh.write(b"\0" * 80)
        fh.write(struct.pack("<I", len(facets) if announced is None else announced))
        for n, tri in zip(facets.normals, facets.vertices):
            fh.write(struct.pack("<12fH", *n, *tri[0], *tri[1], *tri[2], 0))
    return str(path)


def write_ascii_stl(path, facets: Facets):
    lines = ["solid test"]
    for n, tri in zip(facets.normals, facets.vertices):
        lines.append("facet normal {} {} {}".format(*n))
        lines.append(" outer loop")
        for v in tri:
            lines.append("  vertex {} {} {}".format(*v))
        lines.append(" endloop")
        lines.append("endfacet")
    lines.append("endsolid test")
    with open(path, "w", encoding="ascii") as fh:
        fh.write("\n".join(lines) + "\n")
    return str(path)


@pytest.fixture
def pair():
    return facing_pair(2.0)


@pytest.fixture
def squares():
    return square(0.0, 1.0), square(1.5, -1.0)


@pytest.fixture
def shield():
    """Large triangle at z=1 covering every centroid of the unit square."""
    tri = np.array([(-10.0, -10.0, 1.0), (30.0, -10.0, 1.0), (-10.0, 30.0, 1.0)])
    return Facets.from_arrays([(0.0, 0.0, 1.0)], [tri])
