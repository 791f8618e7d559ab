from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import GeometryError

Vec3 = Sequence[float]
Facet = Tuple[Vec3, Sequence[Vec3]]


@dataclass(frozen=True)
class Facets:
    """Raw facets in file order: ``normals (N,3)`` and ``vertices (N,3,3)``.

    ``announced`` is the facet count declared by the source file, if any.
    """
    normals: np.ndarray
    vertices: np.ndarray
    announced: Optional[int] = None

    def __len__(self) -> int:
        return int(self.normals.shape[0])

    @classmethod
    def from_sequence(cls, facets: Iterable[Facet]) -> "Facets":
        normals, vertices = [], []
        for i, facet in enumerate(facets):
            try:
                normal, tri = facet
            except (TypeError, ValueError):
                raise GeometryError(f"Facet {i}: expected a (normal, vertices) pair")
            normals.append(normal)
            vertices.append(tri)
        return cls.from_arrays(normals or np.empty((0, 3)),
                               vertices or np.empty((0, 3, 3)))

    @classmethod
    def from_arrays(cls, normals, vertices, announced: Optional[int] = None) -> "Facets":
        try:
            n = np.asarray(normals, dtype=np.float64)
            v = np.asarray(vertices, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise GeometryError(f"Facets are not numeric: {exc}") from exc
        if n.ndim != 2 or n.shape[1] != 3:
            raise GeometryError(f"Facet normals must have shape (N,3), got {n.shape}")
        if v.ndim != 3 or v.shape[1:] != (3, 3):
            raise GeometryError(f"Facet vertices must have shape (N,3,3), got {v.shape}")
        if n.shape[0] != v.shape[0]:
            raise GeometryError(
                f"{n.shape[0]} normals but {v.shape[0]} vertex triples")
        if not (np.all(np.isfinite(n)) and np.all(np.isfinite(v))):
            raise GeometryError("Facets contain non-finite coordinates")
        return cls(n, v, announced)

    @classmethod
    def from_mesh(cls, V: np.ndarray, F: np.ndarray) -> "Facets":
        """Facets of an indexed mesh, normals taken from the winding order."""
        V = np.asarray(V, dtype=np.float64)
        F = np.asarray(F)
        if V.ndim != 2 or V.shape[1] != 3:
            raise GeometryError(f"Vertices must have shape (N,3), got {V.shape}")
        if F.ndim != 2 or F.shape[1] != 3:
            raise GeometryError(f"Faces must have shape (M,3), got {F.shape}")
        if F.size and (F.min() < 0 or F.max() >= V.shape[0]):
            raise GeometryError("Face indices out of range")
        tri = V[F]
        n = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
        length = np.linalg.norm(n, axis=1)
        n[length > 0] /= length[length > 0][:, None]
        return cls.from_arrays(n, tri)


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.ascontiguousarray(a, dtype=np.float64)
    a.flags.writeable = False
    return a


@dataclass(frozen=True)
class TriangleBatch:
    """Structure-of-arrays view of a triangulated mesh.

    Every attribute is its own contiguous float64 array indexed by triangle,
    so kernels can stream one attribute across all triangles. ``edge_ba``
    and ``edge_ca`` are ``B-A`` and ``C-A``; occluder batches need them for
    the intersection test. Arrays are read-only once built.
    """
    normal: np.ndarray
    vertex_a: np.ndarray
    edge_ba: np.ndarray
    edge_ca: np.ndarray
    center: np.ndarray
    area: np.ndarray

    def __post_init__(self):
        n = self.area.shape[0]
        for name in ("normal", "vertex_a", "edge_ba", "edge_ca", "center"):
            if getattr(self, name).shape != (n, 3):
                raise GeometryError(
                    f"'{name}' has shape {getattr(self, name).shape}, expected ({n}, 3)")

    @property
    def count(self) -> int:
        return int(self.area.shape[0])

    def __len__(self) -> int:
        return self.count

    @property
    def total_area(self) -> float:
        return float(self.area.sum())

    @classmethod
    def empty(cls) -> "TriangleBatch":
        """Batch with no triangles; as an occluder it never blocks anything."""
        z = np.empty((0, 3), np.float64)
        return cls(_frozen(z), _frozen(z), _frozen(z), _frozen(z), _frozen(z),
                   _frozen(np.empty(0, np.float64)))

    @classmethod
    def from_facets(
        cls,
        facets: Union[Facets, Iterable[Facet]],
        expected_count: Optional[int] = None,
    ) -> "TriangleBatch":
        """Build a batch from facets; raises GeometryError on any inconsistency.

        ``expected_count`` is the facet count announced by the source (e.g.
        an STL header); a mismatch with the facets actually parsed fails the
        whole construction.
        """
        if not isinstance(facets, Facets):
            facets = Facets.from_sequence(facets)
        if expected_count is None:
            expected_count = facets.announced
        if expected_count is not None and expected_count != len(facets):
            raise GeometryError(
                f"Mesh announces {expected_count} facets but {len(facets)} were parsed")

        v = facets.vertices
        a, b, c = v[:, 0], v[:, 1], v[:, 2]
        e1 = b - a
        e2 = c - a
        n = np.cross(e1, e2)
        area = 0.5 * np.sqrt(np.einsum("ij,ij->i", n, n))
        center = (a + b + c) / 3.0

        return cls(
            normal=_frozen(facets.normals),
            vertex_a=_frozen(a),
            edge_ba=_frozen(e1),
            edge_ca=_frozen(e2),
            center=_frozen(center),
            area=_frozen(area),
        )

    @classmethod
    def from_mesh(cls, V: np.ndarray, F: np.ndarray) -> "TriangleBatch":
        return cls.from_facets(Facets.from_mesh(V, F))


__all__ = ["Facet", "Facets", "TriangleBatch"]
