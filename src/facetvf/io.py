from __future__ import annotations

import io
import json
import logging
import struct
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Tuple, Union
from urllib.parse import urlparse

import numpy as np
import requests
from trimesh.exchange.stl import load_stl

from .errors import GeometryError
from .geometry import Facets

logger = logging.getLogger(__name__)

MeshTuple = Tuple[str, np.ndarray, np.ndarray]
Meshes = List[MeshTuple]
Source = Union[str, Path, bytes, BinaryIO]

_STL_HEADER = 80
_STL_RECORD = 50


def _announced_stl_count(data: bytes) -> Union[int, None]:
    """Facet count from a binary STL header, or None for ASCII files."""
    if len(data) < _STL_HEADER + 4:
        return None
    (count,) = struct.unpack("<I", data[_STL_HEADER:_STL_HEADER + 4])
    if data[:5].lower() == b"solid" and len(data) != _STL_HEADER + 4 + count * _STL_RECORD:
        return None
    return int(count)


def parse_stl(data: bytes) -> Facets:
    """Parse an ASCII or binary STL blob into facets in file order."""
    announced = _announced_stl_count(data)
    if announced is not None:
        expected = _STL_HEADER + 4 + announced * _STL_RECORD
        if len(data) < expected:
            raise GeometryError(
                f"STL header announces {announced} facets but the file holds "
                f"{max(0, (len(data) - _STL_HEADER - 4) // _STL_RECORD)}")
        if announced == 0:
            return Facets.from_arrays(np.empty((0, 3)), np.empty((0, 3, 3)), announced=0)
    # raw loader output keeps the stored normals; a Trimesh would replace
    # any that disagree with the winding
    try:
        raw = load_stl(io.BytesIO(data))
    except Exception as exc:
        raise GeometryError(f"Could not parse STL: {exc}") from exc
    parts = list(raw["geometry"].values()) if "geometry" in raw else [raw]
    normals, triangles = [], []
    for part in parts:
        if part.get("face_normals") is None:
            raise GeometryError("STL facets carry no normals")
        vertices = np.asarray(part["vertices"], dtype=np.float64)
        triangles.append(vertices[np.asarray(part["faces"], dtype=np.int64)])
        normals.append(np.asarray(part["face_normals"], dtype=np.float64).reshape(-1, 3))
    if not normals:
        return Facets.from_arrays(np.empty((0, 3)), np.empty((0, 3, 3)), announced=announced)
    return Facets.from_arrays(np.concatenate(normals), np.concatenate(triangles),
                              announced=announced)


def _read_source(source: Source, timeout: float) -> Tuple[bytes, str]:
    """Return the raw bytes of ``source`` and its lower-case suffix."""
    if isinstance(source, bytes):
        return source, ".stl"
    if hasattr(source, "read"):
        data = source.read()
        name = getattr(source, "name", "")
        return data, (Path(name).suffix.lower() if isinstance(name, str) else "") or ".stl"

    text = str(source)
    if urlparse(text).scheme in ("http", "https"):
        try:
            resp = requests.get(text, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise GeometryError(f"Could not download mesh {text}: {exc}") from exc
        return resp.content, Path(urlparse(text).path).suffix.lower() or ".stl"

    path = Path(text)
    if not path.exists():
        raise GeometryError(f"File not found: {text}")
    try:
        return path.read_bytes(), path.suffix.lower()
    except OSError as exc:
        raise GeometryError(f"Could not read {text}: {exc}") from exc


def load_facets(source: Source, timeout: float = 30.0) -> Facets:
    """Load the facets of a mesh from a path, URL, byte string or binary file.

    ``.json`` sources use the mesh JSON format of :func:`save_meshes_json`
    (all meshes in the file are concatenated); anything else is parsed as
    STL.
    """
    data, suffix = _read_source(source, timeout)
    if suffix == ".json":
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise GeometryError(f"Invalid mesh JSON: {exc}") from exc
        meshes = _meshes_from_payload(payload)
        parts = [Facets.from_mesh(V, F) for _, V, F in meshes]
        if not parts:
            return Facets.from_arrays(np.empty((0, 3)), np.empty((0, 3, 3)))
        return Facets.from_arrays(np.concatenate([p.normals for p in parts]),
                                  np.concatenate([p.vertices for p in parts]))
    facets = parse_stl(data)
    logger.debug("Loaded %d facets from %s", len(facets),
                 source if isinstance(source, (str, Path)) else type(source).__name__)
    return facets


# ---------------------------------------------------------------
# Mesh geometry JSON IO
# ---------------------------------------------------------------

def save_meshes_json(meshes: Meshes, save_path: str) -> str:
    """Save meshes to a JSON file.

    The expected input format is a list of tuples:
        [(name: str, V: float[N,3], F: int[M,3]), ...]

    The JSON structure is:
        { "meshes": [
            {"name": str,
             "vertices": [[x,y,z], ...],
             "faces": [[i,j,k], ...]
            }, ...
        ]}
    """
    if not isinstance(meshes, list):
        raise TypeError("meshes must be a list of (name, V, F) tuples")

    payload = {"meshes": []}
    for item in meshes:
        if not (isinstance(item, tuple) and len(item) == 3):
            raise TypeError("Each mesh must be a (name, V, F) tuple")
        name, V, F = item
        if not isinstance(name, str) or name.strip() == "":
            raise TypeError("Mesh name must be a non-empty string")
        V = np.asarray(V, dtype=np.float64)
        F = np.asarray(F, dtype=np.int64)
        if V.ndim != 2 or V.shape[1] != 3:
            raise ValueError(f"Vertices for '{name}' must have shape (N,3)")
        if F.ndim != 2 or F.shape[1] != 3:
            raise ValueError(f"Faces for '{name}' must have shape (M,3) of triangles")
        payload["meshes"].append(
            {
                "name": name,
                "vertices": V.tolist(),
                "faces": F.tolist(),
            }
        )

    path = _prepare_path(save_path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2)

    return str(path.resolve())


def _meshes_from_payload(data: Any) -> Meshes:
    if not isinstance(data, dict) or "meshes" not in data:
        raise GeometryError("Invalid mesh JSON: expected an object with 'meshes' list")
    meshes_raw = data["meshes"]
    if not isinstance(meshes_raw, list):
        raise GeometryError("'meshes' must be a list")

    out: Meshes = []
    for i, entry in enumerate(meshes_raw):
        if not isinstance(entry, dict):
            raise GeometryError("Each entry in 'meshes' must be an object")
        name = entry.get("name")
        if not isinstance(name, str) or name.strip() == "":
            raise GeometryError(f"Entry {i}: 'name' must be a non-empty string")
        try:
            V = np.asarray(entry.get("vertices"), dtype=np.float64)
            F = np.asarray(entry.get("faces"), dtype=np.int64)
        except (TypeError, ValueError) as exc:
            raise GeometryError(f"Entry {i} ('{name}'): {exc}") from exc
        if V.ndim != 2 or V.shape[1] != 3:
            raise GeometryError(f"Entry {i} ('{name}'): vertices must have shape (N,3)")
        if F.ndim != 2 or F.shape[1] != 3:
            raise GeometryError(f"Entry {i} ('{name}'): faces must have shape (M,3)")
        out.append((name, V, F))
    return out


def load_meshes_json(load_path: str) -> Meshes:
    """Load meshes from a JSON file saved by save_meshes_json.

    Returns a list of (name, V, F), where V is float64[N,3], F is int64[M,3].
    """
    path = Path(load_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {load_path}")

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    return _meshes_from_payload(data)


# ---------------------------------------------------------------
# Result IO
# ---------------------------------------------------------------

def save_result_json(result: float, save_path: str, **meta: Any) -> str:
    """Save a view-factor result plus optional metadata (sources, params)."""
    payload: Dict[str, Any] = {"view_factor": float(result)}
    payload.update(meta)
    path = _prepare_path(save_path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, ensure_ascii=False, indent=2, sort_keys=True, default=str)
    return str(path.resolve())


def _prepare_path(save_path: str) -> Path:
    path = Path(save_path)
    if path.suffix.lower() == "":
        path = path.with_suffix(".json")
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    return path


__all__ = [
    "parse_stl",
    "load_facets",
    "save_meshes_json",
    "load_meshes_json",
    "save_result_json",
]
