import io
import json

import numpy as np
import pytest
import requests

import facetvf.io as fio
from conftest import write_ascii_stl, write_binary_stl
from facetvf.errors import GeometryError
from facetvf.geometry import Facets, TriangleBatch


def test_binary_stl_round_trip(tmp_path, squares):
    emitter, _ = squares
    path = write_binary_stl(tmp_path / "emitter.stl", emitter)
    facets = fio.load_facets(path)
    assert len(facets) == 2
    assert facets.announced == 2
    np.testing.assert_allclose(facets.vertices, emitter.vertices)
    np.testing.assert_allclose(facets.normals, emitter.normals, atol=1e-7)


def test_ascii_stl(tmp_path, squares):
    _, receiver = squares
    facets = fio.load_facets(write_ascii_stl(tmp_path / "receiver.stl", receiver))
    assert len(facets) == 2
    assert facets.announced is None
    np.testing.assert_allclose(facets.vertices, receiver.vertices)


def test_stl_from_bytes_and_file_object(tmp_path, squares):
    emitter, _ = squares
    path = write_binary_stl(tmp_path / "emitter.stl", emitter)
    with open(path, "rb") as fh:
        data = fh.read()
    assert len(fio.load_facets(data)) == 2
    assert len(fio.load_facets(io.BytesIO(data))) == 2
    with open(path, "rb") as fh:
        assert len(fio.load_facets(fh)) == 2


def test_truncated_binary_stl_fails(tmp_path, squares):
    emitter, _ = squares
    path = write_binary_stl(tmp_path / "short.stl", emitter, announced=3)
    with pytest.raises(GeometryError):
        fio.load_facets(path)


def test_empty_binary_stl(tmp_path):
    with open(tmp_path / "empty.stl", "wb") as fh:
        fh.write(b"\0" * 80 + b"\0\0\0\0")
    facets = fio.load_facets(str(tmp_path / "empty.stl"))
    assert len(facets) == 0
    assert TriangleBatch.from_facets(facets).count == 0


def test_missing_file_fails(tmp_path):
    with pytest.raises(GeometryError):
        fio.load_facets(str(tmp_path / "nope.stl"))


def test_json_meshes_are_concatenated(tmp_path):
    V = np.array([(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)], np.float64)
    F = np.array([[0, 1, 2], [0, 2, 3]])
    path = fio.save_meshes_json([("floor", V, F), ("roof", V + (0, 0, 3), F[:1])],
                                str(tmp_path / "scene.json"))
    meshes = fio.load_meshes_json(path)
    assert [m[0] for m in meshes] == ["floor", "roof"]
    np.testing.assert_allclose(meshes[1][1][:, 2], 3.0)

    facets = fio.load_facets(path)
    assert len(facets) == 3
    np.testing.assert_allclose(facets.normals, np.tile((0.0, 0.0, 1.0), (3, 1)))


def test_invalid_json_meshes_fail(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"meshes": [{"name": "x", "vertices": [[0, 0]], "faces": []}]}))
    with pytest.raises(GeometryError):
        fio.load_facets(str(bad))
    bad.write_text("{not json")
    with pytest.raises(GeometryError):
        fio.load_facets(str(bad))
    with pytest.raises(TypeError):
        fio.save_meshes_json([("", np.zeros((3, 3)), np.zeros((1, 3)))], str(tmp_path / "x"))


class _Response:
    def __init__(self, content):
        self.content = content

    def raise_for_status(self):
        pass


def test_mesh_from_url(monkeypatch, tmp_path, squares):
    emitter, _ = squares
    with open(write_binary_stl(tmp_path / "e.stl", emitter), "rb") as fh:
        data = fh.read()
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _Response(data)

    monkeypatch.setattr(fio.requests, "get", fake_get)
    facets = fio.load_facets("https://meshes.example.org/e.stl", timeout=3.0)
    assert len(facets) == 2
    assert calls == [("https://meshes.example.org/e.stl", 3.0)]


def test_download_failure_is_geometry_error(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(fio.requests, "get", fake_get)
    with pytest.raises(GeometryError):
        fio.load_facets("http://meshes.example.org/e.stl")


def test_save_result_json(tmp_path):
    path = fio.save_result_json(0.125, str(tmp_path / "out" / "result"),
                                sources=["a.stl", "b.stl"])
    assert path.endswith("result.json")
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    assert data == {"view_factor": 0.125, "sources": ["a.stl", "b.stl"]}


def test_stl_keeps_stored_normals(tmp_path, squares):
    emitter, _ = squares
    # stored normals that disagree with the +z winding
    stored = np.array([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)])
    odd = Facets.from_arrays(stored, emitter.vertices)
    for path in (write_binary_stl(tmp_path / "odd.stl", odd),
                 write_ascii_stl(tmp_path / "odd_ascii.stl", odd)):
        facets = fio.load_facets(path)
        np.testing.assert_allclose(facets.normals, stored)
        np.testing.assert_allclose(facets.vertices, emitter.vertices)
