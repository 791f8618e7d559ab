import json
import logging
import math

import pytest

from conftest import facing_pair, write_binary_stl
from facetvf.cli import build_parser, main


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    log = logging.getLogger("facetvf")
    log.handlers.clear()
    log.propagate = True
    log.setLevel(logging.NOTSET)


@pytest.fixture
def stl_pair(tmp_path):
    emitter, receiver = facing_pair(2.0)
    return (write_binary_stl(tmp_path / "e.stl", emitter),
            write_binary_stl(tmp_path / "r.stl", receiver))


def test_direct_run_prints_result(tmp_path, capsys, stl_pair):
    log = tmp_path / "events.log"
    save = tmp_path / "result.json"
    code = main([*stl_pair, "--device", "cpu", "--event-log", str(log), "--save", str(save)])
    assert code == 0
    printed = capsys.readouterr().out.strip().splitlines()[-1]
    assert float(printed) == pytest.approx(0.25 / (4.0 * math.pi), rel=1e-12)
    assert "Initializing..." in log.read_text(encoding="utf-8")
    data = json.loads(save.read_text(encoding="utf-8"))
    assert data["view_factor"] == pytest.approx(float(printed))
    assert data["params"]["device"] == "cpu"


def test_direct_run_failure_exits_non_zero(tmp_path, stl_pair):
    code = main([stl_pair[0], str(tmp_path / "missing.stl"), "--device", "cpu",
                 "--event-log", ""])
    assert code == 1


def test_too_many_meshes(stl_pair):
    assert main([*stl_pair, *stl_pair, "--event-log", ""]) == 2


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.meshes == []
    assert args.device == "auto"
    assert args.event_log == "output.log"
    assert args.normalize is False
