import pytest

from simenv.main import build_parser, main


def test_parser_requires_world():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["info"])
    args = build_parser().parse_args(["step", "--world", "w.yaml", "--steps", "5", "--backend", "reference"])
    assert args.cmd == "step"
    assert args.steps == 5
    assert args.backend == "reference"


def test_info(world_yaml, capsys, reset_backend):
    assert main(["info", "--world", str(world_yaml)]) == 0
    out = capsys.readouterr().out
    assert "backend: reference (physics=yes)" in out
    assert "timestep: 0.02" in out
    assert "table: object links=1 joints=0 base_dofs=0 dofs=0" in out
    assert "slider: robot links=2 joints=1 base_dofs=0 dofs=1" in out


def test_step(world_yaml, capsys, reset_backend):
    assert main(["step", "--world", str(world_yaml), "--steps", "3"]) == 0
    out = capsys.readouterr().out
    assert "stepped 3 x 0.02s" in out
    assert "cup: q=[0.0, 0.0, 0.05]" in out
    assert "slider: q=[0.0]" in out


def test_collisions(world_yaml, capsys, reset_backend):
    assert main(["collisions", "--world", str(world_yaml), "--debug"]) == 0
    out = capsys.readouterr().out
    assert "table <-> cup:" in out
    assert "no collisions" not in out
