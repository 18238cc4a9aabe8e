import textwrap
from unittest.mock import Mock

import pytest

from simenv import backends
from simenv.backends.reference import ReferenceWorld
from simenv.config_reader import ObjectConfig, SceneConfig, WorldConfig


def box_object(name, size=(1.0, 1.0, 1.0), position=(0.0, 0.0, 0.0), base_dofs=None, robot=False):
    return ObjectConfig(
        name=name,
        robot=robot,
        base_dofs=base_dofs or [],
        position=position,
        links=[{"name": "body", "geometries": [{"type": "box", "size": size}]}],
    )


def arm_config(name="arm", base_dofs=None, position=(0.0, 0.0, 0.0)):
    """
    base --j1 (revolute z, +-1.5)--> link1 --j2 (prismatic z, [0, 0.3])--> link2

    base and link1 overlap near the joint; link2 is clear of both.
    """
    return ObjectConfig(
        name=name,
        robot=True,
        base_dofs=base_dofs or [],
        position=position,
        links=[
            {"name": "base", "geometries": [{"type": "box", "size": (0.2, 0.2, 0.2)}]},
            {"name": "link1", "geometries": [{"type": "box", "size": (0.1, 0.1, 0.5),
                                              "origin_xyz": (0.0, 0.0, 0.2)}]},
            {"name": "link2", "geometries": [{"type": "box", "size": (0.1, 0.1, 0.1),
                                              "origin_xyz": (0.0, 0.0, 0.05)}]},
        ],
        joints=[
            {"name": "j1", "type": "revolute", "parent": "base", "child": "link1",
             "origin_xyz": (0.0, 0.0, 0.1), "axis": (0.0, 0.0, 1.0), "position_limits": (-1.5, 1.5)},
            {"name": "j2", "type": "prismatic", "parent": "link1", "child": "link2",
             "origin_xyz": (0.0, 0.0, 0.5), "axis": (0.0, 0.0, 1.0), "position_limits": (0.0, 0.3)},
        ],
    )


def pendulum_config(name="pendulum", position=(-3.0, 0.0, 1.0)):
    """Static object with a single unlimited revolute joint."""
    return ObjectConfig(
        name=name,
        position=position,
        links=[
            {"name": "mount", "geometries": [{"type": "sphere", "radius": 0.05}]},
            {"name": "rod", "geometries": [{"type": "cylinder", "radius": 0.02, "length": 0.4,
                                            "origin_xyz": (0.0, 0.0, -0.2)}]},
        ],
        joints=[{"name": "hinge", "parent": "mount", "child": "rod", "axis": (1.0, 0.0, 0.0)}],
    )


@pytest.fixture
def logger():
    return Mock()


@pytest.fixture
def world(logger):
    w = ReferenceWorld(logger=logger)
    yield w
    w.close()


@pytest.fixture
def loaded_world(world):
    """Fixed arm robot at the origin, a free box far away, a static pendulum."""
    cfg = WorldConfig(
        scene=SceneConfig(dt=0.01, gravity=(0.0, 0.0, 0.0)),
        objects=[
            box_object("crate", size=(0.3, 0.3, 0.3), position=(5.0, 0.0, 0.0), base_dofs=["x", "y", "z", "rx", "ry", "rz"]),
            pendulum_config(),
        ],
        robots=[arm_config()],
    )
    with world.transaction() as txn:
        world.load_world(txn, cfg)
    return world


@pytest.fixture
def reset_backend(monkeypatch):
    monkeypatch.setattr(backends, "_active", None)
    yield
    monkeypatch.setattr(backends, "_active", None)


@pytest.fixture
def world_yaml(tmp_path):
    path = tmp_path / "world.yaml"
    path.write_text(textwrap.dedent(
        """
        scene:
          dt: 0.02
          gravity: [0.0, 0.0, 0.0]
        objects:
          - name: table
            position: [0.0, 0.0, 0.0]
            links:
              - name: top
                geometries:
                  - type: box
                    size: [1.0, 1.0, 0.1]
          - name: cup
            base_dofs: [x, y, z]
            position: [0.0, 0.0, 0.05]
            links:
              - name: body
                geometries:
                  - type: cylinder
                    radius: 0.05
                    length: 0.1
        robots:
          - name: slider
            links:
              - name: rail
              - name: carriage
                geometries:
                  - type: sphere
                    radius: 0.05
            joints:
              - name: slide
                type: prismatic
                parent: rail
                child: carriage
                axis: [1.0, 0.0, 0.0]
                origin_xyz: [3.0, 0.0, 1.0]
                position_limits: [-0.5, 0.5]
        """
    ))
    return path
