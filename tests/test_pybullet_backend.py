import numpy as np
import pytest

pytest.importorskip("pybullet")

from simenv.backends.pybullet_backend import PybulletViewer, PybulletWorld
from simenv.config_reader import SceneConfig, WorldConfig

from conftest import arm_config, box_object, pendulum_config


@pytest.fixture
def pb_world(logger):
    w = PybulletWorld(logger=logger)
    cfg = WorldConfig(
        scene=SceneConfig(dt=0.01, gravity=(0.0, 0.0, 0.0)),
        objects=[
            box_object("crate", size=(0.3, 0.3, 0.3), position=(5.0, 0.0, 0.0),
                       base_dofs=["x", "y", "z", "rx", "ry", "rz"]),
            pendulum_config(),
        ],
        robots=[arm_config()],
    )
    with w.transaction() as txn:
        w.load_world(txn, cfg)
    yield w
    w.close()


def test_collision_queries(pb_world):
    arm = pb_world.get_robot("arm")
    crate = pb_world.get_object("crate")
    assert pb_world.check_collision(arm, crate) is False

    crate.set_dof_positions([0.0, 0.0, 0.3], [0, 1, 2])
    contacts = []
    assert pb_world.check_collision(arm, crate, contacts) is True
    assert contacts
    assert all(c.object_a is arm and c.object_b is crate for c in contacts)
    assert pb_world.check_collision(crate, arm) is True
    assert pb_world.check_collision(arm) is True


def test_zero_force_keeps_state(pb_world):
    before = pb_world.get_world_state()
    with pb_world.transaction() as txn:
        pb_world.step_physics(txn, 10)
    after = pb_world.get_world_state()
    for name in ("crate", "pendulum"):
        assert np.allclose(after[name].dof_positions, before[name].dof_positions, atol=1e-6)
        assert np.allclose(after[name].pose, before[name].pose, atol=1e-6)


def test_torque_moves_joint(pb_world):
    arm = pb_world.get_robot("arm")
    calls = []

    def controller(q, v, dt, robot):
        calls.append(dt)
        return np.array([1.0, 0.0])

    arm.set_controller(controller)
    with pb_world.transaction() as txn:
        pb_world.step_physics(txn, 10)
    assert len(calls) == 10
    assert arm.get_dof_velocities([0])[0] > 0.0
    assert arm.get_dof_positions([0])[0] > 0.0
    assert not np.allclose(arm.get_link("link1").get_transform()[:3, 0], [1.0, 0.0, 0.0])


def test_free_object_follows_record(pb_world):
    crate = pb_world.get_object("crate")
    crate.set_dof_velocities([1.0, 0.0, 0.0, 0.0, 0.0, 0.0], list(range(6)))
    with pb_world.transaction() as txn:
        pb_world.step_physics(txn, 10)
    assert crate.get_dof_positions([0])[0] == pytest.approx(5.1, abs=1e-3)


def test_partial_base_dofs_rejected(pb_world):
    with pb_world.transaction() as txn:
        with pytest.raises(ValueError, match="all six"):
            pb_world.add_object(txn, box_object("slider", base_dofs=["x"]))
        assert pb_world.get_object("slider") is None


def test_remove_and_viewer(pb_world):
    with pb_world.transaction() as txn:
        assert pb_world.remove_object(txn, "crate")
    assert pb_world.check_collision(pb_world.get_robot("arm")) is False
    viewer = pb_world.get_viewer()
    assert isinstance(viewer, PybulletViewer)
    viewer.draw_frame(np.eye(4), length=0.2)
    assert len(viewer) == 1
