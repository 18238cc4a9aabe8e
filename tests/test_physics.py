import numpy as np
import pytest

from simenv.backends.reference import ReferenceWorld
from simenv.errors import DOFIndexError, PhysicsNotSupportedError

from conftest import arm_config


class RecordingController:
    """Returns a fixed output and remembers what it was called with."""

    def __init__(self, output=None):
        self.output = output
        self.calls = []

    def compute(self, positions, velocities, timestep, robot):
        self.calls.append((positions.copy(), velocities.copy(), timestep, robot))
        return self.output


def _step(world, steps):
    with world.transaction() as txn:
        world.step_physics(txn, steps)


def test_skip_controller_leaves_state_unchanged(loaded_world):
    """A controller that always skips applies zero force: nothing moves."""
    arm = loaded_world.get_robot("arm")
    arm.set_dof_positions([0.4, 0.1], [0, 1])
    controller = RecordingController(output=None)
    arm.set_controller(controller)
    before = loaded_world.get_world_state()

    _step(loaded_world, 25)

    after = loaded_world.get_world_state()
    for name in before:
        assert after[name].equals(before[name])
    assert len(controller.calls) == 25


def test_controller_called_once_per_step_with_copies(loaded_world):
    arm = loaded_world.get_robot("arm")
    calls = []

    def controller(positions, velocities, timestep, robot):
        calls.append(timestep)
        assert robot.get_num_dofs() == 2
        assert loaded_world.is_stepping()
        positions[:] = 99.0
        return None

    arm.set_controller(controller)
    _step(loaded_world, 3)
    assert calls == [0.01, 0.01, 0.01]
    assert np.allclose(arm.get_dof_positions([0, 1]), [0.0, 0.0])
    assert not loaded_world.is_stepping()


def test_controller_receives_read_only_robot(loaded_world):
    arm = loaded_world.get_robot("arm")
    controller = RecordingController()
    arm.set_controller(controller)
    _step(loaded_world, 1)
    view = controller.calls[0][3]
    with pytest.raises(AttributeError):
        view.set_dof_positions([1.0, 1.0])

    # entities reached through the view are read-only too
    j1 = view.get_joint(0)
    with pytest.raises(AttributeError):
        j1.set_position(1.0)
    with pytest.raises(AttributeError):
        view.get_joints()[1].set_velocity(1.0)
    with pytest.raises(AttributeError):
        j1.get_parent_link().get_object().set_controller(None)
    with pytest.raises(AttributeError):
        view.get_base_link().get_object().set_active_dofs([0])
    with pytest.raises(AttributeError):
        view.get_world()
    with pytest.raises(AttributeError):
        view.get_links()[1].get_world()

    assert j1 == arm.get_joint("j1")
    assert j1.get_object() == arm
    assert view.get_base_link() == arm.get_base_link()
    assert np.allclose(view.get_link("link2").get_transform(), arm.get_link("link2").get_transform())
    assert arm.get_controller() is controller


def test_controller_cannot_move_joints_through_the_view(loaded_world):
    arm = loaded_world.get_robot("arm")

    def meddling(q, v, dt, robot):
        robot.get_joint("j1").set_position(1.0)

    arm.set_controller(meddling)
    with pytest.raises(AttributeError):
        _step(loaded_world, 1)
    assert arm.get_joint("j1").get_position() == 0.0


def test_constant_torque_integrates(loaded_world):
    arm = loaded_world.get_robot("arm")
    arm.set_controller(lambda q, v, dt, robot: np.array([1.0, 0.0]))
    _step(loaded_world, 1)
    # semi-implicit Euler with unit inertia: v = f dt, q = v dt
    assert arm.get_dof_velocities([0])[0] == pytest.approx(0.01)
    assert arm.get_dof_positions([0])[0] == pytest.approx(0.0001)
    _step(loaded_world, 1)
    assert arm.get_dof_velocities([0])[0] == pytest.approx(0.02)
    assert arm.get_dof_positions([0])[0] == pytest.approx(0.0003)


def test_position_limit_clamps_and_stops(loaded_world):
    arm = loaded_world.get_robot("arm")
    arm.set_dof_positions([0.299], [1])
    arm.set_dof_velocities([1.0], [1])
    _step(loaded_world, 1)
    assert arm.get_dof_positions([1])[0] == pytest.approx(0.3)
    assert arm.get_dof_velocities([1])[0] == 0.0


def test_objects_without_controller_coast(loaded_world):
    crate = loaded_world.get_object("crate")
    crate.set_dof_velocities([1.0, 0.0, 0.0, 0.0, 0.0, 0.0], list(range(6)))
    _step(loaded_world, 10)
    assert crate.get_dof_positions([0])[0] == pytest.approx(5.1)
    assert crate.get_transform()[0, 3] == pytest.approx(5.1)


def test_controller_exception_aborts_batch(loaded_world):
    arm = loaded_world.get_robot("arm")
    calls = []

    def controller(q, v, dt, robot):
        calls.append(1)
        if len(calls) == 3:
            raise RuntimeError("controller failure")
        return np.array([1.0, 0.0])

    arm.set_controller(controller)
    with pytest.raises(RuntimeError, match="controller failure"):
        _step(loaded_world, 5)
    assert len(calls) == 3
    # two completed steps are kept
    assert arm.get_dof_velocities([0])[0] == pytest.approx(0.02)
    assert not loaded_world.is_stepping()


def test_wrong_force_length(loaded_world):
    arm = loaded_world.get_robot("arm")
    arm.set_controller(lambda q, v, dt, robot: np.zeros(3))
    with pytest.raises(DOFIndexError):
        _step(loaded_world, 1)


def test_physics_not_supported(logger):
    world = ReferenceWorld(logger=logger, physics=False)
    with world.transaction() as txn:
        world.add_object(txn, arm_config())
        assert world.supports_physics() is False
        with pytest.raises(PhysicsNotSupportedError):
            world.step_physics(txn, 1)


def test_step_count_validation(loaded_world):
    arm = loaded_world.get_robot("arm")
    controller = RecordingController()
    arm.set_controller(controller)
    with loaded_world.transaction() as txn:
        with pytest.raises(ValueError):
            loaded_world.step_physics(txn, -1)
        loaded_world.step_physics(txn, 0)
    assert controller.calls == []


def test_timestep(loaded_world):
    loaded_world.set_physics_timestep(0.005)
    assert loaded_world.get_physics_timestep() == 0.005
    with pytest.raises(ValueError):
        loaded_world.set_physics_timestep(0.0)
    controller = RecordingController()
    loaded_world.get_robot("arm").set_controller(controller)
    _step(loaded_world, 1)
    assert controller.calls[0][2] == 0.005


def test_gravity_follows_scene(logger, loaded_world):
    fresh = ReferenceWorld(logger=logger)
    try:
        assert np.allclose(fresh.get_gravity(), [0.0, 0.0, -9.81])
    finally:
        fresh.close()
    assert np.allclose(loaded_world.get_gravity(), [0.0, 0.0, 0.0])
    g = loaded_world.get_gravity()
    g[2] = -1.0
    assert loaded_world.get_gravity()[2] == 0.0
