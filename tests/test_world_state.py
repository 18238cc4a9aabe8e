import numpy as np
import pytest

from simenv.config_reader import ObjectConfig, SceneConfig, WorldConfig
from simenv.models import ObjectState, world_state_from_dict, world_state_to_dict

from conftest import box_object


def test_save_mutate_restore(loaded_world):
    arm = loaded_world.get_robot("arm")
    crate = loaded_world.get_object("crate")
    before = loaded_world.get_world_state()

    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
        arm.set_dof_positions([1.0, 0.25], [0, 1])
        arm.set_active_dofs([1])
        crate.set_dof_velocities([0.0, 0.0, 1.0, 0.0, 0.0, 0.0], list(range(6)))
        assert loaded_world.restore_state(txn) is True
        assert loaded_world.restore_state(txn) is False

    after = loaded_world.get_world_state()
    assert set(after) == set(before)
    for name in before:
        assert after[name].equals(before[name])
    assert arm.get_active_dofs().tolist() == [0, 1]


def test_stack_is_lifo(loaded_world):
    arm = loaded_world.get_robot("arm")
    with loaded_world.transaction() as txn:
        arm.set_dof_positions([0.1, 0.0], [0, 1])
        loaded_world.save_state(txn)
        arm.set_dof_positions([0.2, 0.0], [0, 1])
        loaded_world.save_state(txn)
        arm.set_dof_positions([0.3, 0.0], [0, 1])
        assert loaded_world.get_state_stack_depth() == 2

        assert loaded_world.restore_state(txn)
        assert arm.get_dof_positions([0])[0] == 0.2
        assert loaded_world.restore_state(txn)
        assert arm.get_dof_positions([0])[0] == 0.1
        assert not loaded_world.restore_state(txn)


def test_registry_mutation_clears_stack(loaded_world):
    arm = loaded_world.get_robot("arm")
    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
        loaded_world.add_object(txn, box_object("extra", position=(0.0, 9.0, 0.0)))
        assert loaded_world.restore_state(txn) is False

        loaded_world.save_state(txn)
        assert loaded_world.remove_object(txn, "extra")
        assert loaded_world.restore_state(txn) is False

        loaded_world.save_state(txn)
        arm.set_dof_positions([0.5], [0])
        loaded_world.load_world(txn, WorldConfig(robots=[box_object("arm")]))
        assert loaded_world.restore_state(txn) is False


def test_reload_from_file_discards_saved_state(loaded_world, world_yaml):
    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
        assert loaded_world.load_world(txn, world_yaml)
        assert loaded_world.restore_state(txn) is False
    assert loaded_world.get_physics_timestep() == 0.02
    assert loaded_world.get_object("table") is not None


def test_set_world_state_is_all_or_nothing(loaded_world, logger):
    arm = loaded_world.get_robot("arm")
    state = loaded_world.get_world_state()
    state["arm"].dof_positions = np.array([0.7, 0.1])
    state["ghost"] = state["crate"].copy()
    original = arm.get_dof_positions([0, 1])

    with loaded_world.transaction() as txn:
        assert loaded_world.set_world_state(txn, state) is False
    assert np.allclose(arm.get_dof_positions([0, 1]), original)
    logger.log_warn.assert_called()

    del state["ghost"]
    with loaded_world.transaction() as txn:
        assert loaded_world.set_world_state(txn, state) is True
    assert np.allclose(arm.get_dof_positions([0, 1]), [0.7, 0.1])


def test_set_world_state_rejects_mismatched_shapes(loaded_world):
    state = {"arm": ObjectState(np.zeros(5), np.zeros(5), np.eye(4), np.arange(5))}
    with loaded_world.transaction() as txn:
        assert loaded_world.set_world_state(txn, state) is False


def test_partial_world_state_applies_named_objects_only(loaded_world):
    crate = loaded_world.get_object("crate")
    pose_before = crate.get_transform()
    arm_state = loaded_world.get_robot("arm").get_state()
    arm_state.dof_positions = np.array([0.2, 0.2])
    with loaded_world.transaction() as txn:
        assert loaded_world.set_world_state(txn, {"arm": arm_state})
    assert np.allclose(crate.get_transform(), pose_before)


def test_world_state_dict_round_trip(loaded_world):
    state = loaded_world.get_world_state()
    restored = world_state_from_dict(world_state_to_dict(state))
    assert set(restored) == {"arm", "crate", "pendulum"}
    assert restored["crate"].equals(state["crate"])


def _broken_mesh(name, tmp_path):
    return ObjectConfig(
        name=name,
        links=[{"name": "body", "geometries": [{"type": "mesh", "filename": str(tmp_path / "missing.stl")}]}],
    )


def test_failed_add_leaves_no_trace(loaded_world, tmp_path):
    count = len(loaded_world.get_objects(exclude_robots=False))
    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
        with pytest.raises(ValueError, match="not found"):
            loaded_world.add_object(txn, _broken_mesh("ghost", tmp_path))
        assert loaded_world.get_object("ghost") is None
        assert loaded_world.get_link("ghost/body") is None
        assert loaded_world.get_state_stack_depth() == 0

        ghost = loaded_world.add_object(txn, box_object("ghost", position=(0.0, 9.0, 0.0)))
    assert ghost.get_link("body") is not None
    assert len(loaded_world.get_objects(exclude_robots=False)) == count + 1


def test_failed_load_keeps_previous_world(loaded_world, logger, tmp_path):
    arm = loaded_world.get_robot("arm")
    crate = loaded_world.get_object("crate")
    arm.set_dof_positions([0.4, 0.1], [0, 1])
    before = loaded_world.get_world_state()
    cfg = WorldConfig(
        scene=SceneConfig(dt=0.5),
        objects=[box_object("newcomer"), _broken_mesh("ghost", tmp_path)],
    )

    with loaded_world.transaction() as txn:
        loaded_world.save_state(txn)
        with pytest.raises(ValueError):
            loaded_world.load_world(txn, cfg)
        assert loaded_world.get_state_stack_depth() == 0
    logger.log_err.assert_called_once()

    assert loaded_world.get_physics_timestep() == 0.01
    assert loaded_world.get_object("newcomer") is None
    assert np.allclose(arm.get_dof_positions([0, 1]), [0.4, 0.1])
    after = loaded_world.get_world_state()
    assert set(after) == set(before)
    for name in before:
        assert after[name].equals(before[name])

    # collision geometry was rebuilt for the surviving objects
    assert loaded_world.check_collision(arm, crate) is False
    crate.set_dof_positions([0.0, 0.0, 0.3], [0, 1, 2])
    assert loaded_world.check_collision(arm, crate) is True


def test_state_without_active_dofs_keeps_active_set(loaded_world):
    arm = loaded_world.get_robot("arm")
    arm.set_active_dofs([1])
    full = arm.get_state()
    partial = ObjectState(np.array([0.3, 0.2]), full.dof_velocities, full.pose)
    assert partial.active_dofs is None

    arm.set_state(partial)
    assert arm.get_active_dofs().tolist() == [1]
    assert np.allclose(arm.get_dof_positions([0, 1]), [0.3, 0.2])

    data = world_state_to_dict({"arm": full})
    del data["arm"]["active_dofs"]
    with loaded_world.transaction() as txn:
        assert loaded_world.set_world_state(txn, world_state_from_dict(data))
    assert arm.get_active_dofs().tolist() == [1]
