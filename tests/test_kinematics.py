import numpy as np

from simenv.kinematics import joint_motion
from simenv.models import JointType

from conftest import arm_config


def test_joint_motion():
    T = joint_motion(JointType.REVOLUTE, np.array([0.0, 0.0, 1.0]), np.pi / 2)
    assert np.allclose(T[:3, :3] @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    assert np.allclose(T[:3, 3], 0.0)

    T = joint_motion(JointType.PRISMATIC, np.array([1.0, 0.0, 0.0]), 0.25)
    assert np.allclose(T[:3, :3], np.eye(3))
    assert np.allclose(T[:3, 3], [0.25, 0.0, 0.0])


def test_link_transforms_follow_joint_positions(loaded_world):
    arm = loaded_world.get_robot("arm")
    link1 = arm.get_link("link1")
    link2 = arm.get_link("link2")

    assert np.allclose(arm.get_base_link().get_transform(), np.eye(4))
    assert np.allclose(link1.get_transform()[:3, 3], [0.0, 0.0, 0.1])
    assert np.allclose(link2.get_transform()[:3, 3], [0.0, 0.0, 0.6])

    arm.set_dof_positions([np.pi / 2, 0.2], [0, 1])
    T1 = link1.get_transform()
    assert np.allclose(T1[:3, 0], [0.0, 1.0, 0.0])
    assert np.allclose(link2.get_transform()[:3, 3], [0.0, 0.0, 0.8])
    assert np.allclose(arm.get_joint("j2").get_transform()[:3, 3], [0.0, 0.0, 0.6])


def test_link_transforms_follow_base_pose(world):
    with world.transaction() as txn:
        arm = world.add_object(txn, arm_config(base_dofs=["x", "y", "z", "rx", "ry", "rz"],
                                               position=(1.0, 2.0, 3.0)))
    assert np.allclose(arm.get_link("link2").get_transform()[:3, 3], [1.0, 2.0, 3.6])
    arm.set_dof_positions([np.pi], [3])  # roll
    assert np.allclose(arm.get_link("link2").get_transform()[:3, 3], [1.0, 2.0, 2.4])
