"""PyBullet backend.

Runs a dedicated DIRECT client and mirrors the arena records into it: records
stay the source of truth between steps, every state change is pushed into
PyBullet, and after each stepSimulation the resulting state is pulled back.

Limitations:
- objects are either fixed (no base DOFs) or fully free (all six base DOFs)
- base angular velocity is exchanged with PyBullet as if the roll/pitch/yaw
  rates were world-frame angular velocity (exact only for small rotations)
- a controller returning None applies zero force; gravity comes from the scene
"""
from __future__ import annotations

import os
os.environ.setdefault("PYBULLET_SUPPRESS_URDF_WARNINGS", "1")
import tempfile
import warnings
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pybullet as p

from ..config_reader import ObjectConfig
from ..dofs import BASE_AXES
from ..entities import ObjectRecord
from ..logging_utils import get_logger
from ..models import Contact
from ..urdf_utils import write_urdf
from ..utils import (quat_wxyz_to_rotation_matrix, quat_wxyz_to_xyzw, quat_xyzw_to_wxyz,
                     rotation_matrix_to_quat_wxyz, transform_to_xyz_rpy)
from ..viewer import RecordingViewer
from ..world import World

# Suppress PyBullet warnings about missing inertial data
warnings.filterwarnings("ignore", category=UserWarning, module="pybullet")

logger = get_logger(__name__)


def _decode(name) -> str:
    return name.decode("utf-8") if isinstance(name, (bytes, bytearray)) else str(name)


def _pose_to_transform(pos, orn_xyzw) -> np.ndarray:
    T = np.eye(4)
    T[:3, :3] = quat_wxyz_to_rotation_matrix(quat_xyzw_to_wxyz(orn_xyzw))
    T[:3, 3] = np.asarray(pos, dtype=np.float64)
    return T


def _transform_to_pose(T: np.ndarray):
    return tuple(float(x) for x in T[:3, 3]), quat_wxyz_to_xyzw(rotation_matrix_to_quat_wxyz(T[:3, :3]))


class PybulletViewer(RecordingViewer):
    """Draws frames as three colored debug lines; also records them."""

    def __init__(self, client: int):
        super().__init__()
        self.client = client

    def draw_frame(self, transform: np.ndarray, length: float = 1.0, width: float = 0.1) -> None:
        super().draw_frame(transform, length, width)
        T = np.asarray(transform, dtype=np.float64)
        origin = T[:3, 3]
        for axis, color in zip(range(3), ([1, 0, 0], [0, 1, 0], [0, 0, 1])):
            tip = origin + length * T[:3, axis]
            p.addUserDebugLine(origin.tolist(), tip.tolist(), lineColorRGB=color,
                               lineWidth=max(1.0, width * 10.0), physicsClientId=self.client)


class PybulletWorld(World):
    backend_name = "pybullet"

    def __init__(self, logger=None, timestep: float = 0.01, contact_limit: int = 4):
        super().__init__(logger=logger, timestep=timestep, contact_limit=contact_limit)
        self.client: Optional[int] = p.connect(p.DIRECT)
        p.setTimeStep(self._timestep, physicsClientId=self.client)
        self._tmpdir = tempfile.TemporaryDirectory(prefix="simenv_pb_")
        self._bodies: Dict[int, int] = {}             # object idx -> body id
        self._pb_joints: Dict[int, int] = {}          # joint idx -> pybullet joint index
        self._pb_links: Dict[int, List[int]] = {}     # link idx -> pybullet link indices (-1 = base)
        self._inertial: Dict[int, np.ndarray] = {}    # object idx -> base link frame -> base inertial frame
        self._pulling = False

    def supports_physics(self) -> bool:
        return True

    def set_physics_timestep(self, dt: float) -> None:
        super().set_physics_timestep(dt)
        p.setTimeStep(self._timestep, physicsClientId=self.client)

    # --- registry hooks ---
    def _check_object_config(self, cfg: ObjectConfig) -> None:
        if cfg.base_dofs and sorted(cfg.base_dofs) != sorted(BASE_AXES):
            raise ValueError(
                f"object '{cfg.name}': the pybullet backend supports no base DOFs or all six, got {cfg.base_dofs}"
            )

    def _on_object_added(self, obj_idx: int) -> None:
        rec = self._objects[obj_idx]
        cfg = rec.config
        if cfg.urdf and Path(cfg.urdf).exists():
            urdf_path = cfg.urdf
        else:
            urdf_path = str(write_urdf(cfg, Path(self._tmpdir.name) / f"{obj_idx}_{rec.name}.urdf"))
        pos, orn = _transform_to_pose(rec.pose())
        body = p.loadURDF(
            urdf_path,
            basePosition=pos,
            baseOrientation=orn,
            useFixedBase=rec.num_base_dofs == 0,
            physicsClientId=self.client,
        )
        self._bodies[obj_idx] = body

        base_name = _decode(p.getBodyInfo(body, physicsClientId=self.client)[0])
        link_index = {base_name: -1}
        joint_index = {}
        for j in range(p.getNumJoints(body, physicsClientId=self.client)):
            info = p.getJointInfo(body, j, physicsClientId=self.client)
            joint_index[_decode(info[1])] = j
            link_index[_decode(info[12])] = j

        aliases_by_target: Dict[int, List[str]] = {}
        for alias, target in rec.link_aliases.items():
            aliases_by_target.setdefault(target, []).append(alias)
        for li in rec.links:
            lrec = self._links[li]
            names = [lrec.local_name] + aliases_by_target.get(li, [])
            self._pb_links[li] = [link_index[n] for n in names if n in link_index]
        movable = []
        for ji in rec.joints:
            jrec = self._joints[ji]
            if jrec.local_name not in joint_index:
                raise ValueError(f"object '{rec.name}': joint '{jrec.local_name}' missing in loaded URDF")
            self._pb_joints[ji] = joint_index[jrec.local_name]
            movable.append(joint_index[jrec.local_name])

        # Free-spinning joints: torques come only from controllers
        if movable:
            p.setJointMotorControlArray(body, movable, p.VELOCITY_CONTROL, forces=[0.0] * len(movable),
                                        physicsClientId=self.client)
        dyn = p.getDynamicsInfo(body, -1, physicsClientId=self.client)
        self._inertial[obj_idx] = _pose_to_transform(dyn[3], dyn[4])
        self._push(obj_idx)
        logger.debug("%s: loaded body %d with %d joints", rec.name, body, len(movable))

    def _on_object_removed(self, rec: ObjectRecord) -> None:
        body = self._bodies.pop(rec.index, None)
        if body is not None:
            p.removeBody(body, physicsClientId=self.client)
        for li in rec.links:
            self._pb_links.pop(li, None)
        for ji in rec.joints:
            self._pb_joints.pop(ji, None)
        self._inertial.pop(rec.index, None)

    def _on_world_cleared(self) -> None:
        if self.client is not None:
            p.resetSimulation(physicsClientId=self.client)
            p.setTimeStep(self._timestep, physicsClientId=self.client)
        self._bodies.clear()
        self._pb_joints.clear()
        self._pb_links.clear()
        self._inertial.clear()

    def _on_object_state_changed(self, obj_idx: int) -> None:
        if not self._pulling and obj_idx in self._bodies:
            self._push(obj_idx)

    # --- record <-> pybullet ---
    def _push(self, obj_idx: int) -> None:
        rec = self._objects[obj_idx]
        body = self._bodies[obj_idx]
        # PyBullet positions the base by its inertial frame
        pos, orn = _transform_to_pose(rec.pose() @ self._inertial[obj_idx])
        p.resetBasePositionAndOrientation(body, pos, orn, physicsClientId=self.client)
        k = rec.num_base_dofs
        if k == 6:
            v = rec.velocities
            p.resetBaseVelocity(body, linearVelocity=v[:3].tolist(), angularVelocity=v[3:6].tolist(),
                                physicsClientId=self.client)
        for ji in rec.joints:
            jrec = self._joints[ji]
            p.resetJointState(body, self._pb_joints[ji],
                              targetValue=float(rec.joint_positions[jrec.joint_index]),
                              targetVelocity=float(rec.velocities[k + jrec.joint_index]),
                              physicsClientId=self.client)

    def _pull(self, obj_idx: int) -> None:
        rec = self._objects[obj_idx]
        body = self._bodies[obj_idx]
        k = rec.num_base_dofs
        if k == 6:
            pos, orn = p.getBasePositionAndOrientation(body, physicsClientId=self.client)
            T_com = _pose_to_transform(pos, orn)
            T_link = T_com @ np.linalg.inv(self._inertial[obj_idx])
            rec.pose_params = transform_to_xyz_rpy(T_link)
            lin, ang = p.getBaseVelocity(body, physicsClientId=self.client)
            rec.velocities[:3] = lin
            rec.velocities[3:6] = ang
        for ji in rec.joints:
            jrec = self._joints[ji]
            q, v = p.getJointState(body, self._pb_joints[ji], physicsClientId=self.client)[:2]
            rec.joint_positions[jrec.joint_index] = q
            rec.velocities[k + jrec.joint_index] = v
        self._touch(obj_idx)

    # --- collision ---
    def _collide_links(self, la: int, lb: int, contacts: Optional[List[Contact]]) -> bool:
        body_a = self._bodies[self._links[la].object_index]
        body_b = self._bodies[self._links[lb].object_index]
        hit = False
        for lia in self._pb_links.get(la, []):
            for lib in self._pb_links.get(lb, []):
                pts = p.getClosestPoints(body_a, body_b, distance=0.0, linkIndexA=lia, linkIndexB=lib,
                                         physicsClientId=self.client)
                found = 0
                for pt in pts:
                    if pt[8] > 0.0:
                        continue
                    if contacts is None:
                        return True
                    hit = True
                    if found >= self._contact_limit:
                        break
                    # contactNormalOnB points from B to A
                    point = 0.5 * (np.asarray(pt[5]) + np.asarray(pt[6]))
                    contacts.append(self._make_contact(la, lb, point, -np.asarray(pt[7]), -pt[8]))
                    found += 1
        return hit

    # --- physics ---
    def _integrate(self, dt: float) -> None:
        p.setGravity(*self._gravity.tolist(), physicsClientId=self.client)
        for rec in self._live_objects():
            body = self._bodies[rec.index]
            forces = self._forces(rec)
            k = rec.num_base_dofs
            if k == 6:
                pos, _ = p.getBasePositionAndOrientation(body, physicsClientId=self.client)
                p.applyExternalForce(body, -1, forces[:3].tolist(), pos, p.WORLD_FRAME,
                                     physicsClientId=self.client)
                p.applyExternalTorque(body, -1, forces[3:6].tolist(), p.WORLD_FRAME,
                                      physicsClientId=self.client)
            if rec.joints:
                p.setJointMotorControlArray(body, [self._pb_joints[ji] for ji in rec.joints], p.TORQUE_CONTROL,
                                            forces=forces[k:].tolist(), physicsClientId=self.client)
        p.stepSimulation(physicsClientId=self.client)
        self._pulling = True
        try:
            for rec in self._live_objects():
                self._pull(rec.index)
        finally:
            self._pulling = False

    def _create_viewer(self) -> PybulletViewer:
        return PybulletViewer(self.client)

    def _shutdown(self) -> None:
        """Disconnect the dedicated PyBullet client."""
        try:
            if self.client is not None:
                p.disconnect(self.client)
        finally:
            self.client = None
            self._tmpdir.cleanup()
