"""In-process reference backend.

Collision: python-fcl narrow phase over the configured link geometries
(box, sphere, cylinder, triangle mesh loaded with trimesh).

Physics: semi-implicit Euler on generalized coordinates. Each DOF is an
independent unit with its configured inertia (joint `inertia`, object
`base_inertia`):

    a = clip(f / inertia, accel limits)
    v = clip(v + a * dt, velocity limits)
    q = clip(q + v * dt, position limits)   (velocity zeroed when clamped)

There is no gravity and no contact response; a controller returning None
applies zero force for that step.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import fcl
import numpy as np
import trimesh

from ..config_reader import GeometryConfig
from ..entities import ObjectRecord
from ..logging_utils import get_logger
from ..models import UNLIMITED, Contact
from ..utils import make_transform
from ..viewer import RecordingViewer
from ..world import World

logger = get_logger(__name__)

# (collision object, link-frame -> geometry-frame transform)
_Geom = Tuple["fcl.CollisionObject", np.ndarray]


def _load_mesh(filename: str, scale) -> Tuple[np.ndarray, np.ndarray]:
    if not Path(filename).is_file():
        raise ValueError(f"mesh file '{filename}' not found")
    loaded = trimesh.load(filename, force="mesh")
    if not isinstance(loaded, trimesh.Trimesh) or loaded.is_empty:
        raise ValueError(f"mesh '{filename}' has no triangles")
    v = np.asarray(loaded.vertices, dtype=np.float64) * np.asarray(scale, dtype=np.float64)[None, :]
    f = np.asarray(loaded.faces, dtype=np.int32)
    return v, f


def make_fcl_geometry(g: GeometryConfig):
    if g.type == "box":
        return fcl.Box(*g.size)
    if g.type == "sphere":
        return fcl.Sphere(g.radius)
    if g.type == "cylinder":
        return fcl.Cylinder(g.radius, g.length)
    v, f = _load_mesh(g.filename, g.scale)
    m = fcl.BVHModel()
    m.beginModel(v.shape[0], f.shape[0])
    m.addSubModel(v, f)
    m.endModel()
    return m


class ReferenceWorld(World):
    backend_name = "reference"

    def __init__(self, logger=None, timestep: float = 0.01, contact_limit: int = 4, physics: bool = True):
        super().__init__(logger=logger, timestep=timestep, contact_limit=contact_limit)
        self._physics = bool(physics)
        self._geoms: Dict[int, List[_Geom]] = {}
        self._dirty: Set[int] = set()
        self._bool_req = fcl.CollisionRequest()

    def supports_physics(self) -> bool:
        return self._physics

    # --- registry hooks ---
    def _on_object_added(self, obj_idx: int) -> None:
        rec = self._objects[obj_idx]
        for li in rec.links:
            lrec = self._links[li]
            geoms: List[_Geom] = []
            for g in lrec.geometries:
                tf = fcl.Transform(np.eye(3), np.zeros(3))
                geoms.append((fcl.CollisionObject(make_fcl_geometry(g), tf),
                              make_transform(g.origin_xyz, g.origin_rpy)))
            self._geoms[li] = geoms
        self._dirty.add(obj_idx)
        logger.debug("%s: built %d collision geometries",
                     rec.name, sum(len(self._geoms[li]) for li in rec.links))

    def _on_object_removed(self, rec: ObjectRecord) -> None:
        for li in rec.links:
            self._geoms.pop(li, None)
        self._dirty.discard(rec.index)

    def _on_world_cleared(self) -> None:
        self._geoms.clear()
        self._dirty.clear()

    def _on_object_state_changed(self, obj_idx: int) -> None:
        self._dirty.add(obj_idx)

    # --- collision ---
    def _prepare_collision(self) -> None:
        for obj_idx in list(self._dirty):
            rec = self._objects[obj_idx]
            if rec is None:
                continue
            for li in rec.links:
                T_link = self._link_transform(li)
                for obj, local in self._geoms.get(li, []):
                    T = T_link @ local
                    obj.setTransform(fcl.Transform(T[:3, :3], T[:3, 3]))
        self._dirty.clear()

    def _collide_links(self, la: int, lb: int, contacts: Optional[List[Contact]]) -> bool:
        hit = False
        for oa, _ in self._geoms.get(la, []):
            for ob, _ in self._geoms.get(lb, []):
                if contacts is None:
                    res = fcl.CollisionResult()
                    fcl.collide(oa, ob, self._bool_req, res)
                    if res.is_collision:
                        return True
                    continue
                req = fcl.CollisionRequest(num_max_contacts=self._contact_limit, enable_contact=True)
                res = fcl.CollisionResult()
                fcl.collide(oa, ob, req, res)
                if not res.is_collision:
                    continue
                hit = True
                found = False
                for c in res.contacts:
                    point = np.asarray(c.pos, dtype=np.float64)
                    normal = np.asarray(c.normal, dtype=np.float64)
                    if np.all(np.isfinite(point)) and np.all(np.isfinite(normal)):
                        contacts.append(self._make_contact(la, lb, point, normal, c.penetration_depth))
                        found = True
                if not found:
                    contacts.append(self._fallback_contact(la, lb, oa, ob))
        return hit

    def _fallback_contact(self, la: int, lb: int, oa, ob) -> Contact:
        # Degenerate narrow-phase output: report between the geometry centers
        pa = np.asarray(oa.getTranslation(), dtype=np.float64)
        pb = np.asarray(ob.getTranslation(), dtype=np.float64)
        d = pb - pa
        n = np.linalg.norm(d)
        normal = d / n if n > 1e-12 else np.array([0.0, 0.0, 1.0])
        return self._make_contact(la, lb, 0.5 * (pa + pb), normal, 0.0)

    # --- physics ---
    def _integrate(self, dt: float) -> None:
        for rec in self._live_objects():
            n = rec.num_dofs
            if n == 0:
                continue
            k = rec.num_base_dofs
            jrecs = [self._joints[ji] for ji in rec.joints]
            inertia = np.array([rec.base_inertia] * k + [j.inertia for j in jrecs])
            acc_lim = self._dof_limits(rec, jrecs, "acceleration_limits")
            vel_lim = self._dof_limits(rec, jrecs, "velocity_limits")
            pos_lim = self._dof_limits(rec, jrecs, "position_limits")

            q = rec.positions()
            v = rec.velocities.copy()
            a = np.clip(self._forces(rec) / inertia, acc_lim[:, 0], acc_lim[:, 1])
            v = np.clip(v + a * dt, vel_lim[:, 0], vel_lim[:, 1])
            moving = v != 0.0
            q_new = q + v * dt
            clamped = np.clip(q_new, pos_lim[:, 0], pos_lim[:, 1])
            hit_limit = moving & (clamped != q_new)
            q = np.where(moving, clamped, q)
            v[hit_limit] = 0.0

            rec.set_positions(np.arange(n), q)
            rec.velocities = v
            self._touch(rec.index)

    @staticmethod
    def _dof_limits(rec: ObjectRecord, jrecs, attr: str) -> np.ndarray:
        base = np.tile(UNLIMITED, (rec.num_base_dofs, 1))
        joints = np.array([getattr(j, attr) for j in jrecs]).reshape(-1, 2)
        return np.vstack([base, joints])

    def _create_viewer(self) -> RecordingViewer:
        return RecordingViewer()
