"""Backend-agnostic World.

The World owns the entity arenas and implements every contract a planner
relies on: name registry, transactions, the state stack, world state get/set,
collision-query composition and the physics stepping state machine. Backends
subclass it and only provide primitives (pairwise link collision, one
integration step, a viewer) plus hooks that keep their own simulation in sync
with the records.
"""
from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .config_reader import ObjectConfig, WorldConfig
from .dofs import base_axis_ids
from .entities import (JOINTS, LINKS, OBJECTS, Joint, JointRecord, Link, LinkRecord,
                       Object, ObjectRecord, Robot, as_object_handle, build_records,
                       validate_object_state)
from .errors import (DOFIndexError, DuplicateNameError, PhysicsNotSupportedError,
                     PreconditionError, StaleEntityError, TransactionError)
from .interfaces import Logger, WorldViewer
from .kinematics import forward_kinematics, joint_adjacent_links
from .logging_utils import SimLogger
from .models import Contact, WorldState, copy_world_state
from .utils import transform_to_xyz_rpy

Entity = Union[Object, Robot, Link]


class Transaction:
    """
    Proof that the caller holds the world's lock.

    Obtained from `World.transaction()`; valid only inside that `with` block
    and only on the thread that opened it.
    """

    __slots__ = ("_world_ref", "thread_id", "active")

    def __init__(self, world: "World"):
        self._world_ref = weakref.ref(world)
        self.thread_id = threading.get_ident()
        self.active = True

    @property
    def world(self) -> Optional["World"]:
        return self._world_ref()

    def __repr__(self) -> str:
        return f"Transaction(active={self.active}, thread={self.thread_id})"


class World:
    backend_name = "base"

    def __init__(self, logger: Optional[Logger] = None, timestep: float = 0.01, contact_limit: int = 4):
        self._logger: Logger = logger if logger is not None else SimLogger(name=f"simenv.{self.backend_name}")
        self._lock = threading.RLock()
        self._txn: Optional[Transaction] = None
        self._generation = 0
        self._objects: List[Optional[ObjectRecord]] = []
        self._links: List[Optional[LinkRecord]] = []
        self._joints: List[Optional[JointRecord]] = []
        self._object_names: Dict[str, int] = {}
        self._link_names: Dict[str, int] = {}
        self._joint_names: Dict[str, int] = {}
        self._handles: Dict[Tuple[str, int], object] = {}
        self._fk_cache: Dict[int, Dict[int, np.ndarray]] = {}
        self._state_stack: List[WorldState] = []
        self._timestep = float(timestep)
        self._gravity = np.array([0.0, 0.0, -9.81])
        self._contact_limit = int(contact_limit)
        self._viewer: Optional[WorldViewer] = None
        self._stepping = False

    # ------------------------------------------------------------------
    # backend hooks
    # ------------------------------------------------------------------
    def supports_physics(self) -> bool:
        return False

    def _check_object_config(self, cfg: ObjectConfig) -> None:
        """Reject objects the backend cannot represent (raise ValueError)."""

    def _on_object_added(self, obj_idx: int) -> None:
        pass

    def _on_object_removed(self, rec: ObjectRecord) -> None:
        pass

    def _on_world_cleared(self) -> None:
        pass

    def _on_object_state_changed(self, obj_idx: int) -> None:
        pass

    def _prepare_collision(self) -> None:
        pass

    def _collide_links(self, la: int, lb: int, contacts: Optional[List[Contact]]) -> bool:
        """
        Narrow phase for one link pair. Append Contact records (link la as side
        a) when `contacts` is a list; return whether the links intersect.
        """
        raise NotImplementedError

    def _integrate(self, dt: float) -> None:
        raise PhysicsNotSupportedError(f"backend '{self.backend_name}' has no physics")

    def _create_viewer(self) -> WorldViewer:
        raise NotImplementedError

    def _shutdown(self) -> None:
        pass

    # ------------------------------------------------------------------
    # transactions
    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Hold the world lock for a multi-step mutating sequence.

            with world.transaction() as txn:
                world.set_world_state(txn, state)
                world.step_physics(txn, 10)

        Re-entrant: a nested call on the same thread yields the open handle.
        """
        with self._lock:
            if self._txn is not None and self._txn.active:
                yield self._txn
                return
            txn = Transaction(self)
            self._txn = txn
            try:
                yield txn
            finally:
                txn.active = False
                self._txn = None

    def _require_txn(self, txn: Optional[Transaction], op: str) -> None:
        if not isinstance(txn, Transaction):
            raise TransactionError(f"{op} requires a transaction from World.transaction()")
        if txn.world is not self:
            raise TransactionError(f"{op}: transaction belongs to another world")
        if not txn.active or txn is not self._txn:
            raise TransactionError(f"{op}: transaction is closed")
        if txn.thread_id != threading.get_ident():
            raise TransactionError(f"{op}: transaction is held by another thread")

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def get_logger(self) -> Logger:
        return self._logger

    def get_physics_timestep(self) -> float:
        return self._timestep

    def set_physics_timestep(self, dt: float) -> None:
        dt = float(dt)
        if not dt > 0.0:
            raise ValueError(f"physics timestep must be positive, got {dt}")
        self._timestep = dt

    def get_gravity(self) -> np.ndarray:
        return self._gravity.copy()

    def get_viewer(self) -> WorldViewer:
        with self._lock:
            if self._viewer is None:
                self._viewer = self._create_viewer()
                self._logger.log_debug(f"created viewer {type(self._viewer).__name__}", self.backend_name)
            return self._viewer

    def close(self) -> None:
        with self._lock:
            self._shutdown()

    # ------------------------------------------------------------------
    # loading / registry mutation
    # ------------------------------------------------------------------
    def load_world(self, txn: Transaction, source: Union[str, Path, WorldConfig]) -> bool:
        """Replace the whole registry with the contents of a world file (or config)."""
        self._require_txn(txn, "load_world")
        config = source if isinstance(source, WorldConfig) else WorldConfig.from_yaml(source)
        return self.load_config(txn, config)

    def load_config(self, txn: Transaction, config: WorldConfig) -> bool:
        """
        Replace the registry with `config`. If any object fails to load, the
        previous world (records, handles and backend state) is reinstated and
        the error propagates.
        """
        self._require_txn(txn, "load_config")
        objects = [self._expand_config(o) for o in config.all_objects()]
        for o in objects:
            self._check_object_config(o)
        previous = self._snapshot_registry()
        try:
            self._clear_registry()
            self._timestep = float(config.scene.dt)
            self._gravity = np.asarray(config.scene.gravity, dtype=np.float64)
            self._contact_limit = int(config.scene.contact_limit)
            for o in objects:
                self._register(o)
        except Exception:
            self._restore_registry(previous)
            self._logger.log_err(f"world load failed; kept the previous {len(self._object_names)} objects",
                                 self.backend_name)
            raise
        finally:
            self._clear_state_stack("world reloaded")
        self._logger.log_info(
            f"loaded world: {len(config.objects)} objects, {len(config.robots)} robots, dt={self._timestep}",
            self.backend_name,
        )
        return True

    def add_object(self, txn: Transaction, config: Union[ObjectConfig, dict]) -> Union[Object, Robot]:
        self._require_txn(txn, "add_object")
        cfg = config if isinstance(config, ObjectConfig) else ObjectConfig(**config)
        cfg = self._expand_config(cfg)
        if cfg.name in self._object_names:
            raise DuplicateNameError(f"an object named '{cfg.name}' already exists")
        self._check_object_config(cfg)
        try:
            idx = self._register(cfg)
        finally:
            self._clear_state_stack("object added")
        self._logger.log_debug(f"added {'robot' if cfg.robot else 'object'} '{cfg.name}'", self.backend_name)
        return self._object_handle(idx)

    def remove_object(self, txn: Transaction, key: Union[str, Object, Robot]) -> bool:
        self._require_txn(txn, "remove_object")
        handle = as_object_handle(key)
        if handle is not None:
            rec = handle._lookup()
        else:
            idx = self._object_names.get(key)
            rec = self._objects[idx] if idx is not None else None
        if rec is None:
            return False
        self._drop_record(rec)
        self._clear_state_stack("object removed")
        self._logger.log_debug(f"removed object '{rec.name}'", self.backend_name)
        return True

    def _drop_record(self, rec: ObjectRecord) -> None:
        for li in rec.links:
            self._link_names.pop(self._links[li].name, None)
            self._links[li] = None
            self._handles.pop((LINKS, li), None)
        for ji in rec.joints:
            self._joint_names.pop(self._joints[ji].name, None)
            self._joints[ji] = None
            self._handles.pop((JOINTS, ji), None)
        self._object_names.pop(rec.name, None)
        self._objects[rec.index] = None
        self._handles.pop((OBJECTS, rec.index), None)
        self._fk_cache.pop(rec.index, None)
        self._on_object_removed(rec)

    def _expand_config(self, cfg: ObjectConfig) -> ObjectConfig:
        if cfg.urdf and not cfg.links:
            from .urdf_utils import object_config_from_urdf

            expanded = object_config_from_urdf(cfg.urdf, name=cfg.name)
            update = {k: getattr(cfg, k) for k in ("robot", "base_dofs", "position", "rpy", "base_inertia")}
            if cfg.base_link is not None:
                update["base_link"] = cfg.base_link
            cfg = expanded.model_copy(update=update)
        return cfg

    def _register(self, cfg: ObjectConfig) -> int:
        """Append the object's records and build its backend state; undone if the backend refuses it."""
        idx = len(self._objects)
        first_link, first_joint = len(self._links), len(self._joints)
        obj, links, joints = build_records(idx, cfg, first_link, first_joint, base_axis_ids(cfg.base_dofs))
        self._objects.append(obj)
        self._links.extend(links)
        self._joints.extend(joints)
        self._object_names[obj.name] = idx
        for l in links:
            self._link_names[l.name] = l.index
        for j in joints:
            self._joint_names[j.name] = j.index
        try:
            self._on_object_added(idx)
        except Exception:
            self._drop_record(obj)
            # No handle to these slots has been given out yet
            del self._objects[idx:]
            del self._links[first_link:]
            del self._joints[first_joint:]
            raise
        return idx

    def _snapshot_registry(self) -> dict:
        return {
            "generation": self._generation,
            "objects": list(self._objects),
            "links": list(self._links),
            "joints": list(self._joints),
            "object_names": dict(self._object_names),
            "link_names": dict(self._link_names),
            "joint_names": dict(self._joint_names),
            "handles": dict(self._handles),
            "scene": (self._timestep, self._gravity, self._contact_limit),
        }

    def _restore_registry(self, snap: dict) -> None:
        """Reinstate a registry snapshot and rebuild the backend state for it."""
        self._timestep, self._gravity, self._contact_limit = snap["scene"]
        self._on_world_cleared()
        self._generation = snap["generation"]
        self._objects[:] = snap["objects"]
        self._links[:] = snap["links"]
        self._joints[:] = snap["joints"]
        for attr in ("object_names", "link_names", "joint_names", "handles"):
            table = getattr(self, f"_{attr}")
            table.clear()
            table.update(snap[attr])
        self._fk_cache.clear()
        for rec in self._live_objects():
            self._on_object_added(rec.index)

    def _clear_registry(self) -> None:
        self._generation += 1
        self._objects.clear()
        self._links.clear()
        self._joints.clear()
        self._object_names.clear()
        self._link_names.clear()
        self._joint_names.clear()
        self._handles.clear()
        self._fk_cache.clear()
        self._on_world_cleared()

    def _rename_entity(self, arena: str, index: int, new_name: str) -> None:
        """
        Protected rename used by backend implementations.

        Objects take a plain name; links and joints take a local name and are
        re-qualified with their object's name.
        """
        with self._lock:
            rec = self._arena_lookup(arena, index, self._generation)
            if rec is None:
                raise StaleEntityError(f"cannot rename missing {arena[:-1]} #{index}")
            if arena == OBJECTS:
                if new_name != rec.name and new_name in self._object_names:
                    raise DuplicateNameError(f"an object named '{new_name}' already exists")
                del self._object_names[rec.name]
                rec.name = new_name
                self._object_names[new_name] = index
                for li in rec.links:
                    self._requalify(self._links[li], self._link_names, new_name)
                for ji in rec.joints:
                    self._requalify(self._joints[ji], self._joint_names, new_name)
            else:
                names = self._link_names if arena == LINKS else self._joint_names
                owner = self._objects[rec.object_index].name
                qualified = f"{owner}/{new_name}"
                if qualified != rec.name and qualified in names:
                    raise DuplicateNameError(f"'{qualified}' already exists")
                del names[rec.name]
                rec.local_name = new_name
                rec.name = qualified
                names[qualified] = index
            self._clear_state_stack("entity renamed")

    @staticmethod
    def _requalify(rec, names: Dict[str, int], owner: str) -> None:
        del names[rec.name]
        rec.name = f"{owner}/{rec.local_name}"
        names[rec.name] = rec.index

    # ------------------------------------------------------------------
    # arena access and handles
    # ------------------------------------------------------------------
    def _arena_lookup(self, arena: str, index: int, generation: int):
        if generation != self._generation:
            return None
        records = getattr(self, f"_{arena}")
        if 0 <= index < len(records):
            return records[index]
        return None

    def _object_handle(self, idx: int) -> Optional[Union[Object, Robot]]:
        rec = self._arena_lookup(OBJECTS, idx, self._generation)
        if rec is None:
            return None
        key = (OBJECTS, idx)
        handle = self._handles.get(key)
        if handle is None:
            obj = Object(self, idx)
            handle = Robot(obj) if rec.is_robot else obj
            self._handles[key] = handle
        return handle

    def _link_handle(self, idx: int) -> Optional[Link]:
        if self._arena_lookup(LINKS, idx, self._generation) is None:
            return None
        return self._handles.setdefault((LINKS, idx), Link(self, idx))

    def _joint_handle(self, idx: int) -> Optional[Joint]:
        if self._arena_lookup(JOINTS, idx, self._generation) is None:
            return None
        return self._handles.setdefault((JOINTS, idx), Joint(self, idx))

    def _live_objects(self) -> List[ObjectRecord]:
        return [o for o in self._objects if o is not None]

    def _touch(self, obj_idx: int) -> None:
        """Called after any change to an object's positions, velocities or pose."""
        self._fk_cache.pop(obj_idx, None)
        self._on_object_state_changed(obj_idx)

    def _link_transform(self, link_idx: int) -> np.ndarray:
        lrec = self._links[link_idx]
        obj_idx = lrec.object_index
        poses = self._fk_cache.get(obj_idx)
        if poses is None:
            rec = self._objects[obj_idx]
            poses = forward_kinematics(
                rec.pose(),
                rec.base_link,
                {i: self._links[i] for i in rec.links},
                {i: self._joints[i] for i in rec.joints},
                rec.joint_positions,
            )
            self._fk_cache[obj_idx] = poses
        return poses[link_idx].copy()

    # ------------------------------------------------------------------
    # lookups (None when absent)
    # ------------------------------------------------------------------
    def get_objects(self, exclude_robots: bool = True) -> List[Union[Object, Robot]]:
        return [self._object_handle(o.index) for o in self._live_objects()
                if not (exclude_robots and o.is_robot)]

    def get_robots(self) -> List[Robot]:
        return [self._object_handle(o.index) for o in self._live_objects() if o.is_robot]

    def get_object(self, key: Union[str, int], exclude_robot: bool = True) -> Optional[Union[Object, Robot]]:
        """
        Look up an object by name or by position in `get_objects(exclude_robot)`.
        Robots are skipped unless exclude_robot is False.
        """
        if isinstance(key, str):
            idx = self._object_names.get(key)
            if idx is None or (exclude_robot and self._objects[idx].is_robot):
                return None
            return self._object_handle(idx)
        objects = self.get_objects(exclude_robots=exclude_robot)
        return objects[key] if 0 <= key < len(objects) else None

    def get_robot(self, key: Union[str, int]) -> Optional[Robot]:
        if isinstance(key, str):
            idx = self._object_names.get(key)
            if idx is None or not self._objects[idx].is_robot:
                return None
            return self._object_handle(idx)
        robots = self.get_robots()
        return robots[key] if 0 <= key < len(robots) else None

    def get_links(self) -> List[Link]:
        return [self._link_handle(l.index) for l in self._links if l is not None]

    def get_joints(self) -> List[Joint]:
        return [self._joint_handle(j.index) for j in self._joints if j is not None]

    def get_link(self, key: Union[str, int]) -> Optional[Link]:
        """Look up a link by qualified name ("object/link") or by position in get_links()."""
        if isinstance(key, str):
            idx = self._link_names.get(key)
            return self._link_handle(idx) if idx is not None else None
        links = self.get_links()
        return links[key] if 0 <= key < len(links) else None

    def get_joint(self, key: Union[str, int]) -> Optional[Joint]:
        """Look up a joint by qualified name ("object/joint") or by position in get_joints()."""
        if isinstance(key, str):
            idx = self._joint_names.get(key)
            return self._joint_handle(idx) if idx is not None else None
        joints = self.get_joints()
        return joints[key] if 0 <= key < len(joints) else None

    # ------------------------------------------------------------------
    # world state and the state stack
    # ------------------------------------------------------------------
    def get_world_state(self) -> WorldState:
        with self._lock:
            return {o.name: self._object_handle(o.index).get_state() for o in self._live_objects()}

    def set_world_state(self, txn: Transaction, state: WorldState) -> bool:
        """
        Apply a WorldState. All-or-nothing: if any name is unknown or any
        snapshot does not fit its object, nothing is changed and False is
        returned.
        """
        self._require_txn(txn, "set_world_state")
        return self._apply_world_state(state)

    def _apply_world_state(self, state: WorldState) -> bool:
        records = []
        for name, obj_state in state.items():
            idx = self._object_names.get(name)
            if idx is None:
                self._logger.log_warn(f"set_world_state: no object named '{name}'", self.backend_name)
                return False
            try:
                validate_object_state(self._objects[idx], obj_state)
            except PreconditionError as e:
                self._logger.log_warn(f"set_world_state: {e}", self.backend_name)
                return False
            records.append(idx)
        for idx, obj_state in zip(records, state.values()):
            self._object_handle(idx).set_state(obj_state)
        return True

    def save_state(self, txn: Transaction) -> None:
        self._require_txn(txn, "save_state")
        self._state_stack.append(copy_world_state(self.get_world_state()))

    def restore_state(self, txn: Transaction) -> bool:
        """Pop the last saved state and apply it. False when the stack is empty."""
        self._require_txn(txn, "restore_state")
        if not self._state_stack:
            return False
        return self._apply_world_state(self._state_stack.pop())

    def get_state_stack_depth(self) -> int:
        return len(self._state_stack)

    def _clear_state_stack(self, reason: str) -> None:
        if self._state_stack:
            self._logger.log_debug(f"cleared {len(self._state_stack)} saved states ({reason})", self.backend_name)
        self._state_stack.clear()

    # ------------------------------------------------------------------
    # collision queries
    # ------------------------------------------------------------------
    def _resolve_entity(self, entity) -> Tuple[str, int]:
        obj = as_object_handle(entity)
        if obj is not None:
            rec = obj._record()
            return OBJECTS, rec.index
        if isinstance(entity, Link):
            return LINKS, entity._record().index
        raise TypeError(f"cannot check collision for {type(entity).__name__}")

    def _entity_links(self, kind: str, idx: int) -> List[int]:
        links = self._objects[idx].links if kind == OBJECTS else [idx]
        return [li for li in links if self._links[li].collidable and self._links[li].geometries]

    def _owner(self, li: int) -> int:
        return self._links[li].object_index

    def _candidate_pairs(self, a, b) -> List[Tuple[int, int]]:
        a_kind, a_idx = self._resolve_entity(a)
        a_links = self._entity_links(a_kind, a_idx)

        if b is None:
            if a_kind == OBJECTS:
                b_links = [l.index for l in self._links
                           if l is not None and l.object_index != a_idx]
            else:
                adjacent = joint_adjacent_links(self._links_of(self._owner(a_idx)),
                                                self._joints_of(self._owner(a_idx)), a_idx)
                b_links = [l.index for l in self._links
                           if l is not None and l.index != a_idx and l.index not in adjacent]
            collidable = self._collidable_set()
            b_sides = [(None, [li for li in b_links if li in collidable])]
        else:
            items = b if isinstance(b, (list, tuple)) else [b]
            b_sides = []
            for item in items:
                kind, idx = self._resolve_entity(item)
                b_sides.append(((kind, idx), self._entity_links(kind, idx)))

        pairs: List[Tuple[int, int]] = []
        seen = set()
        for b_entity, b_links in b_sides:
            for la in a_links:
                for lb in b_links:
                    if la == lb:
                        continue
                    # an object never collides with its own links, on either side
                    if a_kind == OBJECTS and self._owner(lb) == a_idx:
                        continue
                    if b_entity is not None and b_entity[0] == OBJECTS and self._owner(la) == b_entity[1]:
                        continue
                    key = frozenset((la, lb))
                    if key in seen:
                        continue
                    seen.add(key)
                    pairs.append((la, lb))
        return pairs

    def _collidable_set(self) -> set:
        return {l.index for l in self._links if l is not None and l.collidable and l.geometries}

    def _links_of(self, obj_idx: int) -> Dict[int, LinkRecord]:
        return {i: self._links[i] for i in self._objects[obj_idx].links}

    def _joints_of(self, obj_idx: int) -> Dict[int, JointRecord]:
        return {i: self._joints[i] for i in self._objects[obj_idx].joints}

    def check_collision(self, a: Entity, b=None, contacts: Optional[List[Contact]] = None) -> bool:
        """
        Collision query between `a` and `b`.

        `b` may be None (anything else in the world), an object, robot or link,
        or a sequence of those. Boolean queries (contacts=None) stop at the
        first colliding pair. With a contacts list every candidate pair is
        evaluated and every contact is appended, with `a` as side a.

        Self pairs are never reported: an object is not checked against its own
        links, and a link queried against everything skips itself and the
        links joined to it by a single joint.
        """
        with self._lock:
            pairs = self._candidate_pairs(a, b)
            if not pairs:
                return False
            self._prepare_collision()
            hit = False
            for la, lb in pairs:
                if contacts is None:
                    if self._collide_links(la, lb, None):
                        return True
                elif self._collide_links(la, lb, contacts):
                    hit = True
            return hit

    def _make_contact(self, la: int, lb: int, point, normal, depth: float = 0.0) -> Contact:
        return Contact(
            object_a=self._object_handle(self._owner(la)),
            object_b=self._object_handle(self._owner(lb)),
            link_a=self._link_handle(la),
            link_b=self._link_handle(lb),
            point=np.asarray(point, dtype=np.float64).reshape(3),
            normal=np.asarray(normal, dtype=np.float64).reshape(3),
            depth=float(depth),
        )

    # ------------------------------------------------------------------
    # physics
    # ------------------------------------------------------------------
    def step_physics(self, txn: Transaction, steps: int = 1) -> None:
        """
        Advance the simulation `steps` physics timesteps.

        Each step first invokes every bound robot controller exactly once with
        copies of the robot's positions and velocities, then integrates all
        objects by one timestep. A controller returning None applies zero
        force. A raising controller aborts the batch; steps already completed
        are kept.
        """
        self._require_txn(txn, "step_physics")
        if not self.supports_physics():
            raise PhysicsNotSupportedError(f"backend '{self.backend_name}' does not support physics")
        steps = int(steps)
        if steps < 0:
            raise ValueError(f"steps must be non-negative, got {steps}")
        dt = self._timestep
        for _ in range(steps):
            self._stepping = True
            try:
                self._run_controllers(dt)
                self._integrate(dt)
            finally:
                self._stepping = False

    def is_stepping(self) -> bool:
        return self._stepping

    def _run_controllers(self, dt: float) -> None:
        live = self._live_objects()
        for rec in live:
            rec.applied_forces = None
        for rec in live:
            if not rec.is_robot or rec.controller is None:
                continue
            robot = self._object_handle(rec.index)
            out = rec.controller.compute(rec.positions(), rec.velocities.copy(), dt, robot.read_only())
            if out is None:
                continue
            forces = np.asarray(out, dtype=np.float64).reshape(-1)
            if forces.size != rec.num_dofs:
                raise DOFIndexError(
                    f"controller of '{rec.name}' returned {forces.size} forces, expected {rec.num_dofs}"
                )
            if not np.all(np.isfinite(forces)):
                raise ValueError(f"controller of '{rec.name}' returned non-finite forces")
            rec.applied_forces = forces

    def _forces(self, rec: ObjectRecord) -> np.ndarray:
        if rec.applied_forces is None:
            return np.zeros(rec.num_dofs)
        return rec.applied_forces

    # ------------------------------------------------------------------
    def describe(self) -> List[str]:
        """One line per object: name, kind, DOF counts and pose (used by the CLI)."""
        lines = []
        for rec in self._live_objects():
            xyz_rpy = transform_to_xyz_rpy(rec.pose())
            lines.append(
                f"{rec.name}: {'robot' if rec.is_robot else 'object'} "
                f"links={len(rec.links)} joints={rec.num_joints} "
                f"base_dofs={rec.num_base_dofs} dofs={rec.num_dofs} "
                f"xyz={np.round(xyz_rpy[:3], 4).tolist()} rpy={np.round(xyz_rpy[3:], 4).tolist()}"
            )
        return lines

    def __repr__(self) -> str:
        return f"{type(self).__name__}(objects={len(self._object_names)})"
