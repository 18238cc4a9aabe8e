"""Entity records and handles.

A World owns three arenas of records (objects, links, joints). Everything a
planner holds is a small handle: a weak reference to the world, the world's
load generation and an arena index. Cross references (a joint's parent link,
a link's object, an entity's world) are index lookups that come back as None
once the target is gone, instead of dangling.
"""
from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config_reader import GeometryConfig, ObjectConfig
from .dofs import ActiveDOFs, check_values, resolve_dof_indices
from .errors import DOFIndexError, PreconditionError, StaleEntityError
from .interfaces import Controller, as_controller
from .models import (UNLIMITED, Contact, DOFInformation, EntityType, JointType,
                     ObjectState, limits_array)
from .utils import is_rigid_transform, make_transform, transform_to_xyz_rpy

if TYPE_CHECKING:  # pragma: no cover - only for static analyzers
    from .world import World


OBJECTS = "objects"
LINKS = "links"
JOINTS = "joints"


@dataclass
class LinkRecord:
    index: int
    name: str
    local_name: str
    object_index: int
    geometries: List[GeometryConfig]
    collidable: bool = True
    mass: float = 1.0
    parent_joints: List[int] = field(default_factory=list)
    child_joints: List[int] = field(default_factory=list)


@dataclass
class JointRecord:
    index: int
    name: str
    local_name: str
    object_index: int
    joint_index: int
    joint_type: JointType
    parent_link: int
    child_link: int
    axis: np.ndarray
    origin: np.ndarray
    position_limits: np.ndarray
    velocity_limits: np.ndarray
    acceleration_limits: np.ndarray
    inertia: float = 1.0


@dataclass
class ObjectRecord:
    index: int
    name: str
    is_robot: bool
    base_axes: Tuple[int, ...]
    base_link: int
    links: List[int]
    joints: List[int]
    pose_params: np.ndarray
    joint_positions: np.ndarray
    velocities: np.ndarray
    active: ActiveDOFs
    base_inertia: float = 1.0
    link_aliases: Dict[str, int] = field(default_factory=dict)
    controller: Optional[Controller] = None
    applied_forces: Optional[np.ndarray] = None
    config: Optional[ObjectConfig] = None

    @property
    def num_base_dofs(self) -> int:
        return len(self.base_axes)

    @property
    def num_joints(self) -> int:
        return len(self.joints)

    @property
    def num_dofs(self) -> int:
        return self.num_base_dofs + self.num_joints

    def positions(self) -> np.ndarray:
        return np.concatenate([self.pose_params[list(self.base_axes)], self.joint_positions])

    def set_positions(self, indices: np.ndarray, values: np.ndarray) -> None:
        k = self.num_base_dofs
        for i, v in zip(indices, values):
            if i < k:
                self.pose_params[self.base_axes[i]] = v
            else:
                self.joint_positions[i - k] = v

    def pose(self) -> np.ndarray:
        return make_transform(self.pose_params[:3], self.pose_params[3:])


def build_records(index: int, cfg: ObjectConfig, first_link: int, first_joint: int,
                  base_axes: Tuple[int, ...]) -> Tuple[ObjectRecord, List[LinkRecord], List[JointRecord]]:
    """
    Turn an ObjectConfig into arena records. Link/joint indices are assigned
    consecutively from first_link/first_joint; joint_index follows the order of
    cfg.joints.
    """
    if not cfg.links:
        raise ValueError(f"object '{cfg.name}' has no links")
    link_idx: Dict[str, int] = {}
    links: List[LinkRecord] = []
    for i, lc in enumerate(cfg.links):
        link_idx[lc.name] = first_link + i
        links.append(LinkRecord(
            index=first_link + i,
            name=f"{cfg.name}/{lc.name}",
            local_name=lc.name,
            object_index=index,
            geometries=list(lc.geometries),
            collidable=lc.collidable,
            mass=lc.mass,
        ))
    joints: List[JointRecord] = []
    for ji, jc in enumerate(cfg.joints):
        jrec = JointRecord(
            index=first_joint + ji,
            name=f"{cfg.name}/{jc.name}",
            local_name=jc.name,
            object_index=index,
            joint_index=ji,
            joint_type=JointType(jc.type),
            parent_link=link_idx[jc.parent],
            child_link=link_idx[jc.child],
            axis=np.asarray(jc.axis, dtype=np.float64) / np.linalg.norm(jc.axis),
            origin=make_transform(jc.origin_xyz, jc.origin_rpy),
            position_limits=limits_array(jc.position_limits),
            velocity_limits=limits_array(jc.velocity_limits),
            acceleration_limits=limits_array(jc.acceleration_limits),
            inertia=jc.inertia,
        )
        links[jrec.parent_link - first_link].child_joints.append(jrec.index)
        links[jrec.child_link - first_link].parent_joints.append(jrec.index)
        joints.append(jrec)

    pose_params = np.concatenate([np.asarray(cfg.position, dtype=np.float64),
                                  np.asarray(cfg.rpy, dtype=np.float64)])
    num_dofs = len(base_axes) + len(joints)
    aliases = {alias: link_idx[target] for alias, target in cfg.link_aliases.items() if target in link_idx}
    obj = ObjectRecord(
        index=index,
        name=cfg.name,
        is_robot=cfg.robot,
        base_axes=base_axes,
        base_link=link_idx[cfg.root_link()],
        links=[l.index for l in links],
        joints=[j.index for j in joints],
        pose_params=pose_params,
        joint_positions=np.array([jc.initial_position for jc in cfg.joints], dtype=np.float64),
        velocities=np.zeros(num_dofs, dtype=np.float64),
        active=ActiveDOFs(num_dofs),
        base_inertia=cfg.base_inertia,
        link_aliases=aliases,
        config=cfg,
    )
    return obj, links, joints


class _Handle:
    """Non-owning reference to a record in a World arena."""

    __slots__ = ("_world_ref", "_generation", "_index", "__weakref__")
    _arena: str = ""
    entity_type: EntityType

    def __init__(self, world: "World", index: int):
        self._world_ref = weakref.ref(world)
        self._generation = world._generation
        self._index = index

    # --- identity ---
    def get_world(self) -> Optional["World"]:
        return self._world_ref()

    def get_name(self) -> str:
        return self._record().name

    def get_type(self) -> EntityType:
        return self.entity_type

    @property
    def name(self) -> str:
        return self.get_name()

    def is_valid(self) -> bool:
        return self._lookup() is not None

    def _set_name(self, name: str) -> None:
        """Rename; reserved for backend implementations."""
        self._world()._rename_entity(self._arena, self._index, name)

    # --- record access ---
    def _world(self) -> "World":
        world = self._world_ref()
        if world is None:
            raise StaleEntityError(f"{self!r}: world no longer exists")
        return world

    def _lookup(self):
        world = self._world_ref()
        if world is None:
            return None
        return world._arena_lookup(self._arena, self._index, self._generation)

    def _record(self):
        rec = self._lookup()
        if rec is None:
            raise StaleEntityError(f"{self!r} is no longer part of its world")
        return rec

    def _key(self) -> Tuple[int, int, str, int]:
        return (id(self._world_ref()), self._generation, self._arena, self._index)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, (_Handle, Robot)):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        rec = self._lookup()
        label = rec.name if rec is not None else "<stale>"
        return f"{type(self).__name__}({label!r})"


class Link(_Handle):
    """A rigid body of exactly one object."""

    __slots__ = ()
    _arena = LINKS
    entity_type = EntityType.LINK

    def get_local_name(self) -> str:
        return self._record().local_name

    def get_object(self) -> Optional["Object | Robot"]:
        rec = self._lookup()
        if rec is None:
            return None
        return self._world()._object_handle(rec.object_index)

    def get_child_joints(self) -> List["Joint"]:
        world = self._world()
        return [j for j in (world._joint_handle(i) for i in self._record().child_joints) if j is not None]

    def get_parent_joints(self) -> List["Joint"]:
        world = self._world()
        return [j for j in (world._joint_handle(i) for i in self._record().parent_joints) if j is not None]

    def get_transform(self) -> np.ndarray:
        self._record()
        return self._world()._link_transform(self._index)

    def is_collidable(self) -> bool:
        rec = self._record()
        return rec.collidable and bool(rec.geometries)

    def check_collision(self, others=None, contacts: Optional[List[Contact]] = None) -> bool:
        """
        Check this link against everything (others=None), or against a list of
        links and/or objects. Passing a contacts list collects every contact.
        """
        return self._world().check_collision(self, others, contacts)


class Joint(_Handle):
    """Revolute or prismatic joint between a parent and a child link of one object."""

    __slots__ = ()
    _arena = JOINTS
    entity_type = EntityType.JOINT

    def _object_record(self) -> ObjectRecord:
        rec = self._record()
        return self._world()._arena_lookup(OBJECTS, rec.object_index, self._generation)

    def get_local_name(self) -> str:
        return self._record().local_name

    def get_position(self) -> float:
        rec = self._record()
        return float(self._object_record().joint_positions[rec.joint_index])

    def set_position(self, value: float) -> None:
        rec = self._record()
        self._object_record().joint_positions[rec.joint_index] = float(value)
        self._world()._touch(rec.object_index)

    def get_velocity(self) -> float:
        rec = self._record()
        obj = self._object_record()
        return float(obj.velocities[obj.num_base_dofs + rec.joint_index])

    def set_velocity(self, value: float) -> None:
        rec = self._record()
        obj = self._object_record()
        obj.velocities[obj.num_base_dofs + rec.joint_index] = float(value)
        self._world()._touch(rec.object_index)

    def get_joint_index(self) -> int:
        return self._record().joint_index

    def get_dof_index(self) -> int:
        rec = self._record()
        return rec.joint_index + self._object_record().num_base_dofs

    def get_joint_type(self) -> JointType:
        return self._record().joint_type

    def get_axis(self) -> np.ndarray:
        return self._record().axis.copy()

    def get_parent_link(self) -> Optional[Link]:
        return self._world()._link_handle(self._record().parent_link)

    def get_child_link(self) -> Optional[Link]:
        return self._world()._link_handle(self._record().child_link)

    def get_object(self) -> Optional["Object | Robot"]:
        rec = self._lookup()
        if rec is None:
            return None
        return self._world()._object_handle(rec.object_index)

    def get_position_limits(self) -> np.ndarray:
        return self._record().position_limits.copy()

    def get_velocity_limits(self) -> np.ndarray:
        return self._record().velocity_limits.copy()

    def get_acceleration_limits(self) -> np.ndarray:
        return self._record().acceleration_limits.copy()

    def get_dof_information(self) -> DOFInformation:
        rec = self._record()
        return DOFInformation(
            dof_index=self.get_dof_index(),
            position_limits=rec.position_limits.copy(),
            velocity_limits=rec.velocity_limits.copy(),
            acceleration_limits=rec.acceleration_limits.copy(),
        )

    def get_transform(self) -> np.ndarray:
        """Joint frame in world coordinates (parent link frame composed with the joint origin)."""
        rec = self._record()
        return self._world()._link_transform(rec.parent_link) @ rec.origin


class Object(_Handle):
    """
    An articulated (or single-link) body.

    All accessors that take an optional DOF index list fall back to the
    current active DOFs when the list is None or empty; results follow the
    order of the given list (or of the active set).
    """

    __slots__ = ()
    _arena = OBJECTS
    entity_type = EntityType.OBJECT

    # --- pose ---
    def get_transform(self) -> np.ndarray:
        return self._record().pose()

    def set_transform(self, tf: np.ndarray) -> None:
        tf = np.asarray(tf, dtype=np.float64)
        if not is_rigid_transform(tf):
            raise PreconditionError(f"{self!r}: set_transform expects a finite 4x4 rigid transform")
        rec = self._record()
        rec.pose_params = transform_to_xyz_rpy(tf)
        self._world()._touch(self._index)

    def is_static(self) -> bool:
        return self._record().num_base_dofs == 0

    # --- DOF bookkeeping ---
    def get_num_base_dofs(self) -> int:
        return self._record().num_base_dofs

    def get_num_dofs(self) -> int:
        return self._record().num_dofs

    def get_dof_indices(self) -> np.ndarray:
        return np.arange(self._record().num_dofs, dtype=np.int64)

    def get_active_dofs(self) -> np.ndarray:
        return self._record().active.as_array()

    def set_active_dofs(self, indices: Iterable[int]) -> None:
        self._record().active.set(indices)

    def get_num_active_dofs(self) -> int:
        return len(self._record().active)

    def _resolve(self, indices, unique: bool = True) -> Tuple[ObjectRecord, np.ndarray]:
        rec = self._record()
        return rec, resolve_dof_indices(indices, rec.active.indices, rec.num_dofs, unique=unique)

    def get_dof_information(self, dof_index: int) -> DOFInformation:
        rec = self._record()
        if not 0 <= int(dof_index) < rec.num_dofs:
            raise DOFIndexError(f"DOF index {dof_index} out of range [0, {rec.num_dofs})")
        return DOFInformation(
            dof_index=int(dof_index),
            position_limits=self._limits(rec, "position_limits", [dof_index])[0],
            velocity_limits=self._limits(rec, "velocity_limits", [dof_index])[0],
            acceleration_limits=self._limits(rec, "acceleration_limits", [dof_index])[0],
        )

    # --- positions / velocities ---
    def get_dof_positions(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        rec, idx = self._resolve(indices, unique=False)
        return rec.positions()[idx]

    def set_dof_positions(self, values, indices: Optional[Sequence[int]] = None) -> None:
        rec, idx = self._resolve(indices)
        vals = check_values(values, idx.size, "positions")
        rec.set_positions(idx, vals)
        self._world()._touch(self._index)

    def get_dof_velocities(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        rec, idx = self._resolve(indices, unique=False)
        return rec.velocities[idx].copy()

    def set_dof_velocities(self, values, indices: Optional[Sequence[int]] = None) -> None:
        rec, idx = self._resolve(indices)
        vals = check_values(values, idx.size, "velocities")
        rec.velocities[idx] = vals
        self._world()._touch(self._index)

    # --- limits ---
    def _limits(self, rec: ObjectRecord, attr: str, idx) -> np.ndarray:
        world = self._world()
        k = rec.num_base_dofs
        out = np.empty((len(idx), 2), dtype=np.float64)
        for row, i in enumerate(idx):
            if i < k:
                out[row] = UNLIMITED
            else:
                jrec = world._arena_lookup(JOINTS, rec.joints[i - k], self._generation)
                out[row] = getattr(jrec, attr)
        return out

    def get_dof_position_limits(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        rec, idx = self._resolve(indices, unique=False)
        return self._limits(rec, "position_limits", idx)

    def get_dof_velocity_limits(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        rec, idx = self._resolve(indices, unique=False)
        return self._limits(rec, "velocity_limits", idx)

    def get_dof_acceleration_limits(self, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        rec, idx = self._resolve(indices, unique=False)
        return self._limits(rec, "acceleration_limits", idx)

    # --- state ---
    def get_state(self) -> ObjectState:
        rec = self._record()
        return ObjectState(
            dof_positions=rec.positions(),
            dof_velocities=rec.velocities.copy(),
            pose=rec.pose(),
            active_dofs=rec.active.as_array(),
        )

    def set_state(self, state: ObjectState) -> None:
        """Apply a full snapshot. Base DOF positions take precedence over the pose."""
        rec = self._record()
        validate_object_state(rec, state)
        rec.pose_params = transform_to_xyz_rpy(state.pose)
        rec.set_positions(np.arange(rec.num_dofs), np.asarray(state.dof_positions, dtype=np.float64))
        rec.velocities = np.array(state.dof_velocities, dtype=np.float64)
        if state.active_dofs is not None:
            rec.active.set(state.active_dofs)
        self._world()._touch(self._index)

    # --- structure ---
    def get_links(self) -> List[Link]:
        world = self._world()
        return [l for l in (world._link_handle(i) for i in self._record().links) if l is not None]

    def get_link(self, link_name: str) -> Optional[Link]:
        """Look up a link by local name, qualified name or folded alias."""
        rec = self._lookup()
        if rec is None:
            return None
        world = self._world()
        alias = link_name[len(rec.name) + 1:] if link_name.startswith(f"{rec.name}/") else link_name
        if alias in rec.link_aliases:
            return world._link_handle(rec.link_aliases[alias])
        for i in rec.links:
            lrec = world._arena_lookup(LINKS, i, self._generation)
            if lrec is not None and link_name in (lrec.local_name, lrec.name):
                return world._link_handle(i)
        return None

    def get_base_link(self) -> Optional[Link]:
        return self._world()._link_handle(self._record().base_link)

    def get_joints(self) -> List[Joint]:
        world = self._world()
        return [j for j in (world._joint_handle(i) for i in self._record().joints) if j is not None]

    def get_joint(self, key: Union[str, int]) -> Optional[Joint]:
        """Look up a joint by local/qualified name or by joint index."""
        rec = self._lookup()
        if rec is None:
            return None
        world = self._world()
        if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
            if 0 <= key < rec.num_joints:
                return world._joint_handle(rec.joints[key])
            return None
        for i in rec.joints:
            jrec = world._arena_lookup(JOINTS, i, self._generation)
            if jrec is not None and key in (jrec.local_name, jrec.name):
                return world._joint_handle(i)
        return None

    def get_joint_from_dof_index(self, dof_index: int) -> Optional[Joint]:
        rec = self._lookup()
        if rec is None:
            return None
        return self.get_joint(int(dof_index) - rec.num_base_dofs) if dof_index >= rec.num_base_dofs else None

    # --- collision ---
    def check_collision(self, others=None, contacts: Optional[List[Contact]] = None) -> bool:
        """
        Check this object against every other object (others=None), or against
        one object or a list of objects. Passing a contacts list collects every
        contact instead of stopping at the first hit.
        """
        return self._world().check_collision(self, others, contacts)


_HIDDEN_FROM_VIEWS = frozenset({"get_world"})


class _ReadOnlyView:
    """
    Getter-only view of an entity, handed to controllers.

    Entities returned by a getter (links, joints, the owning object) come back
    wrapped in a view as well, so no setter is reachable through the graph.
    The owning world is not exposed.
    """

    __slots__ = ("_target",)

    def __init__(self, target):
        self._target = target

    def __getattr__(self, name: str):
        if name in _HIDDEN_FROM_VIEWS or not (name.startswith(("get_", "is_")) or name == "name"):
            raise AttributeError(f"'{name}' is not available on a read-only view")
        attr = getattr(self._target, name)
        if not callable(attr):
            return _read_only(attr)

        def getter(*args, **kwargs):
            return _read_only(attr(*args, **kwargs))

        return getter

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, _ReadOnlyView):
            other = other._target
        return self._target == other

    def __hash__(self) -> int:
        return hash(self._target)

    def __repr__(self) -> str:
        return f"ReadOnly{self._target!r}"


def _read_only(value):
    if isinstance(value, (_Handle, Robot)):
        return _ReadOnlyView(value)
    if isinstance(value, list):
        return [_read_only(v) for v in value]
    return value


class Robot:
    """
    An Object plus an optional controller.

    Composition rather than inheritance: every Object capability is delegated
    to the wrapped Object handle.
    """

    __slots__ = ("_object", "__weakref__")
    entity_type = EntityType.ROBOT

    def __init__(self, obj: Object):
        self._object = obj

    @property
    def object(self) -> Object:
        return self._object

    def get_type(self) -> EntityType:
        return EntityType.ROBOT

    def set_controller(self, controller) -> None:
        """Bind (or with None, unbind) a Controller or a plain callable."""
        self._object._record().controller = as_controller(controller)

    def get_controller(self) -> Optional[Controller]:
        return self._object._record().controller

    def has_controller(self) -> bool:
        return self.get_controller() is not None

    def read_only(self) -> _ReadOnlyView:
        return _ReadOnlyView(self)

    def _key(self):
        return self._object._key()

    def __getattr__(self, name: str):
        # Delegate Object capabilities to the wrapped handle
        return getattr(self._object, name)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, (_Handle, Robot)):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        rec = self._object._lookup()
        return f"Robot({rec.name if rec is not None else '<stale>'!r})"


def as_object_handle(entity) -> Optional[Object]:
    if isinstance(entity, Robot):
        return entity.object
    if isinstance(entity, Object):
        return entity
    return None


def validate_object_state(rec: ObjectRecord, state: ObjectState) -> None:
    """Raise if `state` cannot be applied to the object described by `rec`."""
    n = rec.num_dofs
    if np.asarray(state.dof_positions).reshape(-1).size != n:
        raise DOFIndexError(f"object '{rec.name}': state has wrong number of positions (expected {n})")
    if np.asarray(state.dof_velocities).reshape(-1).size != n:
        raise DOFIndexError(f"object '{rec.name}': state has wrong number of velocities (expected {n})")
    if not is_rigid_transform(state.pose):
        raise PreconditionError(f"object '{rec.name}': state pose is not a rigid transform")
    if state.active_dofs is not None:
        ActiveDOFs(n, state.active_dofs)
