"""Plain data records exchanged between the world, its entities and planners."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - only for static analyzers
    from .entities import Link, Object, Robot


# Unconstrained axes report the float64 range; never NaN or inf.
FLOAT_MIN = float(np.finfo(np.float64).min)
FLOAT_MAX = float(np.finfo(np.float64).max)
UNLIMITED: Tuple[float, float] = (FLOAT_MIN, FLOAT_MAX)


class EntityType(enum.Enum):
    OBJECT = "object"
    ROBOT = "robot"
    JOINT = "joint"
    LINK = "link"


class JointType(enum.Enum):
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"


def limits_array(limits: Optional[Tuple[float, float]]) -> np.ndarray:
    """Return a (2,) [min, max] array, substituting the sentinel for None."""
    if limits is None:
        return np.array(UNLIMITED, dtype=np.float64)
    lo, hi = float(limits[0]), float(limits[1])
    if not (np.isfinite(lo) and np.isfinite(hi)):
        # Configs may spell "unlimited" as +-inf; normalize to the sentinel
        lo = lo if np.isfinite(lo) else FLOAT_MIN
        hi = hi if np.isfinite(hi) else FLOAT_MAX
    if lo > hi:
        raise ValueError(f"Invalid limits: min {lo} > max {hi}")
    return np.array([lo, hi], dtype=np.float64)


def is_unlimited(limits: np.ndarray) -> bool:
    return bool(limits[0] == FLOAT_MIN and limits[1] == FLOAT_MAX)


@dataclass
class Contact:
    """
    A single contact between two entities.

    The a/b roles follow the argument order of the query that produced the
    contact. `point` and `normal` are in world frame; the normal points from
    side a towards side b.
    """
    object_a: Optional["Object | Robot"]
    object_b: Optional["Object | Robot"]
    link_a: Optional["Link"]
    link_b: Optional["Link"]
    point: np.ndarray
    normal: np.ndarray
    depth: float = 0.0


@dataclass
class DOFInformation:
    dof_index: int
    position_limits: np.ndarray
    velocity_limits: np.ndarray
    acceleration_limits: np.ndarray


@dataclass
class ObjectState:
    """
    Complete snapshot of one object: positions and velocities of ALL DOFs,
    world-frame pose and the active-DOF index list. A state built without an
    active-DOF list (None) leaves the object's active set unchanged when applied.
    """
    dof_positions: np.ndarray
    dof_velocities: np.ndarray
    pose: np.ndarray
    active_dofs: Optional[np.ndarray] = None

    def copy(self) -> "ObjectState":
        return ObjectState(
            dof_positions=np.array(self.dof_positions, dtype=np.float64),
            dof_velocities=np.array(self.dof_velocities, dtype=np.float64),
            pose=np.array(self.pose, dtype=np.float64),
            active_dofs=None if self.active_dofs is None else np.array(self.active_dofs, dtype=np.int64),
        )

    def equals(self, other: "ObjectState", atol: float = 1e-9) -> bool:
        return (
            self.dof_positions.shape == other.dof_positions.shape
            and np.allclose(self.dof_positions, other.dof_positions, atol=atol)
            and np.allclose(self.dof_velocities, other.dof_velocities, atol=atol)
            and np.allclose(self.pose, other.pose, atol=atol)
            and (self.active_dofs is None) == (other.active_dofs is None)
            and (self.active_dofs is None or np.array_equal(self.active_dofs, other.active_dofs))
        )


# object name -> ObjectState
WorldState = Dict[str, ObjectState]


def copy_world_state(state: WorldState) -> WorldState:
    return {name: s.copy() for name, s in state.items()}


def world_state_to_dict(state: WorldState) -> Dict[str, Dict[str, Any]]:
    """Plain-list representation of a WorldState (e.g. for YAML/JSON checkpoints)."""
    return {
        name: {
            "dof_positions": s.dof_positions.tolist(),
            "dof_velocities": s.dof_velocities.tolist(),
            "pose": s.pose.tolist(),
            "active_dofs": None if s.active_dofs is None else [int(i) for i in s.active_dofs],
        }
        for name, s in state.items()
    }


def world_state_from_dict(data: Dict[str, Dict[str, Any]]) -> WorldState:
    return {
        name: ObjectState(
            dof_positions=np.array(d["dof_positions"], dtype=np.float64),
            dof_velocities=np.array(d["dof_velocities"], dtype=np.float64),
            pose=np.array(d["pose"], dtype=np.float64),
            active_dofs=None if d.get("active_dofs") is None else np.array(d["active_dofs"], dtype=np.int64),
        )
        for name, d in data.items()
    }
