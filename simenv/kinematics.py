from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Dict, Mapping

import numpy as np

from .models import JointType
from .utils import axis_angle_to_rotation_matrix

if TYPE_CHECKING:  # pragma: no cover - only for static analyzers
    from .entities import JointRecord, LinkRecord


def joint_motion(joint_type: JointType, axis: np.ndarray, q: float) -> np.ndarray:
    """Transform contributed by a joint at position q, in the joint frame."""
    T = np.eye(4)
    if joint_type == JointType.REVOLUTE:
        T[:3, :3] = axis_angle_to_rotation_matrix(axis, q)
    else:
        T[:3, 3] = np.asarray(axis, dtype=np.float64) * q
    return T


def forward_kinematics(base_pose: np.ndarray,
                       base_link: int,
                       links: Mapping[int, LinkRecord],
                       joints: Mapping[int, JointRecord],
                       joint_positions: np.ndarray) -> Dict[int, np.ndarray]:
    """
    World transforms of all links of one object.

    Walks parent -> child from the base link:
        child = parent @ joint.origin @ motion(q)
    Links not reachable from the base (malformed graphs) sit at the base pose.
    """
    out: Dict[int, np.ndarray] = {base_link: np.array(base_pose, dtype=np.float64)}
    queue = deque([base_link])
    while queue:
        li = queue.popleft()
        T_parent = out[li]
        for ji in links[li].child_joints:
            j = joints[ji]
            if j.child_link in out:
                continue
            out[j.child_link] = T_parent @ j.origin @ joint_motion(j.joint_type, j.axis, joint_positions[j.joint_index])
            queue.append(j.child_link)
    for li in links:
        out.setdefault(li, out[base_link].copy())
    return out


def joint_adjacent_links(links: Mapping[int, LinkRecord],
                         joints: Mapping[int, JointRecord],
                         link_index: int) -> set:
    """Links connected to link_index by a single joint."""
    rec = links[link_index]
    adj = set()
    for ji in rec.child_joints:
        adj.add(joints[ji].child_link)
    for ji in rec.parent_joints:
        adj.add(joints[ji].parent_link)
    return adj
