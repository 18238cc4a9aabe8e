"""Rotation and rigid-transform helpers shared by the world and its backends."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


def rpy_to_quat_wxyz(r: float, p: float, y: float) -> np.ndarray:
    """
    Convert roll, pitch, yaw (radians) to quaternion in WXYZ format.

    Args:
        r: roll (radians)
        p: pitch (radians)
        y: yaw (radians)

    Returns:
        np.ndarray: Quaternion [qw, qx, qy, qz]
    """
    cr, sr = np.cos(r/2), np.sin(r/2)
    cp, sp = np.cos(p/2), np.sin(p/2)
    cy, sy = np.cos(y/2), np.sin(y/2)
    return np.array([
        cy*cp*cr + sy*sp*sr,
        cy*cp*sr - sy*sp*cr,
        sy*cp*sr + cy*sp*cr,
        sy*cp*cr - cy*sp*sr,
    ], dtype=np.float64)


def quat_wxyz_to_rotation_matrix(q: np.ndarray) -> np.ndarray:
    """
    Convert quaternion to rotation matrix.

    Args:
        q: Quaternion [qw, qx, qy, qz]

    Returns:
        np.ndarray: 3x3 rotation matrix
    """
    w, x, y, z = q
    return np.array([
        [1-2*(y*y+z*z), 2*(x*y - z*w), 2*(x*z + y*w)],
        [2*(x*y + z*w), 1-2*(x*x+z*z), 2*(y*z - x*w)],
        [2*(x*z - y*w), 2*(y*z + x*w), 1-2*(x*x+y*y)],
    ], dtype=np.float64)


def rotation_matrix_to_quat_wxyz(R: np.ndarray) -> np.ndarray:
    """Convert a 3x3 rotation matrix to a unit WXYZ quaternion."""
    R = np.asarray(R, dtype=np.float64)
    tr = R[0, 0] + R[1, 1] + R[2, 2]
    if tr > 0.0:
        s = np.sqrt(tr + 1.0) * 2.0
        q = [0.25 * s,
             (R[2, 1] - R[1, 2]) / s,
             (R[0, 2] - R[2, 0]) / s,
             (R[1, 0] - R[0, 1]) / s]
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2]) * 2.0
        q = [(R[2, 1] - R[1, 2]) / s,
             0.25 * s,
             (R[0, 1] + R[1, 0]) / s,
             (R[0, 2] + R[2, 0]) / s]
    elif R[1, 1] > R[2, 2]:
        s = np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2]) * 2.0
        q = [(R[0, 2] - R[2, 0]) / s,
             (R[0, 1] + R[1, 0]) / s,
             0.25 * s,
             (R[1, 2] + R[2, 1]) / s]
    else:
        s = np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1]) * 2.0
        q = [(R[1, 0] - R[0, 1]) / s,
             (R[0, 2] + R[2, 0]) / s,
             (R[1, 2] + R[2, 1]) / s,
             0.25 * s]
    return quat_wxyz_normalize(np.array(q, dtype=np.float64))


def quat_wxyz_normalize(q: np.ndarray) -> np.ndarray:
    """Normalize quaternion."""
    n = np.linalg.norm(q)
    return q / (n + 1e-12)


def quat_wxyz_to_xyzw(q: np.ndarray) -> Tuple[float, float, float, float]:
    """Reorder WXYZ into the XYZW convention used by PyBullet."""
    return (float(q[1]), float(q[2]), float(q[3]), float(q[0]))


def quat_xyzw_to_wxyz(q: Sequence[float]) -> np.ndarray:
    return np.array([q[3], q[0], q[1], q[2]], dtype=np.float64)


def rpy_to_rotation_matrix(r: float, p: float, y: float) -> np.ndarray:
    return quat_wxyz_to_rotation_matrix(rpy_to_quat_wxyz(r, p, y))


def rotation_matrix_to_rpy(R: np.ndarray) -> np.ndarray:
    """
    Convert a rotation matrix into fixed-axis roll, pitch, yaw (URDF convention,
    R = Rz(yaw) @ Ry(pitch) @ Rx(roll)).
    """
    R = np.asarray(R, dtype=np.float64)
    sy = np.hypot(R[2, 1], R[2, 2])
    roll = np.arctan2(R[2, 1], R[2, 2])
    pitch = np.arctan2(-R[2, 0], sy)
    yaw = np.arctan2(R[1, 0], R[0, 0])
    return np.array([roll, pitch, yaw], dtype=np.float64)


def axis_angle_to_rotation_matrix(axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues' formula for a rotation of `angle` radians about `axis`."""
    axis = np.asarray(axis, dtype=np.float64)
    n = np.linalg.norm(axis)
    if n < 1e-12:
        return np.eye(3)
    kx, ky, kz = axis / n
    K = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
    return np.eye(3) + np.sin(angle) * K + (1.0 - np.cos(angle)) * (K @ K)


def make_transform(xyz: Sequence[float] = (0.0, 0.0, 0.0),
                   rpy: Sequence[float] = (0.0, 0.0, 0.0)) -> np.ndarray:
    """Build a 4x4 homogeneous transform from a translation and roll/pitch/yaw."""
    T = np.eye(4)
    T[:3, :3] = rpy_to_rotation_matrix(*rpy)
    T[:3, 3] = np.asarray(xyz, dtype=np.float64)
    return T


def transform_to_xyz_rpy(T: np.ndarray) -> np.ndarray:
    """Decompose a 4x4 transform into [x, y, z, roll, pitch, yaw]."""
    T = np.asarray(T, dtype=np.float64)
    return np.concatenate([T[:3, 3], rotation_matrix_to_rpy(T[:3, :3])])


def is_rigid_transform(T: np.ndarray, tol: float = 1e-6) -> bool:
    """True iff T is a finite 4x4 homogeneous transform with an orthonormal rotation."""
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        return False
    R = T[:3, :3]
    return (np.allclose(R.T @ R, np.eye(3), atol=tol)
            and np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=tol))
