"""Degree-of-freedom addressing.

An object with k base DOFs and n joints has DOF indices 0..k+n-1. The first k
address the free base pose (a subset of x, y, z, rx, ry, rz, in that order),
joint i is DOF i + k.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from .errors import DOFIndexError

BASE_AXES: Tuple[str, ...] = ("x", "y", "z", "rx", "ry", "rz")
MAX_BASE_DOFS = len(BASE_AXES)


def base_axis_ids(axes: Sequence[str]) -> Tuple[int, ...]:
    """
    Map base DOF axis names to their slot in an [x, y, z, roll, pitch, yaw]
    pose vector, sorted into canonical order.
    """
    ids = []
    for a in axes:
        if a not in BASE_AXES:
            raise ValueError(f"Unknown base DOF axis '{a}'. Known: {list(BASE_AXES)}")
        ids.append(BASE_AXES.index(a))
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate base DOF axis in {list(axes)}")
    return tuple(sorted(ids))


def validate_dof_indices(indices: Iterable[int], num_dofs: int, unique: bool = True) -> np.ndarray:
    """Return indices as an int array; raise DOFIndexError if malformed."""
    arr = np.asarray(list(indices), dtype=np.int64).reshape(-1)
    if arr.size and (arr.min() < 0 or arr.max() >= num_dofs):
        raise DOFIndexError(f"DOF indices {arr.tolist()} out of range [0, {num_dofs})")
    if unique and np.unique(arr).size != arr.size:
        raise DOFIndexError(f"DOF indices {arr.tolist()} contain duplicates")
    return arr


def resolve_dof_indices(indices: Optional[Iterable[int]],
                        active: Tuple[int, ...],
                        num_dofs: int,
                        unique: bool = True) -> np.ndarray:
    """
    Resolve an optional index list: None or empty means the active DOFs, in
    the active set's order. Explicit lists keep their given order.
    """
    if indices is None:
        return np.asarray(active, dtype=np.int64)
    arr = validate_dof_indices(indices, num_dofs, unique=unique)
    if arr.size == 0:
        return np.asarray(active, dtype=np.int64)
    return arr


def check_values(values, count: int, what: str = "values") -> np.ndarray:
    vals = np.asarray(values, dtype=np.float64).reshape(-1)
    if vals.size != count:
        raise DOFIndexError(f"Expected {count} {what}, got {vals.size}")
    return vals


class ActiveDOFs:
    """
    Ordered, duplicate-free subset of [0, num_dofs).

    The index tuple is immutable and swapped in a single assignment, so a
    concurrent reader sees either the old or the new set, never a mix.
    """

    __slots__ = ("_num_dofs", "_indices")

    def __init__(self, num_dofs: int, indices: Optional[Iterable[int]] = None):
        self._num_dofs = int(num_dofs)
        self._indices: Tuple[int, ...] = tuple(range(self._num_dofs))
        if indices is not None:
            self.set(indices)

    @property
    def indices(self) -> Tuple[int, ...]:
        return self._indices

    def set(self, indices: Iterable[int]) -> None:
        arr = validate_dof_indices(indices, self._num_dofs, unique=True)
        self._indices = tuple(int(i) for i in arr)

    def as_array(self) -> np.ndarray:
        return np.asarray(self._indices, dtype=np.int64)

    def __len__(self) -> int:
        return len(self._indices)

    def __repr__(self) -> str:
        return f"ActiveDOFs({list(self._indices)})"
