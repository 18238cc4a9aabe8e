"""Capability interfaces implemented by entities, controllers and sinks.

Entities are not arranged in a class hierarchy. Links, joints, objects and
robots each implement the subset of these protocols that applies to them.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (TYPE_CHECKING, Callable, Iterable, List, Optional, Protocol,
                    Sequence, runtime_checkable)

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - only for static analyzers
    from .logging_utils import LogLevel
    from .models import Contact, EntityType, ObjectState


@runtime_checkable
class Named(Protocol):
    def get_name(self) -> str: ...

    def get_type(self) -> "EntityType": ...


@runtime_checkable
class Posed(Protocol):
    def get_transform(self) -> np.ndarray: ...


@runtime_checkable
class Collidable(Protocol):
    def check_collision(self, others=None, contacts: Optional[List["Contact"]] = None) -> bool: ...


@runtime_checkable
class DOFAddressable(Protocol):
    def get_num_dofs(self) -> int: ...

    def get_active_dofs(self) -> np.ndarray: ...

    def set_active_dofs(self, indices: Iterable[int]) -> None: ...

    def get_dof_positions(self, indices: Optional[Sequence[int]] = None) -> np.ndarray: ...

    def set_dof_positions(self, values, indices: Optional[Sequence[int]] = None) -> None: ...

    def get_dof_velocities(self, indices: Optional[Sequence[int]] = None) -> np.ndarray: ...

    def set_dof_velocities(self, values, indices: Optional[Sequence[int]] = None) -> None: ...

    def get_state(self) -> "ObjectState": ...

    def set_state(self, state: "ObjectState") -> None: ...


@runtime_checkable
class Controller(Protocol):
    """
    Closed-loop robot controller, invoked once per physics step.

    `compute` receives copies of all-DOF positions and velocities, the physics
    timestep and a read-only view of the robot. It returns one generalized
    force per DOF, or None to skip applying forces for this step.
    """

    def compute(self, positions: np.ndarray, velocities: np.ndarray,
                timestep: float, robot) -> Optional[np.ndarray]: ...


ControlCallback = Callable[[np.ndarray, np.ndarray, float, object], Optional[np.ndarray]]


class CallbackController:
    """Adapts a plain function with the `Controller.compute` signature."""

    def __init__(self, fn: ControlCallback):
        self.fn = fn

    def compute(self, positions, velocities, timestep, robot):
        return self.fn(positions, velocities, timestep, robot)

    def __repr__(self) -> str:
        return f"CallbackController({getattr(self.fn, '__name__', self.fn)!r})"


def as_controller(controller) -> Optional[Controller]:
    if controller is None:
        return None
    if isinstance(controller, Controller):
        return controller
    if callable(controller):
        return CallbackController(controller)
    raise TypeError(f"Expected a Controller or callable, got {type(controller).__name__}")


class Logger(ABC):
    """Diagnostic sink with four ordered severities Debug < Info < Warn < Error."""

    @abstractmethod
    def set_level(self, level: "LogLevel") -> None: ...

    @abstractmethod
    def get_level(self) -> "LogLevel": ...

    @abstractmethod
    def log(self, msg: str, level: "LogLevel", prefix: str = "") -> None: ...

    @abstractmethod
    def log_err(self, msg: str, prefix: str = "") -> None: ...

    @abstractmethod
    def log_warn(self, msg: str, prefix: str = "") -> None: ...

    @abstractmethod
    def log_info(self, msg: str, prefix: str = "") -> None: ...

    @abstractmethod
    def log_debug(self, msg: str, prefix: str = "") -> None: ...


class WorldViewer(ABC):
    """Minimal visualization surface; everything beyond frames is backend specific."""

    @abstractmethod
    def draw_frame(self, transform: np.ndarray, length: float = 1.0, width: float = 0.1) -> None:
        ...
