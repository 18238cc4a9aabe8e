"""simenv: backend-agnostic robot simulation environment for motion planners."""

from __future__ import annotations

from .backends import active_backend, create_world
from .config_reader import ObjectConfig, WorldConfig
from .entities import Joint, Link, Object, Robot
from .errors import (BackendConflictError, DOFIndexError, DuplicateNameError, PhysicsNotSupportedError,
                     PreconditionError, SimEnvError, StaleEntityError, TransactionError)
from .interfaces import CallbackController, Controller, Logger, WorldViewer
from .logging_utils import LogLevel, SimLogger, default_logger
from .main import main
from .models import FLOAT_MAX, FLOAT_MIN, Contact, DOFInformation, EntityType, JointType, ObjectState
from .world import Transaction, World


__all__ = [
    "__version__",
    "main",
    "create_world",
    "active_backend",
    "World",
    "Transaction",
    "WorldConfig",
    "ObjectConfig",
    "Object",
    "Robot",
    "Link",
    "Joint",
    "Contact",
    "DOFInformation",
    "EntityType",
    "JointType",
    "ObjectState",
    "FLOAT_MIN",
    "FLOAT_MAX",
    "Controller",
    "CallbackController",
    "Logger",
    "WorldViewer",
    "LogLevel",
    "SimLogger",
    "default_logger",
    "SimEnvError",
    "PreconditionError",
    "DOFIndexError",
    "PhysicsNotSupportedError",
    "TransactionError",
    "StaleEntityError",
    "DuplicateNameError",
    "BackendConflictError",
]

__version__ = "0.1.0"
