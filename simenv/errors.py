"""Exception types raised by simenv.

Lookups by name or index never raise; they return None. Everything here is
either a caller bug (PreconditionError and its subclasses) or a registry or
process-level conflict.
"""
from __future__ import annotations


class SimEnvError(Exception):
    """Base class for all simenv errors."""


class PreconditionError(SimEnvError):
    """A call violated a documented precondition (caller bug)."""


class DOFIndexError(PreconditionError, IndexError):
    """A DOF index list was out of range or contained duplicates."""


class PhysicsNotSupportedError(PreconditionError):
    """step_physics was called on a world whose backend has no physics."""


class TransactionError(PreconditionError):
    """A mutating world operation was called without a valid open transaction."""


class StaleEntityError(PreconditionError, LookupError):
    """An entity handle refers to a record that is no longer part of its world."""


class DuplicateNameError(SimEnvError, ValueError):
    """An entity name is already registered in the world."""


class BackendConflictError(SimEnvError):
    """A second, different backend was requested in the same process."""


__all__ = [
    "SimEnvError",
    "PreconditionError",
    "DOFIndexError",
    "PhysicsNotSupportedError",
    "TransactionError",
    "StaleEntityError",
    "DuplicateNameError",
    "BackendConflictError",
]
