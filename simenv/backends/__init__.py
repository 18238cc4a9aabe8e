"""Backend registry.

Only one backend may be active per process: the first `create_world` call
pins it, later calls naming a different backend raise BackendConflictError.
Backend modules are imported lazily so optional simulators are only required
when selected.
"""
from __future__ import annotations

import importlib
import threading
from typing import Dict, List, Optional

from ..errors import BackendConflictError
from ..interfaces import Logger
from ..world import World

_REGISTRY: Dict[str, str] = {
    "reference": "simenv.backends.reference:ReferenceWorld",
    "pybullet": "simenv.backends.pybullet_backend:PybulletWorld",
}

_active: Optional[str] = None
_lock = threading.Lock()


def available_backends() -> List[str]:
    return sorted(_REGISTRY)


def active_backend() -> Optional[str]:
    return _active


def backend_class(name: str) -> type:
    try:
        target = _REGISTRY[name]
    except KeyError:
        raise ValueError(f"Unknown backend '{name}'. Available: {available_backends()}") from None
    module_name, cls_name = target.split(":")
    return getattr(importlib.import_module(module_name), cls_name)


def create_world(backend: str = "reference", logger: Optional[Logger] = None, **kwargs) -> World:
    """Construct an empty World of the given backend, pinning it for this process."""
    global _active
    backend = backend.lower()
    with _lock:
        if _active is not None and _active != backend:
            raise BackendConflictError(
                f"backend '{_active}' is already active in this process; cannot create '{backend}'"
            )
        cls = backend_class(backend)
        world = cls(logger=logger, **kwargs)
        _active = backend
    return world


__all__ = ["available_backends", "active_backend", "backend_class", "create_world"]
