"""Headless reference viewer."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List

import numpy as np

from .interfaces import WorldViewer
from .logging_utils import get_logger
from .utils import is_rigid_transform


@dataclass
class DrawnFrame:
    transform: np.ndarray
    length: float
    width: float


class RecordingViewer(WorldViewer):
    """
    Keeps every drawn frame in memory instead of rendering it.

    Useful for headless runs and tests; `clear()` drops the recorded frames.
    """

    def __init__(self, max_frames: int = 10000):
        self.max_frames = int(max_frames)
        self.frames: List[DrawnFrame] = []
        self._lock = threading.Lock()
        self._logger = get_logger("simenv.viewer")

    def draw_frame(self, transform: np.ndarray, length: float = 1.0, width: float = 0.1) -> None:
        T = np.asarray(transform, dtype=np.float64)
        if not is_rigid_transform(T):
            raise ValueError("draw_frame expects a 4x4 rigid transform")
        with self._lock:
            if len(self.frames) >= self.max_frames:
                # Oldest frames go first
                del self.frames[0]
            self.frames.append(DrawnFrame(T.copy(), float(length), float(width)))
        self._logger.debug("frame at %s (length=%.3f)", np.round(T[:3, 3], 4).tolist(), length)

    def clear(self) -> None:
        with self._lock:
            self.frames.clear()

    def __len__(self) -> int:
        return len(self.frames)
