"""In-memory holder for the user's ideal posture snapshot."""
from __future__ import annotations

from typing import Optional

from loguru import logger

from .keypoints import Frame


class BaselineStore:
    """Holds at most one baseline frame. ``None`` means calibration mode."""

    def __init__(self) -> None:
        self._snapshot: Optional[Frame] = None

    def save(self, frame: Frame) -> None:
        # Completeness is not checked here; an incomplete baseline surfaces
        # as KEYPOINTS_MISSING when classifying.
        self._snapshot = Frame(tuple(frame.keypoints))
        logger.info("Baseline saved keypoints={}", len(frame))

    def reset(self) -> None:
        self._snapshot = None
        logger.info("Baseline reset; calibration mode")

    def get(self) -> Optional[Frame]:
        return self._snapshot

    @property
    def is_set(self) -> bool:
        return self._snapshot is not None
