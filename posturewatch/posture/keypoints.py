"""Keypoint and frame types shared by the pose source and the posture engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

NOSE = "nose"
LEFT_SHOULDER = "left_shoulder"
RIGHT_SHOULDER = "right_shoulder"
REQUIRED_KEYPOINTS: Tuple[str, ...] = (NOSE, LEFT_SHOULDER, RIGHT_SHOULDER)


@dataclass(frozen=True)
class Keypoint:
    name: str
    x: float
    y: float
    score: float = 1.0


@dataclass(frozen=True)
class Frame:
    """Keypoints estimated for a single instant, in pixel coordinates (y grows downwards)."""

    keypoints: Tuple[Keypoint, ...]

    @classmethod
    def of(cls, keypoints: Iterable[Keypoint]) -> "Frame":
        return cls(tuple(keypoints))

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> "Frame":
        return cls(
            tuple(
                Keypoint(
                    name=str(item["name"]),
                    x=float(item["x"]),
                    y=float(item["y"]),
                    score=float(item.get("score", 1.0)),
                )
                for item in items
            )
        )

    def get(self, name: str, min_score: float = 0.0) -> Optional[Keypoint]:
        """Return the first keypoint called ``name`` scoring at least ``min_score``."""
        for kp in self.keypoints:
            if kp.name == name:
                return kp if kp.score >= min_score else None
        return None

    def subset(self, names: Iterable[str]) -> List[Keypoint]:
        wanted = set(names)
        return [kp for kp in self.keypoints if kp.name in wanted]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [asdict(kp) for kp in self.keypoints]

    def __len__(self) -> int:
        return len(self.keypoints)
