"""Posture classification relative to a stored baseline.

``classify`` compares three pieces of upper-body geometry between the live
frame and the baseline frame:

- horizontal offset of the nose from the shoulder midpoint (leaning forward),
- height gap between the two shoulders (tilting),
- average shoulder height (shoulders lower, or higher which also reads as
  leaning forward towards the camera).

Geometry is recomputed from raw keypoints on every call so the result can
never drift from the current baseline.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from .keypoints import LEFT_SHOULDER, NOSE, RIGHT_SHOULDER, Frame


class VerdictKind(str, Enum):
    GOOD = "good"
    BAD_POSTURE = "bad_posture"
    NO_POSE_DETECTED = "no_pose_detected"
    KEYPOINTS_MISSING = "keypoints_missing"
    AWAITING_BASELINE = "awaiting_baseline"


class Reason(str, Enum):
    LEANING_FORWARD = "leaning_forward"
    TILTING = "tilting"
    SHOULDERS_LOWER = "shoulders_lower"


# Presentation order for combined reasons
REASON_ORDER = (Reason.LEANING_FORWARD, Reason.TILTING, Reason.SHOULDERS_LOWER)

_REASON_TEXT = {
    Reason.LEANING_FORWARD: "leaning forward",
    Reason.TILTING: "tilting",
    Reason.SHOULDERS_LOWER: "shoulders lower",
}


@dataclass(frozen=True)
class PostureVerdict:
    kind: VerdictKind
    reasons: FrozenSet[Reason] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "reasons", frozenset(self.reasons))
        if self.kind is VerdictKind.BAD_POSTURE and not self.reasons:
            raise ValueError("bad posture verdict needs at least one reason")
        if self.kind is not VerdictKind.BAD_POSTURE and self.reasons:
            raise ValueError(f"{self.kind.value} verdict cannot carry reasons")

    @classmethod
    def bad(cls, reasons: Iterable[Reason]) -> "PostureVerdict":
        return cls(VerdictKind.BAD_POSTURE, frozenset(reasons))

    @property
    def is_good(self) -> bool:
        return self.kind is VerdictKind.GOOD

    @property
    def is_bad(self) -> bool:
        return self.kind is VerdictKind.BAD_POSTURE

    def ordered_reasons(self) -> list[Reason]:
        return [r for r in REASON_ORDER if r in self.reasons]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "reasons": [r.value for r in self.ordered_reasons()],
            "message": describe(self),
        }


GOOD = PostureVerdict(VerdictKind.GOOD)
NO_POSE_DETECTED = PostureVerdict(VerdictKind.NO_POSE_DETECTED)
KEYPOINTS_MISSING = PostureVerdict(VerdictKind.KEYPOINTS_MISSING)
AWAITING_BASELINE = PostureVerdict(VerdictKind.AWAITING_BASELINE)


@dataclass(frozen=True)
class Thresholds:
    """Tolerances in pixels at the keypoint source's native resolution."""

    horizontal: float = 60.0
    level: float = 30.0
    vertical: float = 30.0
    min_score: float = 0.0

    def __post_init__(self) -> None:
        for name in ("horizontal", "level", "vertical", "min_score"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} threshold must be a finite number >= 0, got {value!r}")

    def scaled_for(self, width: float, reference_width: float = 640.0) -> "Thresholds":
        """Scale pixel tolerances to a frame ``width`` wide instead of ``reference_width``."""
        if width <= 0 or reference_width <= 0:
            raise ValueError("widths must be positive")
        factor = float(width) / float(reference_width)
        return replace(
            self,
            horizontal=self.horizontal * factor,
            level=self.level * factor,
            vertical=self.vertical * factor,
        )


@dataclass(frozen=True)
class _Geometry:
    horizontal_offset: float
    shoulder_level_gap: float
    avg_shoulder_y: float


def _geometry(frame: Frame, min_score: float) -> Optional[_Geometry]:
    nose = frame.get(NOSE, min_score)
    left = frame.get(LEFT_SHOULDER, min_score)
    right = frame.get(RIGHT_SHOULDER, min_score)
    if nose is None or left is None or right is None:
        return None
    shoulder_mid_x = (left.x + right.x) / 2
    return _Geometry(
        horizontal_offset=abs(nose.x - shoulder_mid_x),
        shoulder_level_gap=abs(left.y - right.y),
        avg_shoulder_y=(left.y + right.y) / 2,
    )


def classify(
    current: Optional[Frame],
    baseline: Optional[Frame],
    thresholds: Thresholds = Thresholds(),
) -> PostureVerdict:
    """Classify ``current`` against ``baseline``.

    Args:
        current: Live frame, or None when the source detected no pose.
        baseline: Stored ideal posture, or None while calibrating.
        thresholds: Tolerances added to the baseline values.

    Returns:
        The verdict for this frame. Missing keypoints degrade to
        ``KEYPOINTS_MISSING``; this function never raises on bad input frames.
    """
    if current is None:
        return NO_POSE_DETECTED
    if baseline is None:
        return AWAITING_BASELINE

    cur = _geometry(current, thresholds.min_score)
    base = _geometry(baseline, thresholds.min_score)
    if cur is None or base is None:
        return KEYPOINTS_MISSING

    shoulders_lower = cur.avg_shoulder_y > base.avg_shoulder_y + thresholds.vertical
    shoulders_higher = cur.avg_shoulder_y + thresholds.vertical < base.avg_shoulder_y
    leaning_forward = (
        cur.horizontal_offset > base.horizontal_offset + thresholds.horizontal
        or shoulders_higher
    )
    tilting = cur.shoulder_level_gap > base.shoulder_level_gap + thresholds.level

    reasons = set()
    if leaning_forward:
        reasons.add(Reason.LEANING_FORWARD)
    if tilting:
        reasons.add(Reason.TILTING)
    if shoulders_lower:
        reasons.add(Reason.SHOULDERS_LOWER)
    if not reasons:
        return GOOD
    return PostureVerdict.bad(reasons)


def describe(verdict: PostureVerdict) -> str:
    """Human readable status line for a verdict."""
    if verdict.kind is VerdictKind.GOOD:
        return "Good posture"
    if verdict.kind is VerdictKind.NO_POSE_DETECTED:
        return "No pose detected"
    if verdict.kind is VerdictKind.KEYPOINTS_MISSING:
        return "Essential keypoints missing"
    if verdict.kind is VerdictKind.AWAITING_BASELINE:
        return "Set your baseline posture"
    parts = [_REASON_TEXT[r] for r in verdict.ordered_reasons()]
    if len(parts) > 1:
        text = ", ".join(parts[:-1]) + " and " + parts[-1]
    else:
        text = parts[0]
    return text[0].upper() + text[1:]
