"""Posture evaluation engine exports."""

from .baseline import BaselineStore
from .classifier import (
    AWAITING_BASELINE,
    GOOD,
    KEYPOINTS_MISSING,
    NO_POSE_DETECTED,
    PostureVerdict,
    Reason,
    Thresholds,
    VerdictKind,
    classify,
    describe,
)
from .engine import PostureMonitor
from .keypoints import Frame, Keypoint, REQUIRED_KEYPOINTS
from .session import (
    AlertEvent,
    CancellationToken,
    Evidence,
    PostureSession,
    SessionPhase,
    SessionState,
    SessionStats,
    ThreadingAlertTimer,
)

__all__ = [
    "AWAITING_BASELINE",
    "GOOD",
    "KEYPOINTS_MISSING",
    "NO_POSE_DETECTED",
    "AlertEvent",
    "BaselineStore",
    "CancellationToken",
    "Evidence",
    "Frame",
    "Keypoint",
    "PostureMonitor",
    "PostureSession",
    "PostureVerdict",
    "REQUIRED_KEYPOINTS",
    "Reason",
    "SessionPhase",
    "SessionState",
    "SessionStats",
    "ThreadingAlertTimer",
    "Thresholds",
    "VerdictKind",
    "classify",
    "describe",
]
