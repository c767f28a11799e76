"""Baseline (ideal posture) capture endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from loguru import logger

from posturewatch.api.schemas import Envelope
from posturewatch.api.routers.posture import monitor
from posturewatch.posture import Frame, REQUIRED_KEYPOINTS

router = APIRouter()


def _summary(frame: Optional[Frame]) -> dict:
    if frame is None:
        return {"baseline_set": False, "keypoints": [], "missing": list(REQUIRED_KEYPOINTS)}
    present = {kp.name for kp in frame.keypoints}
    return {
        "baseline_set": True,
        "keypoints": [
            {"name": kp.name, "x": kp.x, "y": kp.y, "score": kp.score}
            for kp in frame.subset(REQUIRED_KEYPOINTS)
        ],
        "missing": [name for name in REQUIRED_KEYPOINTS if name not in present],
    }


@router.get("/baseline", response_model=Envelope)
def get_baseline() -> Envelope:
    return Envelope(success=True, data=_summary(monitor.baseline.get()))


@router.post("/baseline", response_model=Envelope)
def save_baseline() -> Envelope:
    """Store the most recently processed frame as the ideal posture."""
    saved = monitor.save_baseline()
    if saved is None:
        return Envelope(success=False, data=_summary(None), error="no_pose_detected")
    logger.info("Baseline captured via API")
    return Envelope(success=True, data=_summary(saved))


@router.delete("/baseline", response_model=Envelope)
def reset_baseline() -> Envelope:
    monitor.reset_baseline()
    return Envelope(success=True, data=_summary(None))
