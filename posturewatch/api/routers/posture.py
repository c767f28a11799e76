"""Posture analysis endpoint router.

Owns the shared keypoint source and posture engine used by the other routers.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter
from loguru import logger

from posturewatch.api.schemas import Envelope, PostureInput, PostureOutput
from posturewatch.core.config import get_settings
from posturewatch.posture import AlertEvent, Frame, Keypoint, PostureMonitor, Thresholds
from posturewatch.storage.evidence import save_evidence_image
from posturewatch.vision.pipeline import PoseSource

router = APIRouter()

settings = get_settings()

pose_source = PoseSource()


def _on_alert(event: AlertEvent) -> None:
    logger.warning(
        "Posture alert: bad posture for {:.1f}s ({})",
        event.fired_at - event.bad_posture_since,
        ", ".join(sorted(r.value for r in event.reasons)),
    )


def _on_capture(event: AlertEvent) -> Optional[bytes]:
    image = pose_source.capture_jpeg()
    if image is not None and settings.evidence_persist:
        save_evidence_image(image, [r.value for r in event.reasons], captured_at=event.fired_at)
    return image


monitor = PostureMonitor(
    Thresholds(
        horizontal=settings.horizontal_threshold,
        level=settings.level_threshold,
        vertical=settings.vertical_threshold,
        min_score=settings.min_keypoint_score,
    ),
    alert_delay_sec=settings.alert_delay_sec,
    on_alert=_on_alert,
    on_capture=_on_capture,
)


@router.post("/posture", response_model=Envelope)
async def posture_endpoint(payload: PostureInput) -> Envelope:
    """Classify one frame and advance the monitoring session.

    Client keypoints take precedence; without them one frame is pulled from
    the server-side pose source.
    """
    if not payload.pose_detected:
        frame, source = None, "client"
    elif payload.keypoints is not None:
        frame = Frame.of(Keypoint(k.name, k.x, k.y, k.score) for k in payload.keypoints)
        source = "client"
    else:
        frame, _ = pose_source.read()
        source = "mock" if pose_source.mock else "camera"

    verdict = monitor.process(frame)
    state = monitor.state
    logger.debug("posture frame={} source={} verdict={}", payload.frame_id, source, verdict.kind.value)
    out = PostureOutput(
        frame_id=payload.frame_id,
        source=source,
        verdict=verdict.to_dict(),
        phase=monitor.phase.value,
        active=state.active,
        bad_posture_since=state.bad_posture_since,
        baseline_set=monitor.baseline.is_set,
        keypoints=frame.to_dicts() if frame is not None else [],
    )
    return Envelope(success=True, data=out.model_dump())
