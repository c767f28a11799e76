"""Pydantic schemas for request/response payloads.

All endpoints use a standardized JSON envelope: {"success": bool, "data": any, "error": str|None}
"""
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


class Envelope(BaseModel):
    success: bool = True
    data: Optional[dict] = None
    error: Optional[str] = None


class KeypointIn(BaseModel):
    name: str
    x: float = Field(allow_inf_nan=False)
    y: float = Field(allow_inf_nan=False)
    score: float = Field(ge=0.0, le=1.0, default=1.0)


class PostureInput(BaseModel):
    frame_id: Optional[str] = None
    # False signals the client's detector found no pose this cycle
    pose_detected: bool = True
    # Omitted: pull one frame from the server-side pose source
    keypoints: Optional[List[KeypointIn]] = None


class VerdictOut(BaseModel):
    kind: str
    reasons: List[str]
    message: str


class PostureOutput(BaseModel):
    frame_id: Optional[str] = None
    source: str
    verdict: VerdictOut
    phase: str
    active: bool
    bad_posture_since: Optional[float] = None
    baseline_set: bool
    keypoints: List[KeypointIn] = []


class ConfigInput(BaseModel):
    alert_delay_sec: Optional[float] = Field(default=None, ge=1.0, allow_inf_nan=False)
    horizontal_threshold: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    level_threshold: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    vertical_threshold: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False)
    # Scale thresholds for a smaller/larger video than the reference width
    viewport_width: Optional[int] = Field(default=None, gt=0)


class ConfigOutput(BaseModel):
    alert_delay_sec: float
    horizontal_threshold: float
    level_threshold: float
    vertical_threshold: float
    viewport_width: Optional[int] = None
    effective_thresholds: dict[str, float]


class PostureSessionOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: int = Field(alias="id")
    started_at_utc: datetime
    ended_at_utc: datetime | None = None
    duration_sec: int
    frames: int
    bad_episodes: int
    alerts: int
    bad_posture_sec: float
    evidence_count: int
