"""Config endpoint router for reading/writing runtime posture configuration."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException
from loguru import logger
from sqlalchemy.orm import Session

from posturewatch.api.schemas import Envelope, ConfigInput, ConfigOutput
from posturewatch.api.routers.posture import monitor
from posturewatch.core.config import get_settings
from posturewatch.core.db import get_db, Base, engine
from posturewatch.core.models import PostureConfig
from posturewatch.core.dal import get_posture_config, save_posture_config
from posturewatch.posture import Thresholds

router = APIRouter()

# Ensure tables exist at import time (idempotent)
Base.metadata.create_all(bind=engine)


def apply_config(cfg: PostureConfig) -> Thresholds:
    """Push a stored configuration into the running engine.

    Thresholds are scaled to the stored viewport width, if any.
    """
    s = get_settings()
    thresholds = Thresholds(
        horizontal=cfg.horizontal_threshold,
        level=cfg.level_threshold,
        vertical=cfg.vertical_threshold,
        min_score=s.min_keypoint_score,
    )
    if cfg.viewport_width:
        thresholds = thresholds.scaled_for(cfg.viewport_width, s.reference_width)
    monitor.set_thresholds(thresholds)
    monitor.set_alert_delay(cfg.alert_delay_sec)
    return thresholds


def _output(cfg: PostureConfig) -> ConfigOutput:
    t = monitor.thresholds
    return ConfigOutput(
        alert_delay_sec=cfg.alert_delay_sec,
        horizontal_threshold=cfg.horizontal_threshold,
        level_threshold=cfg.level_threshold,
        vertical_threshold=cfg.vertical_threshold,
        viewport_width=cfg.viewport_width,
        effective_thresholds={"horizontal": t.horizontal, "level": t.level, "vertical": t.vertical},
    )


@router.get("/config", response_model=Envelope)
async def get_config(db: Session = Depends(get_db)) -> Envelope:
    cfg = get_posture_config(db)
    return Envelope(success=True, data=_output(cfg).model_dump())


@router.post("/config", response_model=Envelope)
async def set_config(
    payload: ConfigInput,
    db: Session = Depends(get_db),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> Envelope:
    s = get_settings()
    if getattr(s, "api_key", None) and x_api_key != s.api_key:
        raise HTTPException(status_code=401, detail="invalid_api_key")
    cfg = save_posture_config(
        db,
        alert_delay_sec=payload.alert_delay_sec,
        horizontal_threshold=payload.horizontal_threshold,
        level_threshold=payload.level_threshold,
        vertical_threshold=payload.vertical_threshold,
        viewport_width=payload.viewport_width,
    )
    apply_config(cfg)
    logger.info("Posture config updated delay={}s viewport={}", cfg.alert_delay_sec, cfg.viewport_width)
    return Envelope(success=True, data=_output(cfg).model_dump())
