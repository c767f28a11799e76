"""Data access layer utilities."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .config import get_settings
from .models import PostureConfig, PostureSessionRecord


def get_posture_config(db: Session) -> PostureConfig:
    cfg = db.query(PostureConfig).filter(PostureConfig.id == 1).first()
    if not cfg:
        s = get_settings()
        cfg = PostureConfig(
            id=1,
            alert_delay_sec=s.alert_delay_sec,
            horizontal_threshold=s.horizontal_threshold,
            level_threshold=s.level_threshold,
            vertical_threshold=s.vertical_threshold,
        )
        db.add(cfg)
        db.commit()
        db.refresh(cfg)
    return cfg


def save_posture_config(db: Session, **kwargs) -> PostureConfig:
    cfg = get_posture_config(db)
    for k, v in kwargs.items():
        if hasattr(cfg, k) and v is not None:
            setattr(cfg, k, v)
    cfg.updated_at_utc = datetime.utcnow()
    db.add(cfg)
    db.commit()
    db.refresh(cfg)
    return cfg


def add_posture_session(
    db: Session,
    *,
    started_at_utc: datetime,
    ended_at_utc: datetime,
    duration_sec: int,
    frames: int,
    bad_episodes: int,
    alerts: int,
    bad_posture_sec: float,
    evidence_count: int,
) -> PostureSessionRecord:
    row = PostureSessionRecord(
        started_at_utc=started_at_utc,
        ended_at_utc=ended_at_utc,
        duration_sec=duration_sec,
        frames=frames,
        bad_episodes=bad_episodes,
        alerts=alerts,
        bad_posture_sec=bad_posture_sec,
        evidence_count=evidence_count,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_last_posture_session(db: Session) -> Optional[PostureSessionRecord]:
    return db.query(PostureSessionRecord).order_by(PostureSessionRecord.id.desc()).first()


def get_posture_session_history(db: Session, limit: int = 10) -> List[PostureSessionRecord]:
    return (
        db.query(PostureSessionRecord)
        .order_by(PostureSessionRecord.id.desc())
        .limit(max(1, int(limit)))
        .all()
    )
