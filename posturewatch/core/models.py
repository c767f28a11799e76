"""ORM models for persistence."""
from __future__ import annotations

from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, Float

from .db import Base


class PostureConfig(Base):
    __tablename__ = "posture_config"

    id = Column(Integer, primary_key=True, default=1)
    alert_delay_sec = Column(Float, default=5.0)
    horizontal_threshold = Column(Float, default=60.0)
    level_threshold = Column(Float, default=30.0)
    vertical_threshold = Column(Float, default=30.0)
    # Width of the client video the thresholds are scaled to; NULL means the reference width
    viewport_width = Column(Integer, nullable=True)
    updated_at_utc = Column(DateTime, default=datetime.utcnow)


class PostureSessionRecord(Base):
    __tablename__ = "posture_session"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at_utc = Column(DateTime, default=datetime.utcnow)
    ended_at_utc = Column(DateTime, nullable=True)
    duration_sec = Column(Integer, default=0)
    frames = Column(Integer, default=0)
    bad_episodes = Column(Integer, default=0)
    alerts = Column(Integer, default=0)
    bad_posture_sec = Column(Float, default=0.0)
    evidence_count = Column(Integer, default=0)
