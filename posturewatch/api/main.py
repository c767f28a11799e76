"""FastAPI application exposing REST endpoints for posture monitoring.

Endpoints:
- POST /posture: classify one keypoint frame (JSON)
- GET/POST/DELETE /baseline: capture or clear the ideal posture
- /session/*: start/stop monitoring, alerts, evidence and history
- GET/POST /config: alert delay and thresholds

This module wires sub-routers from domain modules and provides a health check.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from posturewatch.core.config import get_settings
from posturewatch.core.logging_config import add_file_sink
from posturewatch.core.frame_loop import FrameLoop
from posturewatch.api.routers.posture import router as posture_router, monitor, pose_source
from posturewatch.api.routers.baseline import router as baseline_router
from posturewatch.api.routers.config_router import router as config_router, apply_config
from posturewatch.api.routers.session import router as session_router
from posturewatch.core.db import engine, Base, SessionLocal
from posturewatch.core.dal import get_posture_config

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure DB tables exist
    Base.metadata.create_all(bind=engine)
    # Configure file logging
    logs_dir = Path(__file__).resolve().parent.parent / "data" / "logs"
    sink_id = add_file_sink(logs_dir)
    # Restore persisted alert delay / thresholds
    db = SessionLocal()
    try:
        apply_config(get_posture_config(db))
    except Exception as exc:  # pragma: no cover
        logger.warning("Could not restore posture config: {}", exc)
    finally:
        db.close()
    frame_loop: FrameLoop | None = None
    if settings.frame_loop_enabled:
        frame_loop = FrameLoop(pose_source, monitor, hz=settings.frame_loop_hz)
        frame_loop.start()
        app.state.frame_loop = frame_loop
    yield
    # Shutdown: stop feeding frames, then release timers and the camera
    if frame_loop is not None:
        frame_loop.stop()
        delattr(app.state, "frame_loop")
    monitor.close()
    pose_source.close()
    logger.remove(sink_id)


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.exposed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/health")
async def health() -> dict:
    """Return API health status."""

    return {"status": "ok", "mock_source": pose_source.mock}


# Routers
app.include_router(posture_router, prefix="", tags=["posture"])
app.include_router(baseline_router, prefix="", tags=["baseline"])
app.include_router(session_router, prefix="", tags=["session"])
app.include_router(config_router, prefix="", tags=["config"])
