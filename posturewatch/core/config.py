"""Core configuration and constants.

Uses environment variables for configuration. Follows PEP8 and Google style docstrings.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
import os

from pydantic import BaseModel


DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: App display name.
        environment: Runtime environment.
        api_host: Host for FastAPI server.
        api_port: Port for FastAPI server.
        log_level: Logging level string.
        database_url: SQLAlchemy URL for session history and runtime config.
        horizontal_threshold: Allowed growth of the nose/shoulder-midpoint offset (px).
        level_threshold: Allowed growth of the left/right shoulder height gap (px).
        vertical_threshold: Allowed shift of the average shoulder height (px).
        min_keypoint_score: Keypoints scored below this are treated as missing.
        reference_width: Frame width the thresholds are expressed for.
        alert_delay_sec: Seconds of sustained bad posture before alerting.
    """

    app_name: str = os.getenv("APP_NAME", "PostureWatch")
    environment: Literal["dev", "prod", "test"] = os.getenv("ENVIRONMENT", "dev")  # type: ignore[assignment]

    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Security & CORS
    api_key: str | None = os.getenv("API_KEY")
    exposed_origins: list[str] = (
        os.getenv("EXPOSED_ORIGINS", "*").split(",") if os.getenv("EXPOSED_ORIGINS") else ["*"]
    )

    database_url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'posturewatch.db'}")

    # Posture classification
    horizontal_threshold: float = float(os.getenv("HORIZONTAL_THRESHOLD", "60"))
    level_threshold: float = float(os.getenv("LEVEL_THRESHOLD", "30"))
    vertical_threshold: float = float(os.getenv("VERTICAL_THRESHOLD", "30"))
    min_keypoint_score: float = float(os.getenv("MIN_KEYPOINT_SCORE", "0.0"))
    reference_width: int = int(os.getenv("REFERENCE_WIDTH", "640"))
    alert_delay_sec: float = float(os.getenv("ALERT_DELAY_SEC", "5"))

    # Vision / keypoint source
    camera_index: int = int(os.getenv("CAMERA_INDEX", "0"))
    camera_width: int = int(os.getenv("CAMERA_WIDTH", "640"))
    camera_height: int = int(os.getenv("CAMERA_HEIGHT", "480"))
    model_complexity: int = int(os.getenv("MODEL_COMPLEXITY", "0"))
    vision_mock: bool = _flag("VISION_MOCK")
    frame_loop_enabled: bool = _flag("FRAME_LOOP_ENABLED")
    frame_loop_hz: float = float(os.getenv("FRAME_LOOP_HZ", "15"))

    # Evidence capture
    evidence_persist: bool = _flag("EVIDENCE_PERSIST")
    evidence_jpeg_quality: int = int(os.getenv("EVIDENCE_JPEG_QUALITY", "70"))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
