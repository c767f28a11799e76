"""Logging configuration using loguru."""
from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stdout, level=level)


def add_file_sink(logs_dir: Path) -> int:
    """Attach the rotating application log file and return the sink id."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logger.add(
        logs_dir / "app.log",
        rotation="5 MB",
        retention="7 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
