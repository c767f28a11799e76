"""Posture evaluation engine: baseline store + classifier + session under one lock."""
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from loguru import logger

from .baseline import BaselineStore
from .classifier import PostureVerdict, Thresholds, classify
from .keypoints import Frame
from .session import (
    AlertEvent,
    PostureSession,
    SessionPhase,
    SessionState,
    SessionStats,
    TimerFactory,
)


class PostureMonitor:
    """Entry point fed once per keypoint frame.

    Every command and every ``process`` call holds the same re-entrant lock,
    so a classify-then-transition step never interleaves with a baseline
    save/reset or a session start/end issued from another thread.
    """

    def __init__(
        self,
        thresholds: Optional[Thresholds] = None,
        alert_delay_sec: float = 5.0,
        *,
        on_alert: Optional[Callable[[AlertEvent], None]] = None,
        on_capture: Optional[Callable[[AlertEvent], Optional[bytes]]] = None,
        timer_factory: Optional[TimerFactory] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lock = threading.RLock()
        self._thresholds = thresholds or Thresholds()
        self.baseline = BaselineStore()
        self.session = PostureSession(
            alert_delay_sec,
            on_alert=on_alert,
            on_capture=on_capture,
            timer_factory=timer_factory,
            clock=clock,
            lock=self._lock,
        )
        self._latest_frame: Optional[Frame] = None
        self._last_verdict: Optional[PostureVerdict] = None

    # --- Per-frame -----------------------------------------------------

    def process(self, frame: Optional[Frame]) -> PostureVerdict:
        """Classify ``frame`` (None when no pose was detected) and advance the session."""
        with self._lock:
            self._latest_frame = frame
            verdict = classify(frame, self.baseline.get(), self._thresholds)
            self._last_verdict = verdict
            self.session.update(verdict)
            return verdict

    # --- User commands -------------------------------------------------

    def save_baseline(self) -> Optional[Frame]:
        """Store the most recent frame as the baseline and return it.

        When the latest frame had no pose the baseline is cleared, which
        leaves the engine in calibration mode.
        """
        with self._lock:
            if self._latest_frame is None:
                logger.warning("Save baseline requested without a detected pose")
                self.baseline.reset()
                return None
            self.baseline.save(self._latest_frame)
            return self.baseline.get()

    def reset_baseline(self) -> None:
        with self._lock:
            self.baseline.reset()

    def start_session(self) -> bool:
        with self._lock:
            return self.session.start()

    def end_session(self) -> SessionStats:
        with self._lock:
            return self.session.end()

    def set_alert_delay(self, seconds: float) -> None:
        with self._lock:
            self.session.set_alert_delay(seconds)

    def set_thresholds(self, thresholds: Thresholds) -> None:
        with self._lock:
            self._thresholds = thresholds

    # --- Accessors -----------------------------------------------------

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    @property
    def latest_frame(self) -> Optional[Frame]:
        return self._latest_frame

    @property
    def last_verdict(self) -> Optional[PostureVerdict]:
        return self._last_verdict

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    @property
    def state(self) -> SessionState:
        return self.session.state

    # --- context -------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self.session.close()

    def __enter__(self) -> "PostureMonitor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
