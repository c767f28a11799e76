"""FrameLoop: feeds the posture engine from the keypoint source.

- Reads PoseSource at a fixed rate and hands every frame to PostureMonitor.process()
- Runs in a daemon thread; ``step()`` performs a single iteration synchronously
- Frames are processed strictly one after another, never concurrently
"""
from __future__ import annotations

import threading
import time
from typing import Optional

from loguru import logger

from posturewatch.posture import PostureMonitor, PostureVerdict
from posturewatch.vision.pipeline import PoseSource


class FrameLoop:
    def __init__(self, source: PoseSource, monitor: PostureMonitor, hz: float = 15.0) -> None:
        self.source = source
        self.monitor = monitor
        self.hz = max(0.5, float(hz))
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.frames_processed = 0

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="FrameLoop", daemon=True)
        self._thread.start()
        logger.info("Frame loop started hz={}", self.hz)

    def step(self) -> PostureVerdict:
        frame, _ = self.source.read()
        verdict = self.monitor.process(frame)
        self.frames_processed += 1
        return verdict

    def _run(self) -> None:
        dt = 1.0 / self.hz
        while not self._stop.is_set():
            t0 = time.perf_counter()
            try:
                self.step()
            except Exception as exc:
                logger.warning("Frame loop iteration failed: {}", exc)
            remain = dt - (time.perf_counter() - t0)
            if remain > 0:
                self._stop.wait(remain)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("Frame loop stopped frames={}", self.frames_processed)
