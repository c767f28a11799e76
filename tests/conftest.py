from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Must be set before posturewatch.core.config is imported
_TMP = Path(tempfile.mkdtemp(prefix="posturewatch-tests-"))
os.environ.setdefault("VISION_MOCK", "1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'test.db'}")
os.environ.setdefault("ALERT_DELAY_SEC", "5")

from posturewatch.posture import CancellationToken, Frame, Keypoint, Thresholds  # noqa: E402


class ManualTimer:
    """Timer double: records its delay and fires only when told to."""

    def __init__(self, delay: float, callback: Callable[[CancellationToken], None]) -> None:
        self.delay = delay
        self.token = CancellationToken()
        self._callback = callback
        self.started = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.token.cancel()

    def fire(self) -> None:
        self._callback(self.token)


class TimerRecorder:
    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[CancellationToken], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_frame(nose=(100.0, 50.0), left=(80.0, 100.0), right=(120.0, 100.0), **extra) -> Frame:
    kps = [
        Keypoint("nose", *nose),
        Keypoint("left_shoulder", *left),
        Keypoint("right_shoulder", *right),
    ]
    kps.extend(Keypoint(name, *xy) for name, xy in extra.items())
    return Frame.of(kps)


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def baseline_frame() -> Frame:
    return make_frame()


@pytest.fixture
def posture_monitor():
    """Shared API engine, returned to idle with default settings after each test."""
    from posturewatch.api.routers.posture import monitor

    yield monitor
    monitor.end_session()
    monitor.reset_baseline()
    monitor.set_thresholds(Thresholds())
    monitor.set_alert_delay(5.0)


@pytest_asyncio.fixture
async def client(posture_monitor):
    from posturewatch.api.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
