"""Monitoring session state machine and its one-shot alert timer.

States: ``idle`` -> ``monitoring_good`` <-> ``monitoring_bad``.

- A bad verdict while good starts one alert timer for the episode.
- A good verdict while bad cancels it.
- When the timer elapses the session emits one alert and one evidence
  capture; it does not repeat until posture recovers and degrades again.
- Non-pose verdicts (no pose, missing keypoints, no baseline) leave the
  state and any pending timer untouched.
"""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Protocol

from loguru import logger

from .classifier import PostureVerdict, Reason, VerdictKind

MIN_ALERT_DELAY_SEC = 1.0


class SessionPhase(str, Enum):
    IDLE = "idle"
    MONITORING_GOOD = "monitoring_good"
    MONITORING_BAD = "monitoring_bad"


@dataclass(frozen=True)
class SessionState:
    active: bool
    bad_posture_since: Optional[float]


@dataclass(frozen=True)
class AlertEvent:
    reasons: FrozenSet[Reason]
    bad_posture_since: float
    fired_at: float


@dataclass(frozen=True)
class Evidence:
    captured_at: float
    reasons: FrozenSet[Reason]
    image: Optional[bytes]


@dataclass
class SessionStats:
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    frames: int = 0
    bad_episodes: int = 0
    alerts: int = 0
    bad_posture_sec: float = 0.0
    verdict_counts: dict = field(default_factory=lambda: {k.value: 0 for k in VerdictKind})


class CancellationToken:
    """Set once; checked by the timer before it emits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class AlertTimer(Protocol):
    token: CancellationToken

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[CancellationToken], None]], AlertTimer]


class ThreadingAlertTimer:
    """One-shot timer backed by ``threading.Timer``; ``cancel`` is idempotent."""

    def __init__(self, delay: float, callback: Callable[[CancellationToken], None]) -> None:
        self.token = CancellationToken()
        self._callback = callback
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True
        self._timer.name = "PostureAlertTimer"

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self.token.cancel()
        self._timer.cancel()

    def _fire(self) -> None:
        if not self.token.cancelled:
            self._callback(self.token)


class PostureSession:
    """Tracks one monitoring session and drives the alert/capture protocol.

    Args:
        alert_delay_sec: Seconds of sustained bad posture before alerting (>= 1).
        on_alert: Called once per sustained episode.
        on_capture: Given the alert, returns the image bytes to store as evidence, or None.
        timer_factory: Builds the one-shot timer; defaults to ``ThreadingAlertTimer``.
        clock: Wall clock in seconds; defaults to ``time.time``.
        lock: Re-entrant lock shared with the owner so updates stay atomic
            with baseline changes.
    """

    def __init__(
        self,
        alert_delay_sec: float = 5.0,
        *,
        on_alert: Optional[Callable[[AlertEvent], None]] = None,
        on_capture: Optional[Callable[[AlertEvent], Optional[bytes]]] = None,
        timer_factory: Optional[TimerFactory] = None,
        clock: Callable[[], float] = time.time,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._alert_delay = _check_delay(alert_delay_sec)
        self._on_alert = on_alert
        self._on_capture = on_capture
        self._timer_factory: TimerFactory = timer_factory or ThreadingAlertTimer
        self._clock = clock
        self._lock = lock or threading.RLock()

        self._phase = SessionPhase.IDLE
        self._bad_since: Optional[float] = None
        self._reasons: FrozenSet[Reason] = frozenset()
        self._pending: Optional[AlertTimer] = None
        self._evidence: List[Evidence] = []
        self._alerts: List[AlertEvent] = []
        self._stats = SessionStats()
        # Bumped on every start so late evidence never lands in a newer session
        self._generation = 0

    # --- Properties ----------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        with self._lock:
            return SessionState(active=self._phase is not SessionPhase.IDLE, bad_posture_since=self._bad_since)

    @property
    def alert_delay_sec(self) -> float:
        return self._alert_delay

    @property
    def timer_pending(self) -> bool:
        return self._pending is not None

    @property
    def evidence(self) -> List[Evidence]:
        with self._lock:
            return list(self._evidence)

    @property
    def alerts(self) -> List[AlertEvent]:
        with self._lock:
            return list(self._alerts)

    @property
    def stats(self) -> SessionStats:
        with self._lock:
            stats = SessionStats(**{**self._stats.__dict__, "verdict_counts": dict(self._stats.verdict_counts)})
            if self._bad_since is not None:
                stats.bad_posture_sec += max(0.0, self._clock() - self._bad_since)
            return stats

    # --- Commands ------------------------------------------------------

    def start(self) -> bool:
        """Begin monitoring. Returns False when a session is already active."""
        with self._lock:
            if self._phase is not SessionPhase.IDLE:
                logger.info("Session start ignored; already {}", self._phase.value)
                return False
            self._evidence = []
            self._alerts = []
            self._stats = SessionStats(started_at=self._clock())
            self._generation += 1
            self._phase = SessionPhase.MONITORING_GOOD
            self._bad_since = None
            logger.info("Posture session started alert_delay={}s", self._alert_delay)
            return True

    def end(self) -> SessionStats:
        """Stop monitoring and return the final stats. Evidence is kept until the next start."""
        with self._lock:
            if self._phase is SessionPhase.IDLE:
                return self.stats
            now = self._clock()
            self._cancel_pending()
            self._close_episode(now)
            self._phase = SessionPhase.IDLE
            self._stats.ended_at = now
            logger.info(
                "Posture session ended frames={} episodes={} alerts={}",
                self._stats.frames,
                self._stats.bad_episodes,
                self._stats.alerts,
            )
            return self.stats

    def set_alert_delay(self, seconds: float) -> None:
        """Change the delay used by the next episode's timer."""
        with self._lock:
            self._alert_delay = _check_delay(seconds)

    def update(self, verdict: PostureVerdict) -> SessionPhase:
        """Apply one frame's verdict and return the resulting phase."""
        with self._lock:
            if self._phase is SessionPhase.IDLE:
                return self._phase
            self._stats.frames += 1
            self._stats.verdict_counts[verdict.kind.value] = self._stats.verdict_counts.get(verdict.kind.value, 0) + 1

            if verdict.is_bad:
                self._reasons = verdict.reasons
                if self._phase is SessionPhase.MONITORING_GOOD:
                    self._enter_bad()
            elif verdict.is_good:
                if self._phase is SessionPhase.MONITORING_BAD:
                    self._enter_good()
            return self._phase

    def close(self) -> None:
        """Release the pending timer; safe to call more than once."""
        with self._lock:
            self._cancel_pending()

    def __enter__(self) -> "PostureSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Internal helpers ----------------------------------------------

    def _enter_bad(self) -> None:
        self._phase = SessionPhase.MONITORING_BAD
        self._bad_since = self._clock()
        self._stats.bad_episodes += 1
        timer = self._timer_factory(self._alert_delay, self._on_timer)
        self._pending = timer
        timer.start()
        logger.debug("Bad posture reasons={} timer={}s", sorted(r.value for r in self._reasons), self._alert_delay)

    def _enter_good(self) -> None:
        self._cancel_pending()
        self._close_episode(self._clock())
        self._phase = SessionPhase.MONITORING_GOOD
        logger.debug("Posture recovered")

    def _close_episode(self, now: float) -> None:
        if self._bad_since is not None:
            self._stats.bad_posture_sec += max(0.0, now - self._bad_since)
        self._bad_since = None
        self._reasons = frozenset()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_timer(self, token: CancellationToken) -> None:
        with self._lock:
            pending = self._pending
            if pending is None or pending.token is not token or token.cancelled:
                return
            self._pending = None
            if self._phase is not SessionPhase.MONITORING_BAD or self._bad_since is None:
                return
            now = self._clock()
            event = AlertEvent(reasons=self._reasons, bad_posture_since=self._bad_since, fired_at=now)
            self._alerts.append(event)
            self._stats.alerts += 1
            generation = self._generation
            logger.warning(
                "Bad posture sustained for {:.1f}s reasons={}",
                now - self._bad_since,
                sorted(r.value for r in self._reasons),
            )

        # Sinks may block on encoding or disk; frames keep flowing meanwhile
        if self._on_alert is not None:
            try:
                self._on_alert(event)
            except Exception as exc:
                logger.warning("Alert sink failed: {}", exc)
        image: Optional[bytes] = None
        if self._on_capture is not None:
            try:
                image = self._on_capture(event)
            except Exception as exc:
                logger.warning("Evidence capture failed: {}", exc)

        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping evidence from a previous session")
                return
            self._evidence.append(Evidence(captured_at=event.fired_at, reasons=event.reasons, image=image))


def _check_delay(seconds: float) -> float:
    value = float(seconds)
    if not math.isfinite(value) or value < MIN_ALERT_DELAY_SEC:
        raise ValueError(f"alert delay must be a finite number of seconds >= {MIN_ALERT_DELAY_SEC:g}, got {value!r}")
    return value
