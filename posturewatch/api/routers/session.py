"""Session control endpoints.

Provides start/stop controls, evidence review, persistence, and history endpoints.
"""
from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.orm import Session

from posturewatch.core.db import get_db
from posturewatch.core.dal import (
    add_posture_session,
    get_last_posture_session,
    get_posture_session_history,
)
from posturewatch.api.schemas import Envelope, PostureSessionOutput
from posturewatch.api.routers.posture import monitor
from posturewatch.posture import SessionStats
from posturewatch.storage.evidence import list_evidence

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _mark_command(name: str) -> None:
    _state["last_command"] = name
    _state["last_command_ts"] = _now()


def _stats_payload(stats: SessionStats) -> dict[str, Any]:
    return {
        "frames": stats.frames,
        "bad_episodes": stats.bad_episodes,
        "alerts": stats.alerts,
        "bad_posture_sec": round(stats.bad_posture_sec, 2),
        "verdict_counts": dict(stats.verdict_counts),
    }


_state: dict[str, Any] = {
    "started_at": None,
    "last_command": None,
    "last_command_ts": None,
    "last_summary": None,
}


@router.post("/session/start", response_model=Envelope)
def session_start() -> Envelope:
    if not monitor.start_session():
        return Envelope(success=False, data={"status": monitor.phase.value}, error="session_already_active")
    now = _now()
    _state.update({"started_at": now, "last_summary": None})
    _mark_command("start")
    return Envelope(
        success=True,
        data={
            "status": monitor.phase.value,
            "started_at": now.isoformat(),
            "alert_delay_sec": monitor.session.alert_delay_sec,
            "baseline_set": monitor.baseline.is_set,
        },
    )


@router.post("/session/stop", response_model=Envelope)
def session_stop(db: Session = Depends(get_db)) -> Envelope:
    started = _state.get("started_at")
    if not isinstance(started, datetime) or not monitor.state.active:
        return Envelope(success=False, error="no_active_session")

    stats = monitor.end_session()
    now = _now()
    duration = max(0, int((now - started).total_seconds()))
    evidence_count = len(monitor.session.evidence)

    try:
        add_posture_session(
            db,
            started_at_utc=started.replace(tzinfo=None),
            ended_at_utc=now.replace(tzinfo=None),
            duration_sec=duration,
            frames=stats.frames,
            bad_episodes=stats.bad_episodes,
            alerts=stats.alerts,
            bad_posture_sec=stats.bad_posture_sec,
            evidence_count=evidence_count,
        )
    except Exception as exc:  # pragma: no cover - persistence fallback
        logger.warning("Failed to persist posture session: {}", exc)

    summary = {"duration_sec": duration, "evidence_count": evidence_count, **_stats_payload(stats)}
    _state.update({"started_at": None, "last_summary": summary})
    _mark_command("stop")
    logger.info("Session stopped duration={} alerts={}", duration, stats.alerts)
    return Envelope(success=True, data=summary)


@router.get("/session/status", response_model=Envelope)
def session_status() -> Envelope:
    started = _state.get("started_at")
    now = _now()
    state = monitor.state
    verdict = monitor.last_verdict
    return Envelope(
        success=True,
        data={
            "status": monitor.phase.value,
            "active": state.active,
            "bad_posture_since": state.bad_posture_since,
            "timer_pending": monitor.session.timer_pending,
            "alert_delay_sec": monitor.session.alert_delay_sec,
            "baseline_set": monitor.baseline.is_set,
            "last_verdict": verdict.to_dict() if verdict is not None else None,
            "started_at": started.isoformat() if isinstance(started, datetime) else None,
            "duration_sec": max(0, int((now - started).total_seconds())) if isinstance(started, datetime) else 0,
            "stats": _stats_payload(monitor.session.stats),
            "alerts": [
                {
                    "reasons": sorted(r.value for r in a.reasons),
                    "bad_posture_since": a.bad_posture_since,
                    "fired_at": a.fired_at,
                }
                for a in monitor.session.alerts
            ],
            "last_command": _state.get("last_command"),
            "last_command_ts": (
                _state["last_command_ts"].isoformat() if isinstance(_state.get("last_command_ts"), datetime) else None
            ),
            "session_summary": _state.get("last_summary"),
        },
    )


@router.get("/session/evidence", response_model=Envelope)
def session_evidence() -> Envelope:
    items = [
        {
            "captured_at": ev.captured_at,
            "reasons": sorted(r.value for r in ev.reasons),
            "image_b64": base64.b64encode(ev.image).decode("ascii") if ev.image else None,
        }
        for ev in monitor.session.evidence
    ]
    return Envelope(success=True, data={"evidence": items, "count": len(items)})


@router.get("/session/evidence/saved", response_model=Envelope)
def session_evidence_saved() -> Envelope:
    items = list_evidence()
    return Envelope(success=True, data={"evidence": items, "count": len(items)})


@router.get("/session/last", response_model=Envelope)
def session_last(db: Session = Depends(get_db)) -> Envelope:
    row = get_last_posture_session(db)
    if not row:
        return Envelope(success=True, data=None)
    payload = PostureSessionOutput.model_validate(row)
    return Envelope(success=True, data=payload.model_dump(by_alias=True))


@router.get("/session/history", response_model=Envelope)
def session_history(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=100),
) -> Envelope:
    rows = get_posture_session_history(db, limit=limit)
    items = [
        PostureSessionOutput.model_validate(row).model_dump(by_alias=True)
        for row in rows
    ]
    return Envelope(success=True, data={"sessions": items, "count": len(items)})
