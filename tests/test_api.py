from __future__ import annotations

import asyncio

import pytest

UPRIGHT = [
    {"name": "nose", "x": 320.0, "y": 150.0, "score": 0.95},
    {"name": "left_shoulder", "x": 400.0, "y": 260.0, "score": 0.9},
    {"name": "right_shoulder", "x": 240.0, "y": 260.0, "score": 0.9},
]
SLOUCHED = [
    {"name": "nose", "x": 420.0, "y": 200.0, "score": 0.95},
    {"name": "left_shoulder", "x": 400.0, "y": 260.0, "score": 0.9},
    {"name": "right_shoulder", "x": 240.0, "y": 260.0, "score": 0.9},
]


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["mock_source"] is True


@pytest.mark.asyncio
async def test_posture_from_server_source(client):
    r = await client.post("/posture", json={})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    d = body["data"]
    assert d["source"] == "mock"
    assert d["verdict"]["kind"] == "awaiting_baseline"
    assert d["phase"] == "idle"
    assert {kp["name"] for kp in d["keypoints"]} >= {"nose", "left_shoulder", "right_shoulder"}


@pytest.mark.asyncio
async def test_posture_without_pose(client):
    r = await client.post("/posture", json={"frame_id": "f1", "pose_detected": False})
    d = r.json()["data"]
    assert d["frame_id"] == "f1"
    assert d["verdict"]["kind"] == "no_pose_detected"
    assert d["keypoints"] == []


@pytest.mark.asyncio
async def test_posture_rejects_bad_score(client):
    bad = [dict(UPRIGHT[0], score=1.5)]
    r = await client.post("/posture", json={"keypoints": bad})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_baseline_roundtrip(client):
    empty = (await client.get("/baseline")).json()["data"]
    assert empty["baseline_set"] is False
    assert empty["missing"] == ["nose", "left_shoulder", "right_shoulder"]

    await client.post("/posture", json={"keypoints": UPRIGHT})
    saved = await client.post("/baseline")
    body = saved.json()
    assert body["success"] is True
    assert body["data"]["baseline_set"] is True
    assert body["data"]["missing"] == []

    good = (await client.post("/posture", json={"keypoints": UPRIGHT})).json()["data"]
    assert good["verdict"] == {"kind": "good", "reasons": [], "message": "Good posture"}
    assert good["baseline_set"] is True

    bad = (await client.post("/posture", json={"keypoints": SLOUCHED})).json()["data"]
    assert bad["verdict"]["kind"] == "bad_posture"
    assert bad["verdict"]["reasons"] == ["leaning_forward"]

    cleared = (await client.delete("/baseline")).json()["data"]
    assert cleared["baseline_set"] is False


@pytest.mark.asyncio
async def test_save_baseline_without_pose(client):
    await client.post("/posture", json={"pose_detected": False})
    r = await client.post("/baseline")
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "no_pose_detected"


@pytest.mark.asyncio
async def test_session_lifecycle(client):
    await client.post("/posture", json={"keypoints": UPRIGHT})
    await client.post("/baseline")

    r = await client.post("/session/start")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "monitoring_good"
    assert data["baseline_set"] is True

    again = (await client.post("/session/start")).json()
    assert again["success"] is False
    assert again["error"] == "session_already_active"

    bad = (await client.post("/posture", json={"keypoints": SLOUCHED})).json()["data"]
    assert bad["phase"] == "monitoring_bad"
    assert bad["bad_posture_since"] is not None

    status = (await client.get("/session/status")).json()["data"]
    assert status["status"] == "monitoring_bad"
    assert status["timer_pending"] is True
    assert status["last_verdict"]["kind"] == "bad_posture"
    assert status["session_summary"] is None

    good = (await client.post("/posture", json={"keypoints": UPRIGHT})).json()["data"]
    assert good["phase"] == "monitoring_good"
    assert good["bad_posture_since"] is None

    stop = (await client.post("/session/stop")).json()
    assert stop["success"] is True
    summary = stop["data"]
    assert summary["frames"] == 2
    assert summary["bad_episodes"] == 1
    assert summary["alerts"] == 0

    after = (await client.get("/session/status")).json()["data"]
    assert after["status"] == "idle"
    assert after["active"] is False
    assert after["session_summary"]["frames"] == 2

    again_stop = (await client.post("/session/stop")).json()
    assert again_stop["success"] is False
    assert again_stop["error"] == "no_active_session"

    last = (await client.get("/session/last")).json()["data"]
    assert last["frames"] == 2
    assert last["bad_episodes"] == 1

    history = (await client.get("/session/history?limit=5")).json()["data"]
    assert history["count"] >= 1
    assert history["sessions"][0]["id"] == last["id"]


@pytest.mark.asyncio
async def test_sustained_bad_posture_records_evidence(client):
    r = await client.post("/config", json={"alert_delay_sec": 1})
    assert r.json()["data"]["alert_delay_sec"] == 1.0

    await client.post("/posture", json={"keypoints": UPRIGHT})
    await client.post("/baseline")
    await client.post("/session/start")
    await client.post("/posture", json={"keypoints": SLOUCHED})
    await asyncio.sleep(1.6)

    status = (await client.get("/session/status")).json()["data"]
    assert status["stats"]["alerts"] == 1
    assert status["timer_pending"] is False
    assert status["alerts"][0]["reasons"] == ["leaning_forward"]

    await client.post("/session/stop")
    evidence = (await client.get("/session/evidence")).json()["data"]
    assert evidence["count"] == 1
    assert evidence["evidence"][0]["reasons"] == ["leaning_forward"]

    await client.post("/session/start")
    cleared = (await client.get("/session/evidence")).json()["data"]
    assert cleared["count"] == 0

    await client.post("/config", json={"alert_delay_sec": 5})


@pytest.mark.asyncio
async def test_recovery_before_delay_never_alerts(client):
    await client.post("/posture", json={"keypoints": UPRIGHT})
    await client.post("/baseline")
    await client.post("/session/start")
    await client.post("/posture", json={"keypoints": SLOUCHED})
    await client.post("/posture", json={"keypoints": UPRIGHT})

    status = (await client.get("/session/status")).json()["data"]
    assert status["timer_pending"] is False
    assert status["stats"]["alerts"] == 0


@pytest.mark.asyncio
async def test_persisted_evidence_is_listed(client, monkeypatch, tmp_path):
    from posturewatch.api.routers import posture as posture_router
    from posturewatch.posture import AlertEvent, Reason
    from posturewatch.storage import evidence

    monkeypatch.setattr(evidence, "EVIDENCE_DIR", tmp_path)
    monkeypatch.setattr(posture_router.settings, "evidence_persist", True)
    monkeypatch.setattr(posture_router.pose_source, "capture_jpeg", lambda: b"\xff\xd8jpeg")

    empty = (await client.get("/session/evidence/saved")).json()["data"]
    assert empty["count"] == 0

    event = AlertEvent(reasons=frozenset({Reason.TILTING}), bad_posture_since=100.0, fired_at=105.0)
    assert posture_router._on_capture(event) == b"\xff\xd8jpeg"

    saved = (await client.get("/session/evidence/saved")).json()["data"]
    assert saved["count"] == 1
    assert saved["evidence"][0]["reasons"] == ["tilting"]
    assert (tmp_path / saved["evidence"][0]["image"]).read_bytes() == b"\xff\xd8jpeg"


@pytest.mark.asyncio
async def test_evidence_not_written_unless_enabled(client, monkeypatch, tmp_path):
    from posturewatch.api.routers import posture as posture_router
    from posturewatch.posture import AlertEvent, Reason
    from posturewatch.storage import evidence

    monkeypatch.setattr(evidence, "EVIDENCE_DIR", tmp_path)
    monkeypatch.setattr(posture_router.settings, "evidence_persist", False)
    monkeypatch.setattr(posture_router.pose_source, "capture_jpeg", lambda: b"\xff\xd8jpeg")

    event = AlertEvent(reasons=frozenset({Reason.TILTING}), bad_posture_since=100.0, fired_at=105.0)
    assert posture_router._on_capture(event) == b"\xff\xd8jpeg"
    assert list(tmp_path.iterdir()) == []
    saved = (await client.get("/session/evidence/saved")).json()["data"]
    assert saved["count"] == 0
