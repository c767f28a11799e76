from __future__ import annotations

import pytest

from posturewatch.core.config import get_settings
from posturewatch.posture import Thresholds


@pytest.mark.asyncio
async def test_config_roundtrip(client, posture_monitor):
    r1 = await client.get("/config")
    assert r1.status_code == 200
    before = r1.json()["data"]
    assert before["alert_delay_sec"] >= 1.0

    r2 = await client.post("/config", json={"alert_delay_sec": 7, "horizontal_threshold": 45})
    assert r2.status_code == 200
    assert r2.json()["success"] is True

    after = (await client.get("/config")).json()["data"]
    assert after["alert_delay_sec"] == 7.0
    assert after["horizontal_threshold"] == 45.0
    assert after["level_threshold"] == before["level_threshold"]
    assert posture_monitor.session.alert_delay_sec == 7.0
    assert posture_monitor.thresholds.horizontal == 45.0

    await client.post(
        "/config",
        json={
            "alert_delay_sec": before["alert_delay_sec"],
            "horizontal_threshold": before["horizontal_threshold"],
        },
    )


@pytest.mark.asyncio
async def test_config_scales_thresholds_for_viewport(client):
    r = await client.post("/config", json={"viewport_width": 320})
    data = r.json()["data"]
    assert data["effective_thresholds"]["horizontal"] == pytest.approx(data["horizontal_threshold"] / 2)
    assert data["effective_thresholds"]["level"] == pytest.approx(data["level_threshold"] / 2)

    await client.post("/config", json={"viewport_width": 640})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"alert_delay_sec": 0.5}, {"horizontal_threshold": -1}, {"viewport_width": 0}],
)
async def test_config_rejects_invalid_values(client, payload):
    r = await client.post("/config", json=payload)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_viewport_scaling_survives_partial_updates(client, posture_monitor):
    from posturewatch.api.routers.config_router import apply_config
    from posturewatch.core.dal import get_posture_config
    from posturewatch.core.db import SessionLocal

    base = (await client.post("/config", json={"viewport_width": 320})).json()["data"]
    later = (await client.post("/config", json={"alert_delay_sec": 3})).json()["data"]
    assert later["viewport_width"] == 320
    assert later["effective_thresholds"]["horizontal"] == pytest.approx(base["horizontal_threshold"] / 2)

    # Restoring from the database, as the app does on startup, keeps the scaling
    posture_monitor.set_thresholds(Thresholds())
    db = SessionLocal()
    try:
        apply_config(get_posture_config(db))
    finally:
        db.close()
    assert posture_monitor.thresholds.horizontal == pytest.approx(base["horizontal_threshold"] / 2)

    await client.post("/config", json={"viewport_width": 640, "alert_delay_sec": 5})


@pytest.mark.asyncio
async def test_config_write_requires_api_key_when_configured(client, monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "api_key", "s3cret")

    denied = await client.post("/config", json={"alert_delay_sec": 4})
    assert denied.status_code == 401

    allowed = await client.post("/config", json={"alert_delay_sec": 5}, headers={"X-API-Key": "s3cret"})
    assert allowed.status_code == 200
    assert allowed.json()["data"]["alert_delay_sec"] == 5.0
