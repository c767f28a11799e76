from __future__ import annotations

import pytest
from pydantic import ValidationError

from posturewatch.api.schemas import ConfigInput, PostureInput, PostureOutput
from posturewatch.posture import GOOD


def test_posture_input_defaults_to_server_source():
    payload = PostureInput()
    assert payload.pose_detected is True
    assert payload.keypoints is None


def test_keypoint_score_is_bounded():
    with pytest.raises(ValidationError):
        PostureInput(keypoints=[{"name": "nose", "x": 1, "y": 2, "score": -0.1}])


def test_posture_output_accepts_verdict_dict():
    out = PostureOutput(
        source="client",
        verdict=GOOD.to_dict(),
        phase="idle",
        active=False,
        baseline_set=False,
    )
    dumped = out.model_dump()
    assert dumped["verdict"]["message"] == "Good posture"
    assert dumped["keypoints"] == []


def test_config_input_allows_partial_updates():
    cfg = ConfigInput(alert_delay_sec=3)
    assert cfg.horizontal_threshold is None
    with pytest.raises(ValidationError):
        ConfigInput(alert_delay_sec=0)


@pytest.mark.parametrize(
    "payload",
    [
        {"alert_delay_sec": "inf"},
        {"horizontal_threshold": "nan"},
        {"level_threshold": "inf"},
    ],
)
def test_config_input_rejects_non_finite(payload):
    with pytest.raises(ValidationError):
        ConfigInput(**payload)


def test_keypoint_coordinates_must_be_finite():
    with pytest.raises(ValidationError):
        PostureInput(keypoints=[{"name": "nose", "x": "nan", "y": 2}])
