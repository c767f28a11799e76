"""Keypoint source: webcam + MediaPipe, with a synthetic fallback.

Produces one ``Frame`` (pixel coordinates) or ``None`` per read, plus the
BGR image it was estimated from so evidence can be rendered on demand.
"""
from __future__ import annotations

import math
import threading
from typing import Optional, Tuple

import numpy as np
from loguru import logger

try:  # Optional dependencies when running on a desktop with a webcam
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore

try:  # Optional when running in CI
    import mediapipe as mp  # type: ignore
except Exception:  # pragma: no cover
    mp = None  # type: ignore

from posturewatch.core.config import get_settings
from posturewatch.posture.keypoints import Frame, Keypoint

# MediaPipe landmark names for the joints the posture engine reads
_LANDMARKS = {
    "nose": "NOSE",
    "left_shoulder": "LEFT_SHOULDER",
    "right_shoulder": "RIGHT_SHOULDER",
    "left_ear": "LEFT_EAR",
    "right_ear": "RIGHT_EAR",
}


class PoseSource:
    """Pose estimation source with MediaPipe fallback to mock data."""

    def __init__(self, *, mock: Optional[bool] = None) -> None:
        self.settings = get_settings()
        self.width = int(self.settings.camera_width)
        self.height = int(self.settings.camera_height)
        want_mock = self.settings.vision_mock if mock is None else mock
        self._mock: bool = bool(want_mock or cv2 is None or mp is None)
        self._pose = None
        self._cap = None
        self._mock_progress: float = 0.0
        self._last_image: Optional[np.ndarray] = None
        # Camera, MediaPipe graph and mock state are shared by the frame loop and request handlers
        self._lock = threading.Lock()

        if not self._mock:
            try:
                self._init_realtime_pipeline()
            except Exception as exc:  # pragma: no cover
                logger.warning("Falling back to pose mock pipeline: {}", exc)
                self._mock = True

        if self._mock:
            logger.info("PoseSource running in mock mode (VISION_MOCK=1 or missing deps)")

    @property
    def mock(self) -> bool:
        return self._mock

    @property
    def last_image(self) -> Optional[np.ndarray]:
        return self._last_image

    # --- Public API -----------------------------------------------------

    def read(self) -> Tuple[Optional[Frame], Optional[np.ndarray]]:
        """Return the next frame's keypoints (None if no pose) and its image."""
        with self._lock:
            if self._mock:
                frame, image = self._mock_frame()
            else:
                frame, image = self._camera_frame()
            self._last_image = image
            return frame, image

    def capture_jpeg(self) -> Optional[bytes]:
        """Encode the most recent image for evidence capture."""
        with self._lock:
            image = self._last_image
        return self.encode_jpeg(image)

    def encode_jpeg(self, image: Optional[np.ndarray]) -> Optional[bytes]:
        if image is None or cv2 is None:
            return None
        quality = max(30, min(95, int(self.settings.evidence_jpeg_quality)))
        ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            return None
        return buffer.tobytes()

    def close(self) -> None:
        with self._lock:
            self._release()

    def _release(self) -> None:
        try:
            if self._cap is not None:
                self._cap.release()
        except Exception:  # pragma: no cover
            pass
        try:
            if self._pose is not None and hasattr(self._pose, "close"):
                self._pose.close()
        except Exception:  # pragma: no cover
            pass
        self._cap = None
        self._pose = None

    # --- Internal helpers -----------------------------------------------

    def _init_realtime_pipeline(self) -> None:  # pragma: no cover - hardware path
        assert cv2 is not None and mp is not None
        self._pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(self.settings.model_complexity),
            enable_segmentation=False,
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
        )
        self._cap = cv2.VideoCapture(int(self.settings.camera_index))
        if not self._cap or not self._cap.isOpened():
            raise RuntimeError("Camera could not be opened")
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        try:
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except Exception:
            pass

    def _camera_frame(self) -> Tuple[Optional[Frame], Optional[np.ndarray]]:  # pragma: no cover - hardware path
        assert self._cap is not None and cv2 is not None and mp is not None
        ok, image = self._cap.read()
        if not ok:
            logger.warning("Camera read failed; switching to mock mode")
            self._mock = True
            return self._mock_frame()
        # Mirror view, as the user sees themselves
        image = cv2.flip(image, 1)
        results = self._pose.process(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
        if not results or not results.pose_landmarks:
            return None, image
        h, w = image.shape[:2]
        landmarks = results.pose_landmarks.landmark
        keypoints = []
        for name, mp_name in _LANDMARKS.items():
            lm = landmarks[int(getattr(mp.solutions.pose.PoseLandmark, mp_name))]
            keypoints.append(
                Keypoint(
                    name=name,
                    x=float(lm.x) * w,
                    y=float(lm.y) * h,
                    score=float(getattr(lm, "visibility", 1.0)),
                )
            )
        return Frame.of(keypoints), image

    def _mock_frame(self) -> Tuple[Optional[Frame], Optional[np.ndarray]]:
        # Slow oscillation between upright and slumped-forward posture
        self._mock_progress = (self._mock_progress + 0.05) % (2 * math.pi)
        slump = (math.sin(self._mock_progress) + 1) / 2  # 0..1
        cx = self.width / 2
        shoulder_y = self.height * 0.55 + slump * 60.0
        nose_x = cx + slump * 90.0
        nose_y = self.height * 0.30 + slump * 50.0
        keypoints = (
            Keypoint("nose", nose_x, nose_y, 0.95),
            Keypoint("left_shoulder", cx + 90.0, shoulder_y, 0.9),
            Keypoint("right_shoulder", cx - 90.0, shoulder_y + slump * 10.0, 0.9),
            Keypoint("left_ear", nose_x + 35.0, nose_y - 10.0, 0.8),
            Keypoint("right_ear", nose_x - 35.0, nose_y - 10.0, 0.8),
        )
        frame = Frame(keypoints)
        return frame, self._generate_mock_image(frame, slump)

    def _generate_mock_image(self, frame: Frame, slump: float) -> np.ndarray:
        image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        shade = int(40 + slump * 120)
        image[:, :] = (30, 30 + shade // 2, 40 + shade)
        if cv2 is None:
            return image
        pts = {kp.name: (int(kp.x), int(kp.y)) for kp in frame.keypoints}
        cv2.line(image, pts["left_shoulder"], pts["right_shoulder"], (0, 255, 255), 3, cv2.LINE_AA)
        for point in pts.values():
            cv2.circle(image, point, 6, (255, 255, 255), -1, cv2.LINE_AA)
        return image

    def __del__(self) -> None:  # pragma: no cover
        try:
            self.close()
        except Exception:
            pass
