"""
Cloud fallback hand detector
=============================

Remote image-annotation call used when the local detector is unusable.
The annotation service has no hand-keypoint model, so its generic
object/face output is mapped onto *estimated* 21-point hands that carry
a capped score (at most 0.7).
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import requests

from signlens.core.errors import DetectorUnavailable, QuotaExceeded
from signlens.core.types import Handedness, LandmarkFrame, NUM_LANDMARKS
from signlens.modules.capture.frame_processor import FrameProcessor
from signlens.modules.detection.base import HandDetectorBackend

logger = logging.getLogger(__name__)

VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"
QUOTA_SERVICE = "vision"

# Estimated frames never claim more than this.
MAX_ESTIMATED_SCORE = 0.7

# Canonical open right hand inside a unit box, wrist at the bottom centre.
# (x, y) per landmark in MediaPipe order.
_HAND_TEMPLATE = np.array([
    [0.50, 1.00],                                          # wrist
    [0.30, 0.90], [0.18, 0.78], [0.10, 0.66], [0.04, 0.56],  # thumb
    [0.34, 0.55], [0.31, 0.38], [0.29, 0.26], [0.27, 0.14],  # index
    [0.50, 0.53], [0.50, 0.34], [0.50, 0.20], [0.50, 0.06],  # middle
    [0.65, 0.55], [0.67, 0.38], [0.68, 0.26], [0.69, 0.15],  # ring
    [0.80, 0.60], [0.84, 0.48], [0.87, 0.40], [0.90, 0.32],  # pinky
], dtype=np.float32)


@dataclass
class CloudDetectorConfig:
    """Configuration for the cloud fallback detector."""
    endpoint: str = VISION_ENDPOINT
    api_key: str = ""
    api_key_env: str = "SIGNLENS_VISION_API_KEY"
    timeout_s: float = 5.0
    estimated_score: float = 0.6
    max_results: int = 2

    @classmethod
    def from_dict(cls, d: dict) -> "CloudDetectorConfig":
        return cls(
            endpoint=d.get("endpoint", VISION_ENDPOINT),
            api_key=d.get("api_key", "") or "",
            api_key_env=d.get("api_key_env", "SIGNLENS_VISION_API_KEY"),
            timeout_s=float(d.get("timeout_s", 5.0)),
            estimated_score=float(d.get("estimated_score", 0.6)),
            max_results=int(d.get("max_results", 2)),
        )

    def resolve_api_key(self) -> str:
        return self.api_key or os.environ.get(self.api_key_env, "")


class CloudVisionDetector(HandDetectorBackend):
    """Remote fallback detector built on an image-annotation API.

    Args:
        config: endpoint / key / scoring settings
        quota: optional gate exposing ``track_call(service) -> bool``
        session: optional ``requests.Session`` (tests inject a mock)
    """

    name = "cloud"

    def __init__(self, config: Optional[CloudDetectorConfig] = None, quota=None,
                 session: Optional[requests.Session] = None,
                 frame_processor: Optional[FrameProcessor] = None):
        self.config = config or CloudDetectorConfig()
        self._quota = quota
        self._session = session
        self._frames = frame_processor or FrameProcessor()
        self._api_key = ""

    @property
    def is_available(self) -> bool:
        return self._session is not None and bool(self._api_key)

    def initialize(self) -> None:
        self._api_key = self.config.resolve_api_key()
        if not self._api_key:
            raise DetectorUnavailable(
                "No API key for cloud detector (set %s)" % self.config.api_key_env)
        if self._session is None:
            self._session = requests.Session()
        logger.info("Cloud fallback detector ready (%s)", self.config.endpoint)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def detect_hands(self, frame) -> List[LandmarkFrame]:
        if not self.is_available:
            raise DetectorUnavailable("Cloud detector not initialized")

        if self._quota is not None and not self._quota.track_call(QUOTA_SERVICE):
            raise QuotaExceeded("Vision API quota reached")

        try:
            image = self._frames.to_bgr(frame)
            content = self._frames.to_jpeg_base64(image)
        except ValueError as e:
            raise DetectorUnavailable("Frame could not be encoded: %s" % e) from e

        width, height = self._frames.frame_size(image)
        annotation = self._annotate(content)
        hands = map_annotation_to_hands(
            annotation, width, height, estimated_score=self.config.estimated_score)
        if len(hands) > self.config.max_results:
            logger.debug("Keeping %d of %d estimated hands", self.config.max_results, len(hands))
        return hands[:self.config.max_results]

    def _annotate(self, content: str) -> dict:
        body = {
            "requests": [{
                "image": {"content": content},
                "features": [
                    {"type": "OBJECT_LOCALIZATION", "maxResults": 10},
                    {"type": "FACE_DETECTION", "maxResults": 1},
                ],
            }]
        }
        try:
            response = self._session.post(
                self.config.endpoint,
                params={"key": self._api_key},
                json=body,
                timeout=self.config.timeout_s,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DetectorUnavailable("Vision API call failed: %s" % e) from e

        responses = data.get("responses") or [{}]
        first = responses[0] or {}
        if "error" in first:
            raise DetectorUnavailable("Vision API error: %s" % first["error"].get("message"))
        return first


# =============================================================================
# Annotation -> estimated keypoints
# =============================================================================

def map_annotation_to_hands(annotation: dict, width: int, height: int,
                            estimated_score: float = 0.6) -> List[LandmarkFrame]:
    """Interpret a generic annotation payload as estimated hands.

    Localized "Hand" objects are preferred. Without them, two hands are
    estimated beside and below the first detected face. Coordinates are
    normalized to the frame size.
    """
    hands = _hands_from_objects(annotation.get("localizedObjectAnnotations") or [])
    if hands:
        return hands

    faces = annotation.get("faceAnnotations") or []
    if faces:
        score = min(estimated_score, MAX_ESTIMATED_SCORE)
        return _hands_around_face(faces[0], width, height, score)
    return []


def _vertex(vertices: list, i: int) -> tuple:
    # The API omits zero-valued coordinates.
    if i >= len(vertices):
        return 0.0, 0.0
    v = vertices[i] or {}
    return float(v.get("x", 0.0)), float(v.get("y", 0.0))


def _hands_from_objects(objects: list) -> List[LandmarkFrame]:
    hands = []
    for obj in objects:
        if str(obj.get("name", "")).lower() != "hand":
            continue
        vertices = (obj.get("boundingPoly") or {}).get("normalizedVertices") or []
        if len(vertices) < 3:
            continue
        xs = [_vertex(vertices, i)[0] for i in range(len(vertices))]
        ys = [_vertex(vertices, i)[1] for i in range(len(vertices))]
        x0, x1, y0, y1 = min(xs), max(xs), min(ys), max(ys)
        if x1 <= x0 or y1 <= y0:
            continue

        centre_x = (x0 + x1) / 2.0
        handedness = Handedness.LEFT if centre_x < 0.5 else Handedness.RIGHT
        template = _HAND_TEMPLATE.copy()
        if handedness is Handedness.LEFT:
            template[:, 0] = 1.0 - template[:, 0]

        points = np.zeros((NUM_LANDMARKS, 3), dtype=np.float32)
        points[:, 0] = x0 + template[:, 0] * (x1 - x0)
        points[:, 1] = y0 + template[:, 1] * (y1 - y0)
        score = min(float(obj.get("score", 0.0)), MAX_ESTIMATED_SCORE)
        hands.append(LandmarkFrame(points, handedness, score))
    return hands


def _hands_around_face(face: dict, width: int, height: int, score: float) -> List[LandmarkFrame]:
    vertices = (face.get("boundingPoly") or {}).get("vertices") or []
    if len(vertices) < 4:
        return []
    left_x, _ = _vertex(vertices, 0)
    right_x, _ = _vertex(vertices, 1)
    _, bottom_y = _vertex(vertices, 3)

    width = max(width, 1)
    height = max(height, 1)
    hands = []
    for handedness, origin_x in ((Handedness.LEFT, left_x - 100),
                                 (Handedness.RIGHT, right_x + 50)):
        points = np.zeros((NUM_LANDMARKS, 3), dtype=np.float32)
        for i in range(NUM_LANDMARKS):
            points[i, 0] = (origin_x + (i % 5) * 10) / width
            points[i, 1] = (bottom_y + 50 + (i // 5) * 10) / height
        hands.append(LandmarkFrame(points, handedness, score))
    return hands
