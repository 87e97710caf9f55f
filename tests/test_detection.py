"""
Tests for Detection Module
===========================
"""

import base64
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest
import requests

from conftest import ScriptedDetector, make_fist
from signlens.core.errors import DetectorUnavailable, InitializationError, QuotaExceeded
from signlens.core.types import Handedness
from signlens.modules.capture.frame_processor import FrameDecodeError, FrameProcessor
from signlens.modules.detection.cloud_detector import (
    CloudDetectorConfig, CloudVisionDetector, MAX_ESTIMATED_SCORE, map_annotation_to_hands,
)
from signlens.modules.detection.detector_chain import DetectorChain
from signlens.modules.detection.landmark_extractor import LandmarkExtractor
from signlens.modules.utils.quota import QuotaTracker


class UnavailableDetector(ScriptedDetector):
    name = "broken"

    def initialize(self):
        raise DetectorUnavailable("no model")


class TestDetectorChain:
    """Test suite for the primary/fallback detector chain."""

    def test_primary_used_first(self):
        primary = ScriptedDetector([[make_fist()]])
        fallback = ScriptedDetector([[make_fist()]])
        chain = DetectorChain(primary, fallback)
        chain.initialize()
        assert len(chain.detect_hands("f")) == 1
        assert primary.calls == 1
        assert fallback.calls == 0
        assert chain.active_backend == "scripted"

    def test_primary_failure_falls_back(self):
        primary = ScriptedDetector(error=DetectorUnavailable("crashed"))
        fallback = ScriptedDetector([[make_fist()]])
        chain = DetectorChain(primary, fallback)
        chain.initialize()
        assert len(chain.detect_hands("f")) == 1
        assert chain.stats["failures"] == 1

    def test_unavailable_primary_skipped(self):
        fallback = ScriptedDetector([[make_fist()]])
        fallback.name = "cloud"
        chain = DetectorChain(UnavailableDetector(), fallback)
        chain.initialize()
        assert chain.active_backend == "cloud"
        assert len(chain.detect_hands("f")) == 1

    def test_no_backend_raises(self):
        with pytest.raises(InitializationError):
            DetectorChain(UnavailableDetector(), None).initialize()

    def test_all_failures_mean_no_hands(self):
        primary = ScriptedDetector(error=DetectorUnavailable("down"))
        fallback = ScriptedDetector(error=QuotaExceeded("quota"))
        chain = DetectorChain(primary, fallback)
        chain.initialize()
        assert chain.detect_hands("f") == []

    def test_empty_primary_does_not_fall_back_by_default(self):
        primary = ScriptedDetector([[]])
        fallback = ScriptedDetector([[make_fist()]])
        chain = DetectorChain(primary, fallback)
        chain.initialize()
        assert chain.detect_hands("f") == []
        assert fallback.calls == 0

    def test_empty_primary_falls_back_when_allowed(self):
        primary = ScriptedDetector([[]])
        fallback = ScriptedDetector([[make_fist()]])
        chain = DetectorChain(primary, fallback)
        chain.initialize()
        assert len(chain.detect_hands("f", allow_fallback=True)) == 1

    def test_initialize_once(self):
        primary = MagicMock(spec=ScriptedDetector)
        primary.name = "mock"
        chain = DetectorChain(primary)
        chain.initialize()
        chain.initialize()
        primary.initialize.assert_called_once()


class TestMapAnnotation:
    """Vision annotation -> estimated hands."""

    def test_face_heuristic_produces_two_hands(self):
        annotation = {"faceAnnotations": [{"boundingPoly": {"vertices": [
            {"x": 200, "y": 100}, {"x": 300, "y": 100},
            {"x": 300, "y": 220}, {"x": 200, "y": 220},
        ]}}]}
        hands = map_annotation_to_hands(annotation, 640, 480, estimated_score=0.6)
        assert [h.handedness for h in hands] == [Handedness.LEFT, Handedness.RIGHT]
        assert all(h.score == pytest.approx(0.6) for h in hands)
        left = hands[0].landmarks
        assert left[0, 0] == pytest.approx(100 / 640)
        assert left[0, 1] == pytest.approx(270 / 480)
        assert left[6, 0] == pytest.approx(110 / 640)
        assert left[6, 1] == pytest.approx(280 / 480)
        assert hands[1].landmarks[0, 0] == pytest.approx(350 / 640)

    def test_estimated_score_capped(self):
        annotation = {"faceAnnotations": [{"boundingPoly": {"vertices": [
            {"x": 10, "y": 10}, {"x": 50, "y": 10}, {"x": 50, "y": 60}, {"x": 10, "y": 60},
        ]}}]}
        hands = map_annotation_to_hands(annotation, 640, 480, estimated_score=0.95)
        assert all(h.score == MAX_ESTIMATED_SCORE for h in hands)

    def test_hand_objects_preferred(self):
        annotation = {
            "localizedObjectAnnotations": [{
                "name": "Hand", "score": 0.9,
                "boundingPoly": {"normalizedVertices": [
                    {"x": 0.6, "y": 0.3}, {"x": 0.8, "y": 0.3},
                    {"x": 0.8, "y": 0.6}, {"x": 0.6, "y": 0.6},
                ]},
            }, {"name": "Person", "score": 0.9, "boundingPoly": {"normalizedVertices": []}}],
            "faceAnnotations": [{"boundingPoly": {"vertices": [{}, {}, {}, {}]}}],
        }
        hands = map_annotation_to_hands(annotation, 640, 480)
        assert len(hands) == 1
        hand = hands[0]
        assert hand.handedness == Handedness.RIGHT
        assert hand.score == MAX_ESTIMATED_SCORE
        assert hand.landmarks[:, 0].min() >= 0.6 - 1e-6
        assert hand.landmarks[:, 0].max() <= 0.8 + 1e-6

    def test_nothing_detected(self):
        assert map_annotation_to_hands({}, 640, 480) == []


class TestCloudVisionDetector:
    """Cloud fallback with a mocked HTTP session."""

    @pytest.fixture
    def image(self):
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def _session(self, payload):
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        session = MagicMock()
        session.post.return_value = response
        return session

    def _face_payload(self):
        return {"responses": [{"faceAnnotations": [{"boundingPoly": {"vertices": [
            {"x": 20, "y": 5}, {"x": 40, "y": 5}, {"x": 40, "y": 25}, {"x": 20, "y": 25},
        ]}}]}]}

    def test_no_api_key(self, monkeypatch):
        monkeypatch.delenv("SIGNLENS_VISION_API_KEY", raising=False)
        with pytest.raises(DetectorUnavailable):
            CloudVisionDetector(CloudDetectorConfig()).initialize()

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("SIGNLENS_VISION_API_KEY", "secret")
        assert CloudDetectorConfig().resolve_api_key() == "secret"

    def test_detect_posts_image(self, image):
        session = self._session(self._face_payload())
        detector = CloudVisionDetector(CloudDetectorConfig(api_key="k"), session=session)
        detector.initialize()
        hands = detector.detect_hands(image)

        assert len(hands) == 2
        _, kwargs = session.post.call_args
        assert kwargs["params"] == {"key": "k"}
        content = kwargs["json"]["requests"][0]["image"]["content"]
        assert base64.b64decode(content)[:2] == b"\xff\xd8"  # JPEG

    def test_max_results_limits_hands(self, image):
        session = self._session(self._face_payload())
        detector = CloudVisionDetector(CloudDetectorConfig(api_key="k", max_results=1),
                                       session=session)
        detector.initialize()
        hands = detector.detect_hands(image)
        assert len(hands) == 1
        assert hands[0].handedness == Handedness.LEFT

    def test_quota_refusal(self, image):
        session = self._session(self._face_payload())
        quota = QuotaTracker(limits={"vision": 1})
        detector = CloudVisionDetector(CloudDetectorConfig(api_key="k"), quota=quota,
                                       session=session)
        detector.initialize()
        detector.detect_hands(image)
        with pytest.raises(QuotaExceeded):
            detector.detect_hands(image)
        assert session.post.call_count == 1

    def test_http_error(self, image):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("offline")
        detector = CloudVisionDetector(CloudDetectorConfig(api_key="k"), session=session)
        detector.initialize()
        with pytest.raises(DetectorUnavailable):
            detector.detect_hands(image)

    def test_api_error_payload(self, image):
        session = self._session({"responses": [{"error": {"message": "bad image"}}]})
        detector = CloudVisionDetector(CloudDetectorConfig(api_key="k"), session=session)
        detector.initialize()
        with pytest.raises(DetectorUnavailable):
            detector.detect_hands(image)


class TestFrameProcessor:

    def test_array_passthrough(self):
        image = np.zeros((10, 20, 3), dtype=np.uint8)
        processor = FrameProcessor()
        assert processor.to_bgr(image) is not None
        assert processor.frame_size(image) == (20, 10)

    def test_encoded_bytes(self):
        image = np.full((8, 8, 3), 127, dtype=np.uint8)
        ok, buf = cv2.imencode(".png", image)
        assert ok
        decoded = FrameProcessor().to_bgr(buf.tobytes())
        assert decoded.shape == (8, 8, 3)

    def test_file_uri(self, tmp_path):
        path = tmp_path / "frame.png"
        cv2.imwrite(str(path), np.zeros((6, 9, 3), dtype=np.uint8))
        decoded = FrameProcessor().to_bgr({"uri": path.as_uri()})
        assert decoded.shape == (6, 9, 3)

    def test_unsupported(self):
        with pytest.raises(FrameDecodeError):
            FrameProcessor().to_bgr(12345)


class TestLandmarkExtractor:

    def test_tip_distance_keys(self):
        distances = LandmarkExtractor().get_tip_distances(make_fist().landmarks)
        assert len(distances) == 10
        assert "thumb_index" in distances
        assert "ring_pinky" in distances
