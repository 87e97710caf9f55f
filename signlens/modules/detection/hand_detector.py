"""
Primary hand detector - MediaPipe Tasks API
=============================================

Local, low-latency 21-point hand landmark estimation using the
MediaPipe HandLandmarker. Frames arrive throttled and out of any
video clock, so the landmarker runs in IMAGE mode.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from signlens.core.errors import DetectorUnavailable
from signlens.core.types import Handedness, LandmarkFrame, NUM_LANDMARKS
from signlens.modules.capture.frame_processor import FrameProcessor
from signlens.modules.detection.base import HandDetectorBackend

logger = logging.getLogger(__name__)

HAND_LANDMARKER_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task"
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent.parent / "models" / "hand_landmarker.task"


@dataclass
class HandDetectorConfig:
    """Configuration for the MediaPipe hand detector."""
    model_path: str = ""
    max_num_hands: int = 2
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        return cls(
            model_path=d.get("model_path", "") or "",
            max_num_hands=d.get("max_num_hands", 2),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
        )


def download_model(url: str, save_path: Path) -> bool:
    """Download the hand landmarker model if not present."""
    if save_path.exists():
        logger.info("Model already exists at %s", save_path)
        return True

    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading hand landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, str(save_path))
        logger.info("Model download complete")
        return True
    except Exception as e:
        logger.error("Failed to download model: %s", e)
        return False


class MediaPipeHandDetector(HandDetectorBackend):
    """
    Primary detector backed by MediaPipe HandLandmarker.

    Example:
        >>> detector = MediaPipeHandDetector(HandDetectorConfig())
        >>> detector.initialize()
        >>> hands = detector.detect_hands(bgr_image)
        >>> detector.close()
    """

    name = "mediapipe"

    def __init__(self, config: Optional[HandDetectorConfig] = None,
                 frame_processor: Optional[FrameProcessor] = None):
        self.config = config or HandDetectorConfig()
        self._frames = frame_processor or FrameProcessor()
        self._landmarker = None

    @property
    def is_available(self) -> bool:
        return self._landmarker is not None

    def initialize(self) -> None:
        """Create the landmarker. Raises DetectorUnavailable on failure."""
        if self._landmarker is not None:
            return

        model_path = Path(self.config.model_path or DEFAULT_MODEL_PATH)
        if not model_path.exists():
            if not download_model(HAND_LANDMARKER_MODEL_URL, model_path):
                raise DetectorUnavailable("Hand landmarker model unavailable: %s" % model_path)

        try:
            options = vision.HandLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=str(model_path)),
                running_mode=vision.RunningMode.IMAGE,
                num_hands=self.config.max_num_hands,
                min_hand_detection_confidence=self.config.min_detection_confidence,
                min_hand_presence_confidence=self.config.min_presence_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except Exception as e:
            raise DetectorUnavailable("Failed to initialize HandLandmarker: %s" % e) from e

        logger.info("HandLandmarker initialized with model: %s (max hands: %d)",
                    model_path, self.config.max_num_hands)

    def close(self) -> None:
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
            logger.info("HandLandmarker closed")

    def detect_hands(self, frame) -> List[LandmarkFrame]:
        """
        Detect hands in the given frame reference.

        Returns:
            One LandmarkFrame per hand with all 21 points, coordinates
            normalized to [0, 1].
        """
        if self._landmarker is None:
            raise DetectorUnavailable("HandLandmarker not initialized")

        try:
            rgb = self._frames.to_rgb(frame)
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            result = self._landmarker.detect(mp_image)
        except Exception as e:
            raise DetectorUnavailable("HandLandmarker failed: %s" % e) from e

        hands = []
        for i, hand_landmarks in enumerate(result.hand_landmarks):
            if len(hand_landmarks) != NUM_LANDMARKS:
                logger.debug("Dropping partial hand with %d landmarks", len(hand_landmarks))
                continue

            handedness = Handedness.RIGHT
            score = 0.0
            if result.handedness and len(result.handedness) > i:
                category = result.handedness[i][0]
                handedness = Handedness.from_label(category.category_name)
                score = category.score

            hands.append(LandmarkFrame(
                landmarks=[[lm.x, lm.y, lm.z] for lm in hand_landmarks],
                handedness=handedness,
                score=score,
            ))

        return hands
