"""
Shared domain types for the sign-language recognition engine.

Centralizes enums and data containers used across modules
to eliminate circular imports and ensure type consistency.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional, Tuple

import numpy as np

NUM_LANDMARKS = 21


# =============================================================================
# Landmark Indices
# =============================================================================

class LandmarkIndex(IntEnum):
    """Hand landmark indices following MediaPipe convention."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


FINGER_TIPS = (
    LandmarkIndex.THUMB_TIP,
    LandmarkIndex.INDEX_TIP,
    LandmarkIndex.MIDDLE_TIP,
    LandmarkIndex.RING_TIP,
    LandmarkIndex.PINKY_TIP,
)


# =============================================================================
# Enums
# =============================================================================

class Handedness(Enum):
    LEFT = "Left"
    RIGHT = "Right"

    @classmethod
    def from_label(cls, label: str) -> 'Handedness':
        """Convert a detector label ('left', 'Right', ...) to Handedness."""
        if str(label).strip().lower() == "left":
            return cls.LEFT
        return cls.RIGHT


class SignType(Enum):
    """Category of a recognized sign."""
    ALPHABET = "alphabet"
    WORD = "word"
    PHRASE = "phrase"
    DYNAMIC = "dynamic"


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"


# =============================================================================
# Data Containers
# =============================================================================

@dataclass(frozen=True, eq=False)
class LandmarkFrame:
    """One hand's pose in one camera frame.

    ``landmarks`` is always a (21, 3) array. When ``image_size`` is set the
    x/y coordinates are in pixels of a ``(width, height)`` frame; otherwise
    they are already normalized to [0, 1] like MediaPipe output.
    """

    landmarks: np.ndarray
    handedness: Handedness = Handedness.RIGHT
    score: float = 1.0
    image_size: Optional[Tuple[int, int]] = None

    def __post_init__(self):
        points = np.asarray(self.landmarks, dtype=np.float32)
        if points.shape != (NUM_LANDMARKS, 3):
            raise ValueError(
                "Expected (21, 3) landmarks, got %s" % str(points.shape)
            )
        if not isinstance(self.handedness, Handedness):
            object.__setattr__(self, "handedness", Handedness.from_label(self.handedness))
        object.__setattr__(self, "landmarks", points)
        object.__setattr__(self, "score", float(min(1.0, max(0.0, self.score))))

    def point(self, index: LandmarkIndex) -> np.ndarray:
        return self.landmarks[int(index)]

    @property
    def wrist(self) -> np.ndarray:
        return self.landmarks[LandmarkIndex.WRIST]

    def normalized(self) -> np.ndarray:
        """Landmarks in frame-normalized units (x / width, y / height, z)."""
        if self.image_size is None:
            return self.landmarks
        width, height = self.image_size
        scale = np.array([max(width, 1), max(height, 1), 1.0], dtype=np.float32)
        return self.landmarks / scale


@dataclass(frozen=True)
class SignEntry:
    """A single sign dictionary entry."""
    value: str
    type: SignType
    base_confidence: float = 1.0


@dataclass(frozen=True)
class RecognizedSign:
    """The pipeline's output unit. Immutable once created."""

    type: SignType
    value: str
    confidence: float
    language: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    key: Optional[str] = None

    def __repr__(self):
        return "RecognizedSign(%s %r, conf=%.2f, lang=%s)" % (
            self.type.value, self.value, self.confidence, self.language)

    def to_text(self) -> str:
        return self.value

    @classmethod
    def from_entry(cls, key: str, entry: SignEntry, confidence: float,
                   language: str, sign_type: Optional[SignType] = None) -> 'RecognizedSign':
        return cls(
            type=sign_type or entry.type,
            value=entry.value,
            confidence=float(confidence),
            language=language,
            key=key,
        )
