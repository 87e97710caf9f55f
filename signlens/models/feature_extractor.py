"""
Feature extraction pipeline: detected hands -> fixed-length ML feature vector.

Converts up to two hands of 21-point landmarks into the flat vector the
static sign model consumes.

Per-hand layout (76 dimensions, hands in detector order):
    [0:5]    Wrist -> fingertip distances (thumb, index, middle, ring, pinky)
    [5:12]   Fingertip pair distances (thumb-index, thumb-middle, thumb-ring,
             thumb-pinky, index-middle, middle-ring, ring-pinky)
    [12:75]  Landmarks (21 x 3); x and y min-max normalized within the hand,
             z passed through
    [75:76]  Handedness (Left = 0, Right = 1)

The concatenation is right-padded with zeros (or truncated) to
EXPECTED_FEATURE_LENGTH. Distances are measured in frame-normalized units
so pixel and normalized detector output produce the same features.
"""

from typing import Sequence

import numpy as np

from signlens.core.types import Handedness, LandmarkFrame, LandmarkIndex as L

EXPECTED_FEATURE_LENGTH = 200
MAX_HANDS = 2

_WRIST_TIPS = (L.THUMB_TIP, L.INDEX_TIP, L.MIDDLE_TIP, L.RING_TIP, L.PINKY_TIP)

_TIP_PAIRS = (
    (L.THUMB_TIP, L.INDEX_TIP),
    (L.THUMB_TIP, L.MIDDLE_TIP),
    (L.THUMB_TIP, L.RING_TIP),
    (L.THUMB_TIP, L.PINKY_TIP),
    (L.INDEX_TIP, L.MIDDLE_TIP),
    (L.MIDDLE_TIP, L.RING_TIP),
    (L.RING_TIP, L.PINKY_TIP),
)

FEATURES_PER_HAND = len(_WRIST_TIPS) + len(_TIP_PAIRS) + 21 * 3 + 1


class SignFeatureExtractor:
    """Converts detected hands to a fixed-size ML feature vector."""

    def __init__(self, expected_length: int = EXPECTED_FEATURE_LENGTH):
        if expected_length < 1:
            raise ValueError("expected_length must be positive")
        self._expected_length = expected_length

    @property
    def feature_dim(self) -> int:
        return self._expected_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, hands: Sequence[LandmarkFrame]) -> np.ndarray:
        """Convert the hands of one frame to a (expected_length,) vector.

        Never fails for zero hands: an all-zero vector is returned.
        """
        parts = [self._hand_features(hand) for hand in list(hands)[:MAX_HANDS]]
        raw = np.concatenate(parts) if parts else np.zeros(0, dtype=np.float32)

        features = np.zeros(self._expected_length, dtype=np.float32)
        n = min(len(raw), self._expected_length)
        features[:n] = raw[:n]
        return features

    def extract_batch(self, hands_batch: Sequence[Sequence[LandmarkFrame]]) -> np.ndarray:
        """Vectorised extraction for a batch of frames.

        Returns:
            np.ndarray of shape (N, expected_length)
        """
        out = np.zeros((len(hands_batch), self._expected_length), dtype=np.float32)
        for i, hands in enumerate(hands_batch):
            out[i] = self.extract(hands)
        return out

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _hand_features(self, hand: LandmarkFrame) -> np.ndarray:
        landmarks = hand.normalized()
        features = np.zeros(FEATURES_PER_HAND, dtype=np.float32)

        # --- Wrist -> tip distances (5 dims) --------------------------
        wrist = landmarks[L.WRIST]
        for i, tip in enumerate(_WRIST_TIPS):
            features[i] = np.linalg.norm(landmarks[tip] - wrist)

        # --- Fingertip pair distances (7 dims) ------------------------
        offset = len(_WRIST_TIPS)
        for i, (a, b) in enumerate(_TIP_PAIRS):
            features[offset + i] = np.linalg.norm(landmarks[a] - landmarks[b])

        # --- Min-max normalized landmarks (63 dims) -------------------
        offset += len(_TIP_PAIRS)
        features[offset:offset + 63] = self._normalize_landmarks(landmarks).flatten()

        # --- Handedness (1 dim) ---------------------------------------
        features[-1] = 0.0 if hand.handedness is Handedness.LEFT else 1.0
        return features

    @staticmethod
    def _normalize_landmarks(landmarks: np.ndarray) -> np.ndarray:
        out = landmarks.astype(np.float32, copy=True)
        for axis in (0, 1):
            lo = out[:, axis].min()
            span = out[:, axis].max() - lo
            out[:, axis] = (out[:, axis] - lo) / (span if span > 0 else 1.0)
        return out


_default_extractor = SignFeatureExtractor()


def extract_features(hands: Sequence[LandmarkFrame],
                     expected_length: int = EXPECTED_FEATURE_LENGTH) -> np.ndarray:
    """Feature vector for one frame's hands (see module docstring)."""
    if expected_length == EXPECTED_FEATURE_LENGTH:
        return _default_extractor.extract(hands)
    return SignFeatureExtractor(expected_length).extract(hands)


def extract_batch(hands_batch, expected_length: int = EXPECTED_FEATURE_LENGTH) -> np.ndarray:
    return SignFeatureExtractor(expected_length).extract_batch(hands_batch)
