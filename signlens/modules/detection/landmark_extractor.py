"""
Geometric hand features computed from 21-point landmarks.

Angle-based finger extension detection (robust to hand rotation/tilt)
plus fingertip distance helpers, used by the rule-based sign classifier.
All inputs are (21, 3) arrays in frame-normalized units.
"""

import logging
from itertools import combinations

import numpy as np

from signlens.core.types import FINGER_TIPS, LandmarkIndex as L

logger = logging.getLogger(__name__)

FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")

# Finger joint chains: (MCP/CMC, PIP/IP, DIP, TIP) for curl computation
FINGER_JOINTS = {
    "thumb":  (L.THUMB_CMC, L.THUMB_MCP, L.THUMB_IP, L.THUMB_TIP),
    "index":  (L.INDEX_MCP, L.INDEX_PIP, L.INDEX_DIP, L.INDEX_TIP),
    "middle": (L.MIDDLE_MCP, L.MIDDLE_PIP, L.MIDDLE_DIP, L.MIDDLE_TIP),
    "ring":   (L.RING_MCP, L.RING_PIP, L.RING_DIP, L.RING_TIP),
    "pinky":  (L.PINKY_MCP, L.PINKY_PIP, L.PINKY_DIP, L.PINKY_TIP),
}

# Curl thresholds: 0.0 = straight, 1.0 = fully bent
_THUMB_EXTENDED_CURL = 0.38
_FINGER_EXTENDED_CURL = 0.35


class LandmarkExtractor:
    """Extracts geometric features from normalized hand landmarks."""

    def get_all_finger_curls(self, landmarks: np.ndarray) -> dict:
        """Curl values for all fingers from consecutive-joint angles.

        Returns:
            dict {finger_name: float} where 0.0=extended, 1.0=fully curled
        """
        curls = {}
        for finger_name, (base, mid1, mid2, tip) in FINGER_JOINTS.items():
            angle_a = self._angle_between_3d(landmarks[base], landmarks[mid1], landmarks[mid2])
            angle_b = self._angle_between_3d(landmarks[mid1], landmarks[mid2], landmarks[tip])
            if finger_name == "thumb":
                combined_angle = (angle_a + angle_b) / 2.0
            else:
                # PIP has larger ROM; both contribute meaningfully
                combined_angle = angle_a * 0.6 + angle_b * 0.4
            curl = 1.0 - (combined_angle / 180.0)
            curls[finger_name] = max(0.0, min(1.0, curl))
        return curls

    def get_finger_states(self, landmarks: np.ndarray) -> dict:
        """Which fingers are extended (True) vs curled (False)."""
        curls = self.get_all_finger_curls(landmarks)
        states = {"thumb": curls["thumb"] < _THUMB_EXTENDED_CURL}
        for finger in ("index", "middle", "ring", "pinky"):
            states[finger] = curls[finger] < _FINGER_EXTENDED_CURL
        return states

    def get_tip_distances(self, landmarks: np.ndarray) -> dict:
        """Distance between every pair of fingertips, keyed 'thumb_index' etc."""
        distances = {}
        for (name_a, a), (name_b, b) in combinations(zip(FINGER_NAMES, FINGER_TIPS), 2):
            distances["%s_%s" % (name_a, name_b)] = self._distance(landmarks[a], landmarks[b])
        return distances

    def get_hand_size(self, landmarks: np.ndarray) -> float:
        """Estimate hand size as distance from wrist to middle finger MCP."""
        return self._distance(landmarks[L.WRIST], landmarks[L.MIDDLE_MCP])

    # =========================================================================
    # Math Helpers
    # =========================================================================

    @staticmethod
    def _distance(p1: np.ndarray, p2: np.ndarray) -> float:
        """Euclidean distance between two 3D points."""
        return float(np.linalg.norm(np.asarray(p1) - np.asarray(p2)))

    @staticmethod
    def _angle_between_3d(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
        """Angle at point b formed by points a-b-c, in degrees."""
        ba = a - b
        bc = c - b
        cos_angle = np.dot(ba, bc) / (np.linalg.norm(ba) * np.linalg.norm(bc) + 1e-8)
        cos_angle = np.clip(cos_angle, -1.0, 1.0)
        return float(np.degrees(np.arccos(cos_angle)))
