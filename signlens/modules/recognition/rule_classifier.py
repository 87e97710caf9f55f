"""
Rule-based static sign classifier.

Ordered geometric predicates over the first detected hand; the first
matching rule wins and carries a fixed confidence. Finger extension
comes from joint angles, so the rules are insensitive to hand size and
in-plane rotation. The fist rule uses raw fingertip spacing in
frame-normalized units.

Rules (key -> confidence):
    a  closed fist, all fingertips bunched        0.80
    b  flat hand, four fingers together           0.75
    v  index + middle apart                       0.75
    l  thumb + index                              0.75
    y  thumb + pinky                              0.75
    w  index + middle + ring                      0.72
    i  pinky only                                 0.70
    d  index only                                 0.70
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from signlens.core.types import RecognizedSign
from signlens.models.static_classifier import StaticSignClassifier
from signlens.modules.detection.landmark_extractor import LandmarkExtractor

logger = logging.getLogger(__name__)

# Tip spacing relative to hand size
_TOGETHER_RATIO = 0.45
_APART_RATIO = 0.30


@dataclass
class HandShape:
    """Geometry of one hand as seen by the rules."""
    extended: dict
    tip_distances: dict
    hand_size: float

    def only(self, *fingers) -> bool:
        """True when exactly ``fingers`` are extended."""
        return all(self.extended[f] == (f in fingers) for f in self.extended)

    def spacing(self, pair: str) -> float:
        return self.tip_distances[pair] / max(self.hand_size, 1e-6)


@dataclass
class SignRule:
    key: str
    confidence: float
    matches: Callable[[HandShape], bool]


class RuleSignClassifier(StaticSignClassifier):
    """First-match geometric rules; always available."""

    backend = "rules"

    def __init__(self, fist_epsilon: float = 0.1, extractor: LandmarkExtractor = None):
        self._fist_epsilon = fist_epsilon
        self._extractor = extractor or LandmarkExtractor()
        self._rules = self._build_rules()
        self._calls = 0
        self._matches = 0

    @classmethod
    def from_dict(cls, d: dict) -> 'RuleSignClassifier':
        return cls(fist_epsilon=float(d.get("fist_epsilon", 0.1)))

    @property
    def rules(self) -> list:
        return list(self._rules)

    @property
    def stats(self) -> dict:
        return {"backend": self.backend, "calls": self._calls, "matches": self._matches}

    def _build_rules(self) -> list:
        eps = self._fist_epsilon
        return [
            SignRule("a", 0.80, lambda h: all(d < eps for d in h.tip_distances.values())),
            SignRule("b", 0.75, lambda h: h.only("index", "middle", "ring", "pinky")
                     and h.spacing("index_middle") < _TOGETHER_RATIO
                     and h.spacing("middle_ring") < _TOGETHER_RATIO
                     and h.spacing("ring_pinky") < _TOGETHER_RATIO),
            SignRule("v", 0.75, lambda h: h.only("index", "middle")
                     and h.spacing("index_middle") >= _APART_RATIO),
            SignRule("l", 0.75, lambda h: h.only("thumb", "index")),
            SignRule("y", 0.75, lambda h: h.only("thumb", "pinky")),
            SignRule("w", 0.72, lambda h: h.only("index", "middle", "ring")),
            SignRule("i", 0.70, lambda h: h.only("pinky")),
            SignRule("d", 0.70, lambda h: h.only("index")),
        ]

    def shape_of(self, hand) -> HandShape:
        landmarks = hand.normalized()
        return HandShape(
            extended=self._extractor.get_finger_states(landmarks),
            tip_distances=self._extractor.get_tip_distances(landmarks),
            hand_size=self._extractor.get_hand_size(landmarks),
        )

    def classify(self, hands, dictionary, threshold) -> Optional[RecognizedSign]:
        if not hands:
            return None
        self._calls += 1

        shape = self.shape_of(hands[0])
        for rule in self._rules:
            if not rule.matches(shape):
                continue
            entry = dictionary.lookup(rule.key)
            if entry is None:
                logger.debug("Rule '%s' matched but '%s' has no such sign",
                             rule.key, dictionary.language)
                return None
            confidence = rule.confidence * entry.base_confidence
            if confidence < threshold:
                return None
            self._matches += 1
            return RecognizedSign.from_entry(rule.key, entry, confidence, dictionary.language)
        return None
