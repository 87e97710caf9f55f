"""
Static sign classification: learned model first, rule engine otherwise.

Strategy selection happens once, in create_static_classifier():
    1. Learned model  (injected, or SignNet checkpoint on disk)
    2. Rule engine    (always available, no model needed)

A chosen model strategy does not fall back to rules per call: a
low-confidence prediction simply yields no sign for that frame.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from signlens.core.errors import ModelUnavailable
from signlens.core.types import LandmarkFrame, RecognizedSign
from signlens.models.feature_extractor import SignFeatureExtractor

logger = logging.getLogger(__name__)


class StaticSignClassifier(ABC):
    """Maps one frame's hands to at most one dictionary sign."""

    backend = "none"

    @abstractmethod
    def classify(self, hands: Sequence[LandmarkFrame], dictionary,
                 threshold: float) -> Optional[RecognizedSign]:
        """Return a sign from ``dictionary`` with confidence >= threshold, or None."""

    @property
    def stats(self) -> dict:
        return {"backend": self.backend}


class ModelSignClassifier(StaticSignClassifier):
    """Wraps any model exposing ``predict_proba(features) -> np.ndarray``.

    The argmax class index selects the key at that position in the active
    dictionary's key order.
    """

    backend = "model"

    def __init__(self, model, feature_extractor: Optional[SignFeatureExtractor] = None):
        self._model = model
        self._features = feature_extractor or SignFeatureExtractor()
        self._calls = 0
        self._accepted = 0
        self._errors = 0

    @property
    def stats(self) -> dict:
        return {
            "backend": self.backend,
            "calls": self._calls,
            "accepted": self._accepted,
            "errors": self._errors,
        }

    def classify(self, hands, dictionary, threshold):
        if not hands:
            return None
        self._calls += 1

        try:
            features = self._features.extract(hands)
            probs = np.asarray(self._model.predict_proba(features), dtype=np.float32).reshape(-1)
        except Exception as e:
            self._errors += 1
            logger.warning("Sign model inference error: %s", e)
            return None
        if probs.size == 0:
            return None

        class_idx = int(np.argmax(probs))
        confidence = float(probs[class_idx])
        if confidence < threshold:
            return None

        key = dictionary.key_at(class_idx)
        if key is None:
            logger.debug("Model class %d outside '%s' dictionary (%d signs)",
                         class_idx, dictionary.language, len(dictionary))
            return None

        self._accepted += 1
        return RecognizedSign.from_entry(key, dictionary.lookup(key), confidence,
                                         dictionary.language)


def create_static_classifier(config: dict = None, model=None,
                             rules_config: dict = None) -> StaticSignClassifier:
    """Pick the classification strategy.

    Args:
        config: ``ml_classifier`` section (``enabled``, ``model_path``)
        model: injected predictor, bypasses checkpoint loading
        rules_config: ``rules`` section for the rule engine
    """
    from signlens.modules.recognition.rule_classifier import RuleSignClassifier

    config = config or {}
    if model is not None:
        logger.info("Static classifier: injected model")
        return ModelSignClassifier(model)

    if config.get("enabled", True) and config.get("model_path"):
        try:
            from signlens.models.sign_net import TorchSignModel
            torch_model = TorchSignModel(config["model_path"], device=config.get("device"))
            logger.info("Static classifier: SignNet (%d classes)", torch_model.num_classes)
            return ModelSignClassifier(torch_model)
        except ModelUnavailable as e:
            logger.warning("Sign model unavailable (%s), using rule-based classifier", e)

    logger.info("Static classifier: rule-based")
    return RuleSignClassifier.from_dict(rules_config or {})
