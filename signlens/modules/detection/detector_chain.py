"""
Detector fallback chain.

Priority order:
    1. Primary detector  (local, low latency)
    2. Cloud fallback    (remote, estimated keypoints, metered)

Backend availability is decided once in initialize(). Per frame the
chain never raises: if every backend fails the frame counts as
"no hands detected".
"""

import logging
from typing import List, Optional

from signlens.core.errors import DetectorUnavailable, InitializationError, QuotaExceeded
from signlens.core.types import LandmarkFrame
from signlens.modules.detection.base import HandDetectorBackend

logger = logging.getLogger(__name__)


class DetectorChain:
    """Primary detector with an optional fallback backend."""

    def __init__(self, primary: Optional[HandDetectorBackend] = None,
                 fallback: Optional[HandDetectorBackend] = None,
                 fallback_on_empty: bool = False):
        self._primary = primary
        self._fallback = fallback
        self.fallback_on_empty = fallback_on_empty

        self._primary_ready = False
        self._fallback_ready = False
        self._initialized = False

        # Stats
        self._primary_calls = 0
        self._fallback_calls = 0
        self._failures = 0

    def initialize(self):
        """Initialize every backend once.

        Raises:
            InitializationError: when no backend could be initialized.
        """
        if self._initialized:
            return

        self._primary_ready = self._init_backend(self._primary)
        self._fallback_ready = self._init_backend(self._fallback)

        if not (self._primary_ready or self._fallback_ready):
            raise InitializationError("No hand detector backend could be initialized")

        if self._primary_ready:
            logger.info("Detector: %s (fallback: %s)", self._primary.name,
                        self._fallback.name if self._fallback_ready else "none")
        else:
            logger.warning("Primary detector unavailable, using %s only", self._fallback.name)
        self._initialized = True

    @staticmethod
    def _init_backend(backend: Optional[HandDetectorBackend]) -> bool:
        if backend is None:
            return False
        try:
            backend.initialize()
            return True
        except DetectorUnavailable as e:
            logger.warning("Detector '%s' unavailable: %s", backend.name, e)
            return False

    @property
    def active_backend(self) -> Optional[str]:
        if self._primary_ready:
            return self._primary.name
        if self._fallback_ready:
            return self._fallback.name
        return None

    @property
    def stats(self) -> dict:
        return {
            "backend": self.active_backend,
            "primary_calls": self._primary_calls,
            "fallback_calls": self._fallback_calls,
            "failures": self._failures,
        }

    def detect_hands(self, frame, allow_fallback: Optional[bool] = None) -> List[LandmarkFrame]:
        """Run detection on one frame.

        Args:
            frame: opaque frame reference
            allow_fallback: retry with the fallback when the primary
                found no hands (defaults to ``fallback_on_empty``)
        """
        if allow_fallback is None:
            allow_fallback = self.fallback_on_empty

        if self._primary_ready:
            try:
                self._primary_calls += 1
                hands = self._primary.detect_hands(frame)
            except DetectorUnavailable as e:
                self._failures += 1
                logger.warning("Primary detector failed: %s", e)
            else:
                if hands or not allow_fallback:
                    return hands
                logger.debug("Primary found no hands, trying fallback")

        return self._detect_with_fallback(frame)

    def _detect_with_fallback(self, frame) -> List[LandmarkFrame]:
        if not self._fallback_ready:
            return []
        try:
            self._fallback_calls += 1
            return self._fallback.detect_hands(frame)
        except QuotaExceeded as e:
            self._failures += 1
            logger.warning("Fallback detector refused: %s", e)
        except DetectorUnavailable as e:
            self._failures += 1
            logger.warning("Fallback detector failed: %s", e)
        return []

    def close(self):
        for backend in (self._primary, self._fallback):
            if backend is not None:
                backend.close()
        self._primary_ready = False
        self._fallback_ready = False
        self._initialized = False
