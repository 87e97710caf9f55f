"""Abstract base class for hand-landmark detector backends."""

from abc import ABC, abstractmethod
from typing import List

from signlens.core.types import LandmarkFrame


class HandDetectorBackend(ABC):
    """A component that turns one frame into zero or more LandmarkFrames.

    ``detect_hands`` returns an empty list when no hand is visible and
    raises :class:`~signlens.core.errors.DetectorUnavailable` on failure.
    """

    name = "backend"

    def initialize(self) -> None:
        """Load models / open sessions. Raises DetectorUnavailable."""

    @abstractmethod
    def detect_hands(self, frame) -> List[LandmarkFrame]:
        ...

    def close(self) -> None:
        """Release resources."""

    @property
    def is_available(self) -> bool:
        return True

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
