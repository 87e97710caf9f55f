"""
Motion-based (dynamic) sign recognition from the tracking history.

Compares the wrist of the first hand in the oldest and the newest
snapshot. Displacements are measured in frame-normalized units; the
default thresholds correspond to the classic pixel constants on a
640x480 frame (50px, 30px, 40px, 20px).

    wave          |dx| > wave_min_dx  and |dy| < wave_max_dy  -> greeting
    forward_down   dy  > thanks_min_dy and  dx  > thanks_min_dx -> thanks
"""

import logging
from dataclasses import dataclass
from typing import Optional

from signlens.core.types import RecognizedSign, SignType
from signlens.modules.detection.tracking import TrackingBuffer
from signlens.modules.recognition.sign_dictionary import FORWARD_DOWN, WAVE

logger = logging.getLogger(__name__)

_REF_WIDTH = 640.0
_REF_HEIGHT = 480.0


@dataclass
class DynamicGestureConfig:
    min_frames: int = 5
    wave_min_dx: float = 50 / _REF_WIDTH
    wave_max_dy: float = 30 / _REF_HEIGHT
    wave_confidence: float = 0.75
    thanks_min_dy: float = 40 / _REF_HEIGHT
    thanks_min_dx: float = 20 / _REF_WIDTH
    thanks_confidence: float = 0.70

    @classmethod
    def from_dict(cls, d: dict) -> "DynamicGestureConfig":
        defaults = cls()
        return cls(**{
            name: type(getattr(defaults, name))(d.get(name, getattr(defaults, name)))
            for name in cls.__dataclass_fields__
        })


class DynamicGestureRecognizer:
    """Classifies wave / forward-down motion over the tracking buffer."""

    def __init__(self, config: Optional[DynamicGestureConfig] = None):
        self.config = config or DynamicGestureConfig()

    def displacement(self, buffer: TrackingBuffer) -> Optional[tuple]:
        """(dx, dy) of the first hand's wrist, oldest -> newest snapshot."""
        first, last = buffer.first(), buffer.last()
        if not first or not last:
            return None
        start = first[0].normalized()[0]
        end = last[0].normalized()[0]
        return float(end[0] - start[0]), float(end[1] - start[1])

    def match_gesture(self, buffer: TrackingBuffer) -> Optional[tuple]:
        """Name and confidence of the motion in the buffer, if any."""
        cfg = self.config
        if len(buffer) < cfg.min_frames:
            return None
        dx, dy = self.displacement(buffer)

        if abs(dx) > cfg.wave_min_dx and abs(dy) < cfg.wave_max_dy:
            return WAVE, cfg.wave_confidence
        if dy > cfg.thanks_min_dy and dx > cfg.thanks_min_dx:
            return FORWARD_DOWN, cfg.thanks_confidence
        return None

    def recognize(self, buffer: TrackingBuffer, dictionary) -> Optional[RecognizedSign]:
        """Dynamic sign from ``dictionary`` for the buffered motion, or None."""
        match = self.match_gesture(buffer)
        if match is None:
            return None
        gesture, confidence = match

        key = dictionary.resolve_dynamic(gesture)
        entry = dictionary.lookup(key) if key else None
        if entry is None:
            logger.debug("No '%s' sign for dynamic gesture '%s'", dictionary.language, gesture)
            return None

        logger.debug("Dynamic gesture '%s' -> %s", gesture, key)
        return RecognizedSign.from_entry(key, entry, confidence, dictionary.language,
                                         sign_type=SignType.DYNAMIC)
