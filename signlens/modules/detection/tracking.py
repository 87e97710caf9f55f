"""
Bounded multi-hand tracking history.

Holds the most recent per-frame hand snapshots (oldest -> newest) for
motion analysis. Seeing a frame with no hands breaks continuity and
empties the history.
"""

import logging
from collections import deque
from typing import List, Optional, Sequence

from signlens.core.types import LandmarkFrame

logger = logging.getLogger(__name__)


class TrackingBuffer:
    """FIFO of hand snapshots bounded to ``max_size`` entries."""

    def __init__(self, max_size: int = 30):
        if max_size < 1:
            raise ValueError("max_size must be >= 1, got %r" % max_size)
        self._snapshots = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._snapshots.maxlen

    def push(self, snapshot: Sequence[LandmarkFrame]):
        """Append one frame's hands; an empty snapshot clears the buffer."""
        if not snapshot:
            if self._snapshots:
                logger.debug("Hands lost, clearing %d tracked snapshots", len(self._snapshots))
            self._snapshots.clear()
            return
        self._snapshots.append(tuple(snapshot))

    def clear(self):
        self._snapshots.clear()

    def resize(self, max_size: int):
        """Change the bound, keeping the newest snapshots."""
        if max_size < 1:
            raise ValueError("max_size must be >= 1, got %r" % max_size)
        if max_size != self._snapshots.maxlen:
            self._snapshots = deque(self._snapshots, maxlen=max_size)

    def first(self) -> Optional[tuple]:
        return self._snapshots[0] if self._snapshots else None

    def last(self) -> Optional[tuple]:
        return self._snapshots[-1] if self._snapshots else None

    @property
    def snapshots(self) -> List[tuple]:
        return list(self._snapshots)

    def __len__(self):
        return len(self._snapshots)

    def __bool__(self):
        return bool(self._snapshots)
