"""
Sliding-window API quota gate.

Tracks metered remote calls per service and refuses new calls once the
configured limit for the current window has been used.
"""

import time
import logging
import threading
from collections import defaultdict, deque

logger = logging.getLogger(__name__)


class QuotaTracker:
    """Per-service call counter over a sliding time window."""

    def __init__(self, limits: dict = None, window_seconds: float = 86400, clock=time.monotonic):
        self._limits = dict(limits or {})
        self._window = float(window_seconds)
        self._clock = clock
        self._calls = defaultdict(deque)
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> 'QuotaTracker':
        return cls(
            limits=config.get("limits", {}),
            window_seconds=config.get("window_seconds", 86400),
        )

    def _prune(self, service: str, now: float):
        calls = self._calls[service]
        while calls and now - calls[0] >= self._window:
            calls.popleft()

    def track_call(self, service: str) -> bool:
        """Record a call if quota remains. Returns False when refused.

        Services without a configured limit are never refused.
        """
        limit = self._limits.get(service)
        now = self._clock()
        with self._lock:
            self._prune(service, now)
            if limit is not None and len(self._calls[service]) >= limit:
                logger.warning("Quota reached for '%s' (%d calls / %.0fs)",
                               service, limit, self._window)
                return False
            self._calls[service].append(now)
            return True

    def remaining(self, service: str):
        """Calls left in the current window, or None if unlimited."""
        limit = self._limits.get(service)
        if limit is None:
            return None
        with self._lock:
            self._prune(service, self._clock())
            return max(0, limit - len(self._calls[service]))

    def reset(self, service: str = None):
        with self._lock:
            if service:
                self._calls.pop(service, None)
            else:
                self._calls.clear()
