"""
Per-stage latency tracking for the recognition cycle.
Thread-safe metrics collection with rolling windows.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Tracks per-stage latency and frame admission counters."""

    def __init__(self, window_size=100):
        self._window_size = window_size
        self._lock = threading.Lock()

        self._stage_times = {}
        for name in ("detection", "dynamic", "classification", "total"):
            self._stage_times[name] = deque(maxlen=window_size)

        # Counters
        self._processed = 0
        self._throttled = 0
        self._rejected_busy = 0
        self._start_time = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Context manager to measure a pipeline stage's duration."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                if stage_name not in self._stage_times:
                    self._stage_times[stage_name] = deque(maxlen=self._window_size)
                self._stage_times[stage_name].append(elapsed_ms)

    def record_processed(self):
        with self._lock:
            self._processed += 1

    def record_throttled(self):
        with self._lock:
            self._throttled += 1

    def record_busy(self):
        """Record a frame rejected because a cycle was in flight."""
        with self._lock:
            self._rejected_busy += 1

    @property
    def processed_frames(self) -> int:
        return self._processed

    @property
    def throttled_frames(self) -> int:
        return self._throttled

    @property
    def busy_rejections(self) -> int:
        return self._rejected_busy

    @property
    def total_latency_ms(self) -> float:
        """Average total cycle latency in ms."""
        return self.get_stage_latency("total")

    def get_stage_latency(self, stage_name: str) -> float:
        """Get average latency for a specific stage in ms."""
        with self._lock:
            times = self._stage_times.get(stage_name, [])
            if not times:
                return 0.0
            return sum(times) / len(times)

    def get_report(self) -> dict:
        """Generate a performance report."""
        with self._lock:
            latencies = {
                name: (sum(times) / len(times) if times else 0.0)
                for name, times in self._stage_times.items()
            }
            submitted = self._processed + self._throttled + self._rejected_busy
            return {
                "processed_frames": self._processed,
                "throttled_frames": self._throttled,
                "busy_rejections": self._rejected_busy,
                "admission_rate": round(self._processed / max(submitted, 1) * 100, 2),
                "uptime_seconds": round(time.time() - self._start_time, 1),
                "latencies_ms": {k: round(v, 2) for k, v in latencies.items()},
            }

    def print_report(self):
        """Log a formatted performance report."""
        report = self.get_report()
        logger.info("=" * 60)
        logger.info("PERFORMANCE REPORT")
        logger.info("=" * 60)
        logger.info("Processed:      %d", report["processed_frames"])
        logger.info("Throttled:      %d", report["throttled_frames"])
        logger.info("Busy rejected:  %d", report["busy_rejections"])
        logger.info("Uptime:         %.1fs", report["uptime_seconds"])
        logger.info("-" * 40)
        logger.info("Stage Latencies (avg ms):")
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-18s %7.2f ms", stage, latency)
        logger.info("=" * 60)

    def reset(self):
        """Reset all metrics."""
        with self._lock:
            for name in self._stage_times:
                self._stage_times[name].clear()
            self._processed = 0
            self._throttled = 0
            self._rejected_busy = 0
            self._start_time = time.time()
