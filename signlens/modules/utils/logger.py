"""
Structured logging with recognized-sign event logging.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure structured logging for the application."""
    # Compact console format
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    # File handler (rotating)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class SignLogger:
    """Logs recognized signs on a dedicated logger.

    Keeps only counters; recognition history belongs to the UI layer.
    """

    def __init__(self):
        self.logger = logging.getLogger("sign_events")
        self._total = 0
        self._per_type = {}

    def log_sign(self, sign, latency_ms=None):
        """Log a recognized sign event."""
        self._total += 1
        self._per_type[sign.type.value] = self._per_type.get(sign.type.value, 0) + 1
        self.logger.info(
            "Sign: %-12s | Type: %-8s | Lang: %s | Confidence: %.2f | Latency: %s",
            sign.value,
            sign.type.value,
            sign.language,
            sign.confidence,
            f"{latency_ms:.1f}ms" if latency_ms else "N/A",
        )

    @property
    def total_signs(self):
        return self._total

    @property
    def counts_by_type(self):
        return dict(self._per_type)


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
