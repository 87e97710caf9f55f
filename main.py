#!/usr/bin/env python3
"""
SignLens - real-time sign-language recognition
Command-line runner feeding frames into SignRecognitionPipeline.

Frame sources:
    python main.py                         # default camera (index 0)
    python main.py --source 1              # camera index
    python main.py --source clip.mp4       # video file
    python main.py --source frames/        # directory of images

Camera lifecycle lives here; the pipeline only ever sees frames.
"""

import argparse
import logging
import os
import signal
import sys

import cv2

from signlens.core.events import EventBus, Events
from signlens.core.pipeline import SignRecognitionPipeline
from signlens.core.errors import InitializationError
from signlens.modules.utils.config import Config
from signlens.modules.utils.logger import setup_logging

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp")


def log_announcement(text, language):
    """Stand-in speech output: writes the announcement to the log."""
    logger.info("Announce [%s]: %s", language, text)


def iter_frames(source, max_frames=None):
    """Yield frames from a camera index, video file or image directory."""
    count = 0
    if os.path.isdir(source):
        names = sorted(n for n in os.listdir(source) if n.lower().endswith(IMAGE_EXTENSIONS))
        for name in names:
            if max_frames is not None and count >= max_frames:
                return
            count += 1
            yield os.path.join(source, name)
        return

    capture = cv2.VideoCapture(int(source) if source.isdigit() else source)
    if not capture.isOpened():
        raise IOError("Cannot open frame source: %s" % source)
    try:
        while max_frames is None or count < max_frames:
            ok, frame = capture.read()
            if not ok:
                break
            count += 1
            yield frame
    finally:
        capture.release()


class SignLensApp:
    """Wires config, event bus and pipeline for the CLI."""

    def __init__(self, config: Config, speak: bool = True):
        self._running = False
        self._bus = EventBus()
        self._bus.subscribe(Events.HANDS_LOST, lambda **_: logger.debug("Hands lost"))
        self._pipeline = SignRecognitionPipeline.from_config(
            config, event_bus=self._bus, announcer=log_announcement if speak else None,
        )

    @property
    def pipeline(self) -> SignRecognitionPipeline:
        return self._pipeline

    def run(self, source: str, max_frames=None):
        self._pipeline.start()
        self._running = True
        try:
            for frame in iter_frames(source, max_frames):
                if not self._running:
                    break
                self._pipeline.process_frame(frame)
        finally:
            self._shutdown()

    def _shutdown(self):
        logger.info("Shutting down...")
        self._running = False
        self._pipeline.close()
        self._pipeline.performance.print_report()
        logger.info("Stats: %s", self._pipeline.stats)

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="SignLens - real-time sign-language recognition")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--source", type=str, default="0",
                        help="Camera index, video file or image directory")
    parser.add_argument("--language", type=str, default=None, help="Active sign language (asl, bsl, lsf)")
    parser.add_argument("--threshold", type=float, default=None, help="Recognition threshold [0, 1]")
    parser.add_argument("--no-speak", action="store_true", help="Do not announce recognized signs")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop after N frames")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = Config.from_file(args.config)
    if args.language is not None:
        config.set("pipeline.active_language", args.language)
    if args.threshold is not None:
        config.set("pipeline.recognition_threshold", args.threshold)
    if args.no_speak:
        config.set("pipeline.speak_recognized_signs", False)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  SIGNLENS - sign-language recognition")
    logger.info("  Language: %s", config.get("pipeline.active_language"))
    logger.info("=" * 60)

    app = SignLensApp(config, speak=not args.no_speak)
    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    try:
        app.run(args.source, max_frames=args.max_frames)
    except InitializationError as e:
        logger.error("Cannot start: %s", e)
        return 1
    except IOError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
