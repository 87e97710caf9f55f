"""
Recognition orchestrator for the sign-language engine.

Owns the run state and configuration, throttles frame intake, and runs
one recognition cycle per admitted frame:

    frame -> DetectorChain -> TrackingBuffer
          -> DynamicGestureRecognizer (priority)
          -> StaticSignClassifier     (when no motion matched)
          -> threshold gate -> last detected sign -> EventBus

Output channels (speech, UI) hang off the event bus; announcements are
dispatched on a daemon thread so a cycle never waits on them.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, List, Optional

from signlens.core.errors import InitializationError
from signlens.core.events import EventBus, Events
from signlens.core.types import PipelineState, RecognizedSign
from signlens.models.static_classifier import StaticSignClassifier, create_static_classifier
from signlens.modules.detection.detector_chain import DetectorChain
from signlens.modules.detection.tracking import TrackingBuffer
from signlens.modules.recognition.dynamic_recognizer import (
    DynamicGestureConfig, DynamicGestureRecognizer,
)
from signlens.modules.recognition.sign_dictionary import (
    SignDictionary, load_default_dictionaries, load_dictionaries_from_yaml,
)
from signlens.modules.utils.logger import SignLogger, log_timing
from signlens.modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Runtime-tunable pipeline settings."""
    recognition_threshold: float = 0.65
    processing_frequency_ms: float = 300
    tracking_history_size: int = 30
    supported_languages: List[str] = field(default_factory=lambda: ["asl", "bsl", "lsf"])
    active_language: str = "asl"
    speak_recognized_signs: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "PipelineConfig":
        """Build from a config section; invalid values keep their default."""
        config = cls()
        for name, value in d.items():
            if name not in cls.__dataclass_fields__:
                continue
            try:
                setattr(config, name, cls.validate_field(name, value))
            except (TypeError, ValueError) as e:
                logger.warning("Ignoring pipeline.%s=%r: %s", name, value, e)
        return config

    def to_dict(self) -> dict:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["supported_languages"] = list(self.supported_languages)
        return d

    @staticmethod
    def validate_field(name: str, value):
        """Validate one field, returning the normalized value.

        Raises:
            ValueError: unknown field or invalid value
        """
        if name == "recognition_threshold":
            value = float(value)
            if not 0.0 <= value <= 1.0:
                raise ValueError("recognition_threshold must be within [0, 1]")
        elif name == "processing_frequency_ms":
            value = float(value)
            if value < 0:
                raise ValueError("processing_frequency_ms must be >= 0")
        elif name == "tracking_history_size":
            if isinstance(value, bool) or int(value) != value or int(value) < 1:
                raise ValueError("tracking_history_size must be a positive integer")
            value = int(value)
        elif name == "supported_languages":
            if isinstance(value, str) or not value:
                raise ValueError("supported_languages must be a non-empty list")
            value = [str(code) for code in value]
        elif name == "active_language":
            value = str(value)
        elif name == "speak_recognized_signs":
            if not isinstance(value, bool):
                raise ValueError("speak_recognized_signs must be a bool")
        else:
            raise ValueError("unknown pipeline setting '%s'" % name)
        return value


class SignRecognitionPipeline:
    """Throttled, single-in-flight sign recognition engine.

    Usage::

        pipeline = SignRecognitionPipeline(detector_chain)
        pipeline.start()
        sign = pipeline.process_frame(frame)

    Args:
        detector: DetectorChain, or a single backend (wrapped in a chain)
        static_classifier: strategy from create_static_classifier()
        dictionaries: language code -> SignDictionary
        config: PipelineConfig or plain dict
        event_bus: bus for side effects; a private one is created if omitted
        announcer: ``announcer(text, language_hint)`` speech output hook
        clock: monotonic seconds source, injectable for tests
    """

    def __init__(self, detector, static_classifier: Optional[StaticSignClassifier] = None,
                 dictionaries: Optional[Dict[str, SignDictionary]] = None,
                 config=None, event_bus: Optional[EventBus] = None,
                 announcer: Optional[Callable[[str, str], None]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 dynamic_recognizer: Optional[DynamicGestureRecognizer] = None,
                 performance_monitor: Optional[PerformanceMonitor] = None):
        if not isinstance(detector, DetectorChain):
            detector = DetectorChain(primary=detector)
        if isinstance(config, dict):
            config = PipelineConfig.from_dict(config)

        self._detector = detector
        self._static = static_classifier
        self._dictionaries = dictionaries
        self._config = config or PipelineConfig()
        self._bus = event_bus or EventBus()
        self._clock = clock
        self._dynamic = dynamic_recognizer or DynamicGestureRecognizer()
        self._perf = performance_monitor or PerformanceMonitor()
        self._sign_logger = SignLogger()

        self._buffer = TrackingBuffer(self._config.tracking_history_size)
        self._state = PipelineState.IDLE
        self._initialized = False
        self._last_result: Optional[RecognizedSign] = None
        self._last_processed: Optional[float] = None
        # Bumped on stop() so in-flight cycles know to drop their result
        self._generation = 0

        self._cycle_lock = threading.Lock()
        self._config_lock = threading.Lock()
        # Guards the buffer and generation; never held across detection
        self._buffer_lock = threading.Lock()

        if announcer is not None:
            self._bus.subscribe(Events.ANNOUNCE,
                                lambda text, language, **_: announcer(text, language))

    # =========================================================================
    # Construction from config
    # =========================================================================

    @classmethod
    def from_config(cls, config, event_bus: Optional[EventBus] = None,
                    announcer=None, model=None) -> "SignRecognitionPipeline":
        """Build the full stack from a loaded :class:`Config`."""
        from signlens.modules.utils.quota import QuotaTracker

        primary = fallback = None
        if config.mediapipe.get("enabled", True):
            from signlens.modules.detection.hand_detector import (
                HandDetectorConfig, MediaPipeHandDetector,
            )
            mp_section = dict(config.mediapipe)
            mp_section["model_path"] = config.resolve_path(mp_section.get("model_path", ""))
            primary = MediaPipeHandDetector(HandDetectorConfig.from_dict(mp_section))
        if config.cloud.get("enabled", False):
            from signlens.modules.detection.cloud_detector import (
                CloudDetectorConfig, CloudVisionDetector,
            )
            fallback = CloudVisionDetector(CloudDetectorConfig.from_dict(config.cloud),
                                           quota=QuotaTracker.from_config(config.quota))
        chain = DetectorChain(primary, fallback,
                              fallback_on_empty=config.get("detection.fallback_on_empty", False))

        ml_section = dict(config.ml_classifier)
        ml_section["model_path"] = config.resolve_path(ml_section.get("model_path", ""))
        static = create_static_classifier(ml_section, model=model, rules_config=config.rules)

        languages = config.pipeline.get("supported_languages")
        dictionaries = load_default_dictionaries(languages)
        override = config.get("dictionaries.path")
        if override:
            dictionaries = load_dictionaries_from_yaml(config.resolve_path(override), dictionaries)

        return cls(
            chain,
            static_classifier=static,
            dictionaries=dictionaries,
            config=PipelineConfig.from_dict(config.pipeline),
            event_bus=event_bus,
            announcer=announcer,
            dynamic_recognizer=DynamicGestureRecognizer(
                DynamicGestureConfig.from_dict(config.dynamic)),
            performance_monitor=PerformanceMonitor(config.get("performance.metrics_window", 100)),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @log_timing
    def initialize(self):
        """Prepare detector, classifier and dictionaries once.

        Raises:
            InitializationError: no usable detector, or no dictionary for
                the active language.
        """
        if self._initialized:
            return

        self._detector.initialize()
        if self._static is None:
            self._static = create_static_classifier()
        if self._dictionaries is None:
            self._dictionaries = load_default_dictionaries(self._config.supported_languages)
        if self._config.active_language not in self._dictionaries:
            raise InitializationError(
                "No sign dictionary for active language '%s'" % self._config.active_language)

        self._initialized = True
        logger.info("Pipeline initialized (detector=%s, classifier=%s, languages=%s)",
                    self._detector.active_backend, self._static.backend,
                    ", ".join(sorted(self._dictionaries)))

    def start(self):
        self.initialize()
        if self._state is PipelineState.RUNNING:
            return
        self._clear_buffer()
        self._state = PipelineState.RUNNING
        logger.info("Sign recognition started (%s)", self._config.active_language)
        self._bus.emit(Events.PIPELINE_STARTED, language=self._config.active_language)

    def stop(self):
        if self._state is PipelineState.IDLE:
            return
        self._state = PipelineState.IDLE
        with self._buffer_lock:
            self._generation += 1
        logger.info("Sign recognition stopped")
        self._bus.emit(Events.PIPELINE_STOPPED)

    def close(self):
        self.stop()
        self._detector.close()
        self._initialized = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is PipelineState.RUNNING

    # =========================================================================
    # Frame processing
    # =========================================================================

    def process_frame(self, frame, allow_fallback: Optional[bool] = None) -> Optional[RecognizedSign]:
        """Run one recognition cycle if the frame is admitted.

        Returns the cached last result when idle, throttled, or while
        another cycle is in flight. Never raises for per-frame failures.
        """
        if self._state is not PipelineState.RUNNING:
            return self._last_result

        now = self._clock()
        if self._last_processed is not None and \
                (now - self._last_processed) * 1000.0 < self._config.processing_frequency_ms:
            self._perf.record_throttled()
            return self._last_result

        if not self._cycle_lock.acquire(blocking=False):
            self._perf.record_busy()
            return self._last_result

        try:
            generation = self._generation
            # stop() flips state before bumping the generation
            if self._state is not PipelineState.RUNNING:
                return self._last_result
            self._last_processed = now
            try:
                with self._perf.measure("total"):
                    sign = self._run_cycle(frame, allow_fallback, generation)
            except Exception as e:
                logger.error("Recognition cycle failed: %s", e, exc_info=True)
                sign = None

            if generation != self._generation or self._state is not PipelineState.RUNNING:
                logger.debug("Discarding result of a cycle that outlived stop()")
                return None

            self._perf.record_processed()
            self._set_last_result(sign)
            return sign
        finally:
            self._cycle_lock.release()

    def _run_cycle(self, frame, allow_fallback, generation) -> Optional[RecognizedSign]:
        with self._perf.measure("detection"):
            hands = self._detector.detect_hands(frame, allow_fallback=allow_fallback)

        if not hands:
            had_hands = bool(self._buffer)
            if self._clear_buffer(generation) and had_hands:
                self._bus.emit(Events.HANDS_LOST)
            return None

        # A cycle overtaken by stop() leaves the buffer untouched
        if not self._push_frame(hands, generation):
            return None
        self._bus.emit(Events.HANDS_DETECTED, hands=hands)

        with self._config_lock:
            threshold = self._config.recognition_threshold
            dictionary = self._dictionaries[self._config.active_language]

        with self._perf.measure("dynamic"):
            sign = self._dynamic.recognize(self._buffer, dictionary)
        if sign is None:
            with self._perf.measure("classification"):
                sign = self._static.classify(hands, dictionary, threshold)

        if sign is not None and sign.confidence < threshold:
            logger.debug("%r below threshold %.2f", sign, threshold)
            return None
        return sign

    # =========================================================================
    # State mutations
    # =========================================================================

    def _push_frame(self, hands, generation: Optional[int] = None) -> bool:
        with self._buffer_lock:
            if generation is not None and generation != self._generation:
                return False
            self._buffer.push(hands)
            return True

    def _clear_buffer(self, generation: Optional[int] = None) -> bool:
        with self._buffer_lock:
            if generation is not None and generation != self._generation:
                return False
            self._buffer.clear()
            return True

    def _set_last_result(self, sign: Optional[RecognizedSign]):
        self._last_result = sign
        if sign is None:
            return
        self._sign_logger.log_sign(sign, latency_ms=self._perf.total_latency_ms)
        self._bus.emit(Events.SIGN_RECOGNIZED, sign=sign)
        if self._config.speak_recognized_signs:
            self._bus.emit_async(Events.ANNOUNCE, text=sign.to_text(), language=sign.language)

    # =========================================================================
    # Configuration
    # =========================================================================

    def update_config(self, partial: Optional[dict] = None, **kwargs) -> List[str]:
        """Merge settings into the live config.

        Valid fields are applied; the names of rejected fields are
        returned. Running state and the tracking buffer are kept.
        """
        changes = dict(partial or {})
        changes.update(kwargs)
        rejected = []

        with self._config_lock:
            candidate = PipelineConfig(**self._config.to_dict())
            for name, value in changes.items():
                try:
                    if name == "supported_languages":
                        raise ValueError("supported_languages is fixed at construction")
                    setattr(candidate, name, PipelineConfig.validate_field(name, value))
                except (TypeError, ValueError) as e:
                    logger.warning("Rejected config update %s=%r: %s", name, value, e)
                    rejected.append(name)

            if candidate.active_language != self._config.active_language and \
                    not self._language_usable(candidate.active_language, candidate):
                logger.warning("Rejected config update active_language=%r: not supported",
                               candidate.active_language)
                candidate.active_language = self._config.active_language
                rejected.append("active_language")

            self._config = candidate

        with self._buffer_lock:
            self._buffer.resize(candidate.tracking_history_size)

        logger.info("Pipeline config updated: %s", self._config.to_dict())
        self._bus.emit(Events.CONFIG_UPDATED, config=self._config.to_dict(), rejected=rejected)
        return rejected

    def _language_usable(self, code: str, config: PipelineConfig) -> bool:
        if code not in config.supported_languages:
            return False
        return self._dictionaries is None or code in self._dictionaries

    def set_active_language(self, code: str) -> bool:
        """Switch the output language; False if it is not supported."""
        if not self.is_language_supported(code):
            logger.warning("Language '%s' not supported", code)
            return False
        return not self.update_config(active_language=code)

    def is_language_supported(self, code: str) -> bool:
        return self._language_usable(code, self._config)

    def get_supported_languages(self) -> List[str]:
        return list(self._config.supported_languages)

    @property
    def config(self) -> PipelineConfig:
        return PipelineConfig(**self._config.to_dict())

    # =========================================================================
    # Read access
    # =========================================================================

    def get_last_detected_sign(self) -> Optional[RecognizedSign]:
        return self._last_result

    @property
    def tracking_buffer(self) -> tuple:
        """Read-only snapshot of the tracking history, oldest first."""
        with self._buffer_lock:
            return tuple(self._buffer.snapshots)

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def performance(self) -> PerformanceMonitor:
        return self._perf

    @property
    def stats(self) -> dict:
        return {
            "detector": self._detector.stats,
            "classifier": self._static.stats if self._static else None,
            "signs": self._sign_logger.total_signs,
            "signs_by_type": self._sign_logger.counts_by_type,
        }
