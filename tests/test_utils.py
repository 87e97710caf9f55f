"""
Tests for Utility Modules
==========================
"""

import logging
import time

import pytest
import yaml

from conftest import FakeClock
from signlens.core.types import RecognizedSign, SignType
from signlens.modules.utils.config import DEFAULTS, Config
from signlens.modules.utils.logger import SignLogger, log_timing, setup_logging
from signlens.modules.utils.performance_monitor import PerformanceMonitor
from signlens.modules.utils.quota import QuotaTracker


class TestConfig:
    """Test suite for the YAML config layer."""

    def test_defaults(self):
        config = Config()
        assert config.get("pipeline.recognition_threshold") == 0.65
        assert config.get("pipeline.processing_frequency_ms") == 300
        assert config.get("pipeline.supported_languages") == ["asl", "bsl", "lsf"]
        assert config.get("missing.key", "fallback") == "fallback"

    def test_load_merges_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"pipeline": {"active_language": "lsf"}}))
        config = Config.from_file(str(path))
        assert config.pipeline["active_language"] == "lsf"
        assert config.pipeline["tracking_history_size"] == 30

    def test_missing_file_uses_defaults(self, tmp_path):
        config = Config.from_file(str(tmp_path / "nope.yaml"))
        assert config.pipeline == DEFAULTS["pipeline"]

    def test_validation_warns(self):
        config = Config({"pipeline": {"tracking_history_size": "lots"}})
        warnings = config._validate()
        assert any("tracking_history_size" in w for w in warnings)

    def test_set_and_sections(self):
        config = Config()
        config.set("detection.cloud.enabled", True)
        assert config.cloud["enabled"] is True
        assert config.get_section("quota")["limits"]["vision"] == 1000

    def test_instances_are_independent(self):
        a, b = Config(), Config()
        a.set("pipeline.active_language", "bsl")
        assert b.get("pipeline.active_language") == "asl"

    def test_repo_config_file_loads(self):
        config = Config.from_file()
        assert config._validate() == []


class TestQuotaTracker:

    def test_limit_enforced(self):
        quota = QuotaTracker(limits={"vision": 2})
        assert quota.track_call("vision")
        assert quota.track_call("vision")
        assert not quota.track_call("vision")
        assert quota.remaining("vision") == 0

    def test_window_slides(self):
        clock = FakeClock()
        quota = QuotaTracker(limits={"vision": 1}, window_seconds=60, clock=clock)
        assert quota.track_call("vision")
        assert not quota.track_call("vision")
        clock.advance(60)
        assert quota.track_call("vision")

    def test_unlimited_service(self):
        quota = QuotaTracker(limits={"vision": 1})
        assert all(quota.track_call("other") for _ in range(10))
        assert quota.remaining("other") is None

    def test_from_config(self):
        quota = QuotaTracker.from_config(DEFAULTS["quota"])
        assert quota.remaining("vision") == 1000


class TestPerformanceMonitor:
    """Test suite for PerformanceMonitor class."""

    def test_measure_stage(self):
        monitor = PerformanceMonitor()
        with monitor.measure("detection"):
            time.sleep(0.01)
        assert monitor.get_stage_latency("detection") >= 9

    def test_measure_records_on_error(self):
        monitor = PerformanceMonitor()
        with pytest.raises(RuntimeError):
            with monitor.measure("classification"):
                raise RuntimeError("boom")
        assert monitor.get_stage_latency("classification") >= 0

    def test_counters_and_report(self):
        monitor = PerformanceMonitor()
        monitor.record_processed()
        monitor.record_throttled()
        monitor.record_throttled()
        monitor.record_busy()
        report = monitor.get_report()
        assert report["processed_frames"] == 1
        assert report["throttled_frames"] == 2
        assert report["busy_rejections"] == 1
        assert report["admission_rate"] == 25.0

        monitor.reset()
        assert monitor.processed_frames == 0


class TestLogging:

    def test_sign_logger_counts(self, caplog):
        sign_logger = SignLogger()
        sign = RecognizedSign(SignType.ALPHABET, "A", 0.8, "asl")
        with caplog.at_level(logging.INFO, logger="sign_events"):
            sign_logger.log_sign(sign, latency_ms=12.5)
        assert sign_logger.total_signs == 1
        assert sign_logger.counts_by_type == {"alphabet": 1}
        assert "12.5ms" in caplog.text

    def test_setup_logging_file(self, tmp_path):
        log_file = tmp_path / "logs" / "signlens.log"
        root = setup_logging("DEBUG", log_file=str(log_file))
        try:
            logging.getLogger("signlens.test").info("hello")
            assert log_file.exists()
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)

    def test_log_timing_preserves_result(self):
        @log_timing
        def double(x):
            return 2 * x

        assert double(4) == 8
        assert double.__name__ == "double"
