"""
Centralized configuration manager.
Loads a YAML config and provides typed access with defaults.

    - Built-in defaults deep-merged under the YAML file
    - Schema validation for critical config fields (warnings only)
    - Plain instances; tests build their own Config objects
"""

import copy
import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(
    os.path.abspath(__file__)))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "pipeline": {
        "recognition_threshold": 0.65,
        "processing_frequency_ms": 300,
        "tracking_history_size": 30,
        "supported_languages": ["asl", "bsl", "lsf"],
        "active_language": "asl",
        "speak_recognized_signs": True,
    },
    "detection": {
        "fallback_on_empty": False,
        "mediapipe": {
            "enabled": True,
            "model_path": "",
            "max_num_hands": 2,
            "min_detection_confidence": 0.5,
            "min_presence_confidence": 0.5,
            "min_tracking_confidence": 0.5,
        },
        "cloud": {
            "enabled": False,
            "endpoint": "https://vision.googleapis.com/v1/images:annotate",
            "api_key_env": "SIGNLENS_VISION_API_KEY",
            "timeout_s": 5.0,
            "estimated_score": 0.6,
            "max_results": 2,
        },
    },
    "ml_classifier": {
        "enabled": True,
        "model_path": "models/weights/sign_net.pth",
    },
    "rules": {
        "fist_epsilon": 0.1,
    },
    "dynamic": {
        "min_frames": 5,
        "wave_min_dx": 50 / 640,
        "wave_max_dy": 30 / 480,
        "wave_confidence": 0.75,
        "thanks_min_dy": 40 / 480,
        "thanks_min_dx": 20 / 640,
        "thanks_confidence": 0.70,
    },
    "dictionaries": {
        "path": "",
    },
    "quota": {
        "window_seconds": 86400,
        "limits": {"vision": 1000},
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "performance": {
        "metrics_window": 100,
    },
}

# Schema: required sections and their expected types
_CONFIG_SCHEMA = {
    "pipeline": {
        "recognition_threshold": float,
        "processing_frequency_ms": int,
        "tracking_history_size": int,
        "supported_languages": list,
        "active_language": str,
        "speak_recognized_signs": bool,
    },
    "detection": {
        "fallback_on_empty": bool,
        "mediapipe": dict,
        "cloud": dict,
    },
    "ml_classifier": {
        "enabled": bool,
    },
    "dynamic": {
        "min_frames": int,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """YAML-backed configuration with dot-path access."""

    def __init__(self, data: dict = None):
        self._data = _deep_merge(copy.deepcopy(DEFAULTS), data or {})

    @classmethod
    def from_file(cls, config_path: str = None) -> 'Config':
        return cls().load(config_path)

    def load(self, config_path: str = None):
        """Load configuration from a YAML file, keeping defaults for missing keys."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            self._data = _deep_merge(copy.deepcopy(DEFAULTS), loaded)
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            self._data = copy.deepcopy(DEFAULTS)

        self._validate()
        return self

    def _validate(self) -> list:
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                warnings.append(f"Missing config section: '{section_name}'")
                continue
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)) \
                            and not isinstance(value, bool):
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'detection.cloud.enabled'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Set a nested value (used by CLI overrides)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    @property
    def pipeline(self) -> dict:
        return self._data.get("pipeline", {})

    @property
    def detection(self) -> dict:
        return self._data.get("detection", {})

    @property
    def mediapipe(self) -> dict:
        return self.detection.get("mediapipe", {})

    @property
    def cloud(self) -> dict:
        return self.detection.get("cloud", {})

    @property
    def ml_classifier(self) -> dict:
        return self._data.get("ml_classifier", {})

    @property
    def rules(self) -> dict:
        return self._data.get("rules", {})

    @property
    def dynamic(self) -> dict:
        return self._data.get("dynamic", {})

    @property
    def quota(self) -> dict:
        return self._data.get("quota", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    def resolve_path(self, path: str) -> str:
        """Resolve a config-relative path against the project root."""
        if not path or os.path.isabs(path):
            return path
        return os.path.join(_BASE_DIR, path)
