#!/usr/bin/env python3
"""Configuration loader for fusion sentry."""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

from logger import get_logger

log = get_logger(__name__)

PROFILES = ("intrusion", "probe")


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "capture_device": "default",
            "playback_device": "default",
            "sample_rate": 44100,
            "channels": 1,
            "sample_format": "S16_LE",
            "block_samples": 2048
        },
        "sonar": {
            "center_freq_hz": 19000.0,
            "doppler_offset_hz": 150.0,
            "amplitude_smoothing": 0.8,
            "sideband_threshold_ratio": 0.2,
            "sideband_dominance_ratio": 1.1,
            "capture_interval_sec": 0.04,
            "queue_size": 8
        },
        "conditioning": {
            "alpha_magnetic": 0.1,
            "alpha_motion": 0.2,
            "alpha_rf": 0.2,
            "alpha_light": 1.0,
            "alpha_echo": 1.0,
            "history_size": 20,
            "hum_window": 10,
            "calibration_samples": 50,
            "noise_floor_warmup": 10,
            "initial_noise_floor": 1.0,
            "gravity": 9.81
        },
        "classification": {
            "profile": "intrusion",
            "sentry_mode": False,
            "person_mode": True,
            "object_mode": True,
            "stationary_threshold": 0.05,
            "handling_threshold": 0.5,
            "rf_noise_multiplier": 3.0,
            "rf_variance_floor": 1.5,
            "light_variance_threshold": 4.0,
            "rf_drop_threshold": 5.0,
            "rf_blocked_max_variance": 2.0,
            "electronics_deviation": 3.0,
            "hum_threshold": 1.0,
            "ferrous_deviation": 15.0,
            "probe_ferrous_deviation": 10.0,
            "hard_surface_max_deviation": 5.0,
            "hard_echo_ratio": 1.15,
            "soft_echo_ratio": 0.85
        },
        "session": {
            "rf_poll_interval_sec": 0.5,
            "scan_interval_sec": 10.0,
            "aggregation_window_sec": 30.0
        },
        "logging": {
            "level": "INFO",
            "log_file": None
        }
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate configuration structure and values."""
    defaults = get_default_config()

    for key in defaults.keys():
        if key not in config:
            return False, f"Missing required config section: {key}"

    audio = config.get("audio", {})
    if not isinstance(audio.get("sample_rate"), int) or audio.get("sample_rate") <= 0:
        return False, "audio.sample_rate must be a positive integer"
    if not isinstance(audio.get("block_samples"), int) or audio.get("block_samples") <= 0:
        return False, "audio.block_samples must be a positive integer"

    sonar = config.get("sonar", {})
    nyquist = audio["sample_rate"] / 2
    if not 0 < sonar.get("center_freq_hz", 0) + sonar.get("doppler_offset_hz", 0) < nyquist:
        return False, "sonar.center_freq_hz + doppler_offset_hz must be below Nyquist"
    if not 0 <= sonar.get("amplitude_smoothing", -1) < 1:
        return False, "sonar.amplitude_smoothing must be in [0, 1)"
    if sonar.get("capture_interval_sec", 0) < 0:
        return False, "sonar.capture_interval_sec must be non-negative"
    if sonar.get("queue_size", 0) < 1:
        return False, "sonar.queue_size must be at least 1"

    cond = config.get("conditioning", {})
    for name in ("alpha_magnetic", "alpha_motion", "alpha_rf", "alpha_light", "alpha_echo"):
        if not 0 < cond.get(name, 0) <= 1:
            return False, f"conditioning.{name} must be in (0, 1]"
    for name in ("history_size", "hum_window", "calibration_samples"):
        if not isinstance(cond.get(name), int) or cond.get(name) < 1:
            return False, f"conditioning.{name} must be a positive integer"

    classification = config.get("classification", {})
    if classification.get("profile") not in PROFILES:
        return False, f"classification.profile must be one of {', '.join(PROFILES)}"

    session = config.get("session", {})
    for name in ("rf_poll_interval_sec", "aggregation_window_sec"):
        if session.get(name, 0) <= 0:
            return False, f"session.{name} must be positive"

    return True, None


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from JSON file, merging with defaults.

    Args:
        config_path: Path to config file. If None, looks for config.json in current directory.

    Returns:
        Merged configuration dictionary.

    Raises:
        ValueError: If config is invalid.
    """
    defaults = get_default_config()

    if config_path is None:
        config_path = Path("config.json")

    if not config_path.exists():
        log.info("Config file %s not found, using defaults", config_path)
        return defaults

    try:
        with config_path.open() as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {config_path}: {e}")

    merged = _deep_merge(defaults, config)

    is_valid, error_msg = validate_config(merged)
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_msg}")

    log.info("Loaded configuration from %s", config_path)
    return merged


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get nested config value using dot notation.

    Example: get_config_value(config, "sonar.center_freq_hz")
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
