"""
Tests for configuration loading and validation.
"""
import json

import pytest

import config_loader


class TestDefaults:
    """Test default configuration."""

    def test_defaults_are_valid(self):
        ok, msg = config_loader.validate_config(config_loader.get_default_config())

        assert ok, msg

    def test_defaults_are_fresh_copies(self):
        first = config_loader.get_default_config()
        first["sonar"]["center_freq_hz"] = 1.0

        assert config_loader.get_default_config()["sonar"]["center_freq_hz"] == 19000.0


class TestLoadConfig:
    """Test loading from disk."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = config_loader.load_config(tmp_path / "config.json")

        assert config == config_loader.get_default_config()

    def test_partial_override_merges(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"classification": {"profile": "probe"}}))

        config = config_loader.load_config(path)

        assert config["classification"]["profile"] == "probe"
        assert config["classification"]["stationary_threshold"] == 0.05
        assert config["sonar"]["center_freq_hz"] == 19000.0

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="Invalid JSON"):
            config_loader.load_config(path)

    @pytest.mark.parametrize("override", [
        {"classification": {"profile": "radar"}},
        {"audio": {"sample_rate": 0}},
        {"sonar": {"center_freq_hz": 30000.0}},
        {"sonar": {"amplitude_smoothing": 1.0}},
        {"conditioning": {"alpha_magnetic": 0.0}},
        {"conditioning": {"calibration_samples": 0}},
        {"session": {"aggregation_window_sec": 0}},
    ])
    def test_invalid_values(self, tmp_path, override):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(override))

        with pytest.raises(ValueError, match="Invalid configuration"):
            config_loader.load_config(path)


class TestGetConfigValue:
    """Test dotted lookups."""

    def test_nested(self, config):
        assert config_loader.get_config_value(config, "sonar.doppler_offset_hz") == 150.0

    def test_missing_returns_default(self, config):
        assert config_loader.get_config_value(config, "sonar.nope", 7) == 7
