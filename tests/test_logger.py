"""
Tests for logging setup and the result log.
"""
import logging
from datetime import datetime

from logger import (
    ColoredFormatter,
    LOG_FORMAT,
    ResultLog,
    get_logger,
    setup_logging_from_config,
)


class TestLogging:
    """Test logger configuration."""

    def test_file_handler_from_config(self, config, tmp_path):
        log_file = tmp_path / "logs" / "fusion.log"
        config["logging"]["log_file"] = str(log_file)

        root = setup_logging_from_config(config)
        try:
            get_logger("fusion.test").info("Session started")
            for handler in root.handlers:
                handler.flush()

            assert "Session started" in log_file.read_text()
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)

    def test_debug_overrides_level(self, config):
        root = setup_logging_from_config(config, debug=True)
        try:
            assert root.level == logging.DEBUG
        finally:
            root.handlers.clear()

    def test_formatter_keeps_record(self):
        record = logging.makeLogRecord({"levelname": "INFO", "msg": "hello", "name": "x"})

        ColoredFormatter(LOG_FORMAT).format(record)

        assert record.levelname == "INFO"


class TestResultLog:
    """Test the operator-facing alert and summary log."""

    def test_newest_first(self):
        result_log = ResultLog()

        result_log.add_realtime("THREAT DETECTED - Ferrous", "#D32F2F", timestamp=1.0)
        result_log.add_realtime("PERSON DETECTED - Approaching", "#9C27B0", timestamp=2.0)

        assert [e.message for e in result_log.realtime] == [
            "PERSON DETECTED - Approaching",
            "THREAT DETECTED - Ferrous",
        ]
        assert result_log.threat_count == 2

    def test_bounded(self):
        result_log = ResultLog(realtime_size=3, summary_size=2)

        for i in range(5):
            result_log.add_realtime(f"alert {i}", "#D32F2F")
            result_log.add_summary(f"window {i}", "#4CAF50")

        assert [e.message for e in result_log.realtime] == ["alert 4", "alert 3", "alert 2"]
        assert [e.message for e in result_log.summaries] == ["window 4", "window 3"]

    def test_active_alerts_in_last_minute(self):
        result_log = ResultLog()
        result_log.add_realtime("old threat", "#D32F2F", timestamp=900.0)
        result_log.add_realtime("recent threat", "#D32F2F", timestamp=990.0)
        result_log.add_realtime("recent person", "#9C27B0", timestamp=995.0)
        result_log.add_realtime("recent anomaly", "#FFC107", timestamp=996.0)

        assert result_log.active_alert_count(now=1000.0) == 2
        assert result_log.active_alert_count(now=1000.0, window_sec=200.0) == 3

    def test_format_summary_log(self):
        result_log = ResultLog()
        first = datetime(2024, 5, 1, 9, 15, 0).timestamp()
        second = datetime(2024, 5, 1, 9, 15, 30).timestamp()
        result_log.add_summary("SECURE - Env: Low Density", "#4CAF50", timestamp=first)
        result_log.add_summary("THREAT DETECTED - Ferrous", "#D32F2F", timestamp=second)

        assert result_log.format_summary_log() == (
            "09:15:30: THREAT DETECTED - Ferrous\n\n09:15:00: SECURE - Env: Low Density"
        )

    def test_clear(self):
        result_log = ResultLog()
        result_log.add_realtime("alert", "#D32F2F")
        result_log.add_summary("window", "#D32F2F")

        result_log.clear()

        assert result_log.realtime == []
        assert result_log.summaries == []
        assert result_log.format_summary_log() == ""
