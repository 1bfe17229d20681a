"""
Tests for session coordination.

Tests fusion.session including:
- Calibration results and the transition to classification
- Session reset on stop/restart
- Periodic RF poll and scan requests
- Window summaries and actuation callbacks
- Concurrent producers
"""
import threading

import pytest

from fusion.baseline import Baseline
from fusion.echo import DopplerState, SonarResult
from fusion.models import CALIBRATING, ENVIRONMENT_LEARNED, IDLE, Color, Severity
from fusion.session import PeriodicWorker, SessionCoordinator
from fusion.sonar import ActiveSonar
from logger import ResultLog

from tests.conftest import FakeCapture, FakeTone, wait_for


@pytest.fixture
def session_config(fast_config):
    """Raw magnetic values pass through unsmoothed."""
    fast_config["conditioning"]["alpha_magnetic"] = 1.0
    return fast_config


def calibrate(session, value=50.0, frames=5):
    return [session.on_magnetic(value) for _ in range(frames)]


class TestCalibration:
    """Test the calibrating phase."""

    def test_calibration_sequence(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)

        results = calibrate(session)

        assert results[:4] == [CALIBRATING] * 4
        assert results[4] == ENVIRONMENT_LEARNED
        assert results[4].sub_status == "Environment Learned"
        assert session.snapshot().baseline.magnetic == 50.0

    def test_classifies_after_calibration(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session)

        result = session.on_magnetic(50.0)

        assert result.main_status == "SECURE"
        assert result.sub_status == "Env: Low Density"

    def test_calibration_frames_not_aggregated(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session)

        assert len(session.aggregator) == 0
        session.on_magnetic(50.0)
        assert len(session.aggregator) == 1

    def test_inactive_session_ignores_frames(self, session_config):
        session = SessionCoordinator(session_config)

        assert session.on_magnetic(50.0) is None
        assert session.last_result == IDLE


class TestLifecycle:
    """Test start/stop semantics."""

    def test_stop_reports_idle(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session)

        session.stop()

        assert not session.is_active
        assert session.last_result == IDLE
        assert session.last_result.main_status == "SYSTEM IDLE"

    def test_restart_resets_state(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session, value=80.0)
        session.on_rf_level(-40.0)
        session.on_rf_level(-45.0)
        session.stop()

        session.start(background=False)
        frame = session.snapshot()

        assert frame.baseline == Baseline()
        assert frame.noise_floor == 1.0
        assert frame.rf_stddev == 0.0
        assert frame.magnetic == 0.0
        assert not frame.calibrated
        assert session.last_result == CALIBRATING
        assert session.on_magnetic(80.0) == CALIBRATING

    def test_stop_is_safe_from_any_state(self, session_config):
        session = SessionCoordinator(session_config)

        session.stop()
        session.start(background=False)
        session.stop()
        session.stop()

        assert not session.is_active

    def test_background_start_with_sonar(self, session_config):
        sonar = ActiveSonar(session_config, capture=FakeCapture(), tone=FakeTone())
        session = SessionCoordinator(session_config, sonar=sonar)

        session.start()
        try:
            assert wait_for(lambda: session.snapshot().echo > 0)
        finally:
            session.stop()

        assert not sonar.is_running

    def test_missing_audio_does_not_stop_session(self, session_config):
        sonar = ActiveSonar(session_config, capture=FakeCapture(), tone=FakeTone(fail=True))
        session = SessionCoordinator(session_config, sonar=sonar)

        session.start()
        try:
            results = calibrate(session)
        finally:
            session.stop()

        assert results[-1] == ENVIRONMENT_LEARNED


class TestChannels:
    """Test channel routing."""

    def test_sonar_applied_at_next_frame(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)

        session.on_sonar(SonarResult(120.0, DopplerState.APPROACHING))

        frame = session.snapshot()
        assert frame.echo == 120.0
        assert frame.doppler == DopplerState.APPROACHING

    def test_doppler_counts_for_one_frame(self, session_config):
        session_config["classification"]["profile"] = "probe"
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session)

        session.on_sonar(SonarResult(100.0, DopplerState.APPROACHING))
        results = [session.on_magnetic(50.0) for _ in range(20)]

        assert results[0].sub_status == "Approaching"
        assert all(r.main_status != "PERSON DETECTED" for r in results[1:])
        assert session.snapshot().doppler == DopplerState.NONE
        assert session.snapshot().echo == 100.0

    def test_fresh_doppler_reading_applies_again(self, session_config):
        session_config["classification"]["profile"] = "probe"
        session = SessionCoordinator(session_config)
        session.start(background=False)
        calibrate(session)

        session.on_sonar(SonarResult(100.0, DopplerState.APPROACHING))
        session.on_magnetic(50.0)
        session.on_sonar(SonarResult(100.0, DopplerState.RECEDING))

        assert session.on_magnetic(50.0).sub_status == "Moving Away"

    def test_result_log_records_alerts_and_summaries(self, session_config):
        result_log = ResultLog()
        session = SessionCoordinator(session_config, result_log=result_log)
        session.start(background=False)
        calibrate(session)

        session.on_magnetic(50.0)
        session.on_magnetic(60.0)
        session.flush_aggregate()

        assert len(result_log.realtime) == 1
        assert result_log.realtime[0].color == Color.THREAT
        assert result_log.active_alert_count() == 1
        assert len(result_log.summaries) == 1
        assert result_log.summaries[0].message == result_log.realtime[0].message

    def test_mode_flags(self, session_config):
        session = SessionCoordinator(session_config)

        session.set_sentry_mode(True)
        session.set_person_mode(False)
        session.set_object_mode(False)

        assert session.modes.sentry_mode
        assert not session.modes.person_mode
        assert not session.modes.object_mode

    def test_actuation_callback(self, session_config):
        intensities = []
        session = SessionCoordinator(session_config, on_actuation=intensities.append)
        session.start(background=False)
        calibrate(session)

        session.on_magnetic(60.0)
        session.on_magnetic(50.0)

        assert intensities == [50]

    def test_result_callback(self, session_config):
        results = []
        session = SessionCoordinator(session_config, on_result=results.append)
        session.start(background=False)

        calibrate(session)

        assert len(results) == 5
        assert results[-1] == ENVIRONMENT_LEARNED

    def test_concurrent_producers(self, session_config):
        session = SessionCoordinator(session_config)
        session.start(background=False)
        results = []
        errors = []

        def run(fn, *args):
            try:
                for _ in range(200):
                    fn(*args)
            except Exception as e:  # pragma: no cover - surfaced by assertion
                errors.append(e)

        def magnetic():
            results.append(session.on_magnetic(50.0))

        threads = [
            threading.Thread(target=run, args=(magnetic,)),
            threading.Thread(target=run, args=(session.on_rf_level, -50.0)),
            threading.Thread(target=run, args=(session.on_light, 100.0)),
            threading.Thread(target=run, args=(session.on_sonar, SonarResult(10.0, DopplerState.NONE))),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 200
        assert results.count(ENVIRONMENT_LEARNED) == 1


class TestPeriodicTasks:
    """Test the RF poll and aggregation timer."""

    def test_poll_reads_rf(self, session_config):
        session = SessionCoordinator(session_config, read_rf_level=lambda: -40.0)
        session.start(background=False)

        session.poll_rf()

        assert session.snapshot().rf == pytest.approx(-8.0)

    def test_poll_skips_unavailable_rf(self, session_config):
        session = SessionCoordinator(session_config, read_rf_level=lambda: None)
        session.start(background=False)

        session.poll_rf()

        assert session.snapshot().rf == 0.0

    def test_scan_requested_on_interval(self, session_config):
        session_config["session"]["scan_interval_sec"] = 1.0
        scans = []
        session = SessionCoordinator(session_config, read_rf_level=lambda: -40.0,
                                     request_scan=lambda: scans.append(1))
        session.start(background=False)

        for _ in range(4):
            session.poll_rf()

        assert len(scans) == 2

    def test_background_rf_poll(self, session_config):
        session_config["session"]["rf_poll_interval_sec"] = 0.01
        reads = []

        def read():
            reads.append(1)
            return -40.0

        session = SessionCoordinator(session_config, read_rf_level=read)
        session.start()
        try:
            assert wait_for(lambda: len(reads) >= 3)
        finally:
            session.stop()

    def test_flush_empty_window(self, session_config):
        summaries = []
        session = SessionCoordinator(session_config, on_summary=summaries.append)
        session.start(background=False)

        assert session.flush_aggregate() is None
        assert summaries == []

    def test_flush_reports_dominant(self, session_config):
        summaries = []
        session = SessionCoordinator(session_config, on_summary=summaries.append)
        session.start(background=False)
        calibrate(session)
        session.on_magnetic(60.0)
        session.on_magnetic(50.0)

        summary = session.flush_aggregate()

        assert summary.severity == Severity.THREAT
        assert summaries == [summary]
        assert len(session.aggregator) == 0
        assert session.flush_aggregate() is summary
        assert len(summaries) == 1


class TestPeriodicWorker:
    """Test the worker thread helper."""

    def test_survives_exceptions(self):
        calls = []

        def flaky():
            calls.append(1)
            raise RuntimeError("boom")

        worker = PeriodicWorker("flaky", 0.005, flaky)
        worker.start()
        try:
            assert wait_for(lambda: len(calls) >= 3)
        finally:
            worker.stop()
