"""
Session coordination.

Single Responsibility: Own the conditioning state and serialize every
mutation and evaluation of it.

All producers (sensor callbacks, the RF poll loop, the sonar channel, the
aggregation timer) go through one re-entrant lock, so an evaluation always
sees a self-consistent snapshot. Callbacks to consumers run outside the lock.
"""
import threading
from typing import Callable, List, Optional

from fusion.aggregator import TemporalAggregator
from fusion.classifier import ClassificationEngine
from fusion.conditioning import FrameSnapshot, SignalConditioner
from fusion.echo import SonarResult
from fusion.models import (
    CALIBRATING,
    ENVIRONMENT_LEARNED,
    IDLE,
    ClassificationResult,
    OperatingModes,
    Severity,
)
from fusion.sonar import ActiveSonar, SonarChannel
from logger import ResultLog, get_logger

log = get_logger(__name__)

ResultCallback = Callable[[ClassificationResult], None]


class PeriodicWorker:
    """Calls ``fn`` every ``interval`` seconds on a daemon thread until stopped."""

    def __init__(self, name: str, interval: float, fn: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.fn = fn
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.fn()
            except Exception:
                log.exception("%s iteration failed", self.name)

    def stop(self) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)


class SessionCoordinator:
    """
    Single owner of the conditioning state for one sensing session.

    Raw channel events enter through the on_* methods. Each magnetic-field
    event is one frame: calibration for the first frames, classification
    afterwards.
    """

    def __init__(
        self,
        config: dict,
        sonar: Optional[ActiveSonar] = None,
        read_rf_level: Optional[Callable[[], Optional[float]]] = None,
        request_scan: Optional[Callable[[], None]] = None,
        on_result: Optional[ResultCallback] = None,
        on_summary: Optional[ResultCallback] = None,
        on_actuation: Optional[Callable[[int], None]] = None,
        result_log: Optional[ResultLog] = None
    ):
        """
        Initialize session coordinator.

        Args:
            config: Configuration dictionary
            sonar: Optional ActiveSonar; its results are routed through a
                bounded channel into this session
            read_rf_level: Polled for the RF level; returns None when unavailable
            request_scan: Asks the platform for a fresh network scan
            on_result: Receives every frame's result
            on_summary: Receives the dominant result of each aggregation window
            on_actuation: Receives non-zero actuation intensities
            result_log: Records alerts and window summaries for display
        """
        session_config = config["session"]
        self.rf_poll_interval = float(session_config["rf_poll_interval_sec"])
        self.scan_interval = float(session_config["scan_interval_sec"])
        self.window_sec = float(session_config["aggregation_window_sec"])

        self.conditioner = SignalConditioner(config)
        self.engine = ClassificationEngine(config)
        self.aggregator = TemporalAggregator(self.window_sec)
        self.modes = OperatingModes.from_config(config)
        self.sonar_channel = SonarChannel(config["sonar"]["queue_size"])

        self.sonar = sonar
        if self.sonar is not None:
            self.sonar.callback = self.sonar_channel.put

        self.read_rf_level = read_rf_level
        self.request_scan = request_scan
        self.on_result = on_result
        self.on_summary = on_summary
        self.on_actuation = on_actuation
        self.result_log = result_log

        self._lock = threading.RLock()
        self._active = False
        self._workers: List[PeriodicWorker] = []
        self._since_scan = 0.0
        self._last_result: ClassificationResult = IDLE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def last_result(self) -> ClassificationResult:
        return self._last_result

    def start(self, background: bool = True) -> None:
        """
        Begin a new session with freshly zeroed state.

        Args:
            background: Start the sonar, RF poll loop and aggregation timer.
                Replays drive the session synchronously with this off.
        """
        with self._lock:
            if self._active:
                return
            self._reset_state()
            self._active = True
            self._last_result = CALIBRATING

        log.info("Session started (profile=%s)", self.engine.profile)
        if not background:
            return

        if self.sonar is not None:
            self.sonar.start()

        workers = [PeriodicWorker("aggregation-timer", self.window_sec, self.flush_aggregate)]
        if self.read_rf_level is not None:
            workers.append(PeriodicWorker("rf-poll", self.rf_poll_interval, self.poll_rf))
        for worker in workers:
            worker.start()
        with self._lock:
            self._workers = workers

    def stop(self) -> None:
        """End the session. Safe from any state and when called repeatedly."""
        with self._lock:
            was_active = self._active
            self._active = False
            workers, self._workers = self._workers, []

        if self.sonar is not None:
            self.sonar.stop()
        for worker in workers:
            worker.stop()

        with self._lock:
            self._reset_state()
            self._last_result = IDLE

        if was_active:
            log.info("Session stopped")

    def _reset_state(self) -> None:
        self.conditioner.reset()
        self.aggregator.reset()
        self.sonar_channel.clear()
        self._since_scan = 0.0

    # ------------------------------------------------------------------
    # Mode flags
    # ------------------------------------------------------------------

    def set_sentry_mode(self, enabled: bool) -> None:
        with self._lock:
            self.modes.sentry_mode = enabled
        log.info("Mode switched: %s", "SENTRY (Intrusion)" if enabled else "SWEEP (Counter-Surveillance)")

    def set_person_mode(self, enabled: bool) -> None:
        with self._lock:
            self.modes.person_mode = enabled

    def set_object_mode(self, enabled: bool) -> None:
        with self._lock:
            self.modes.object_mode = enabled

    # ------------------------------------------------------------------
    # Channel inputs
    # ------------------------------------------------------------------

    def on_linear_motion(self, value: float) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_linear_motion(value)

    def on_acceleration(self, x: float, y: float, z: float) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_acceleration(x, y, z)

    def on_angular_motion(self, value: float) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_angular_motion(value)

    def on_light(self, level: float) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_light(level)

    def on_rf_level(self, level: float) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_rf_level(level)

    def on_network_count(self, count: int) -> None:
        with self._lock:
            if self._active:
                self.conditioner.on_network_count(count)

    def on_sonar(self, result: SonarResult) -> None:
        """Queue a sonar reading; applied at the next frame."""
        if self._active:
            self.sonar_channel.put(result)

    def on_magnetic(self, magnitude: float) -> Optional[ClassificationResult]:
        """
        Process one magnetic-field event as a frame.

        Returns:
            The frame's result, or None if no session is active
        """
        with self._lock:
            if not self._active:
                return None
            self._apply_pending_sonar()
            self.conditioner.on_magnetic(magnitude)
            result = self._process_frame()
            self.conditioner.consume_doppler()
            self._last_result = result

        self._dispatch(result)
        return result

    def snapshot(self) -> FrameSnapshot:
        with self._lock:
            self._apply_pending_sonar()
            return self.conditioner.snapshot()

    def _apply_pending_sonar(self) -> None:
        for reading in self.sonar_channel.drain():
            self.conditioner.on_sonar(reading)

    def _process_frame(self) -> ClassificationResult:
        if not self.conditioner.is_calibrated:
            if self.conditioner.calibrate():
                return ENVIRONMENT_LEARNED
            return CALIBRATING

        result = self.engine.evaluate(self.conditioner.snapshot(), self.modes)
        self.aggregator.add(result)
        return result

    def _dispatch(self, result: ClassificationResult) -> None:
        if self.on_result is not None:
            self.on_result(result)
        if self.on_actuation is not None and result.actuation_intensity > 0:
            self.on_actuation(result.actuation_intensity)
        if self.result_log is not None and result.severity > Severity.INFO:
            self.result_log.add_realtime(
                f"{result.main_status} - {result.sub_status}", result.severity_color
            )

    # ------------------------------------------------------------------
    # Periodic tasks
    # ------------------------------------------------------------------

    def poll_rf(self) -> None:
        """One RF poll: read the level and occasionally request a scan."""
        if not self._active:
            return

        level = self.read_rf_level() if self.read_rf_level is not None else None
        if level is not None:
            self.on_rf_level(level)

        self._since_scan += self.rf_poll_interval
        if self.request_scan is not None and self._since_scan >= self.scan_interval:
            self._since_scan = 0.0
            self.request_scan()

    def flush_aggregate(self) -> Optional[ClassificationResult]:
        """
        Close the aggregation window and report its dominant result.

        An empty window reports nothing and keeps the previous dominant result.
        """
        with self._lock:
            if len(self.aggregator) == 0:
                return self.aggregator.dominant
            summary = self.aggregator.reduce()

        log.info("Window summary: %s - %s", summary.main_status, summary.sub_status)
        if self.result_log is not None:
            self.result_log.add_summary(
                f"{summary.main_status} - {summary.sub_status}", summary.severity_color
            )
        if self.on_summary is not None:
            self.on_summary(summary)
        return summary
