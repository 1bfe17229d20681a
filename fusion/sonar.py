"""
Active sonar: tone emission plus echo capture.

Single Responsibility: Own the tone and capture threads and publish one
SonarResult per capture cycle.
"""
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from fusion.audio import AudioCapture, AudioDeviceError
from fusion.echo import EchoAnalyzer, SonarResult
from fusion.tone import ToneGenerator
from logger import get_logger

log = get_logger(__name__)


class SonarChannel:
    """
    Bounded hand-off from the capture thread to the session coordinator.

    When full, the oldest reading is discarded; readings are periodic and
    only the latest values matter.
    """

    def __init__(self, maxsize: int = 8):
        self._items: Deque[SonarResult] = deque(maxlen=maxsize)
        self._lock = threading.Lock()
        self.dropped = 0

    def put(self, result: SonarResult) -> None:
        with self._lock:
            if len(self._items) == self._items.maxlen:
                self.dropped += 1
            self._items.append(result)

    def drain(self) -> List[SonarResult]:
        """Remove and return all pending readings, oldest first."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self.dropped = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ActiveSonar:
    """
    Runs tone emission and echo capture concurrently.

    Device failures are not fatal: the sonar logs a warning and publishes
    nothing until restarted.
    """

    def __init__(
        self,
        config: dict,
        callback: Optional[Callable[[SonarResult], None]] = None,
        capture: Optional[AudioCapture] = None,
        tone: Optional[ToneGenerator] = None,
        analyzer: Optional[EchoAnalyzer] = None
    ):
        self.callback = callback
        self.capture = capture if capture is not None else AudioCapture(config)
        self.tone = tone if tone is not None else ToneGenerator(config)
        self.analyzer = analyzer if analyzer is not None else EchoAnalyzer(config)
        self.interval = float(config["sonar"]["capture_interval_sec"])

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._running = False
        self._available = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_available(self) -> bool:
        """True while both audio devices are open and results are flowing."""
        return self._available

    def start(self) -> None:
        """Start emitting and listening. No-op while already running."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop_event = threading.Event()
            stop_event = self._stop_event

        self.analyzer.reset()
        try:
            self.tone.start()
            self.capture.start()
        except AudioDeviceError as e:
            log.warning("Sonar disabled, audio device unavailable: %s", e)
            self._release_devices()
            with self._lock:
                self._running = False
            return

        with self._lock:
            # stop() may have run while the devices were opening
            if stop_event.is_set() or not self._running:
                self._release_devices()
                return
            self._available = True
            self._thread = threading.Thread(
                target=self._listen, args=(stop_event,), name="sonar-capture", daemon=True
            )
            self._thread.start()
        log.info("Active sonar started")

    def _listen(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            cycle_start = time.monotonic()
            chunk = self.capture.read_chunk()
            if chunk is None:
                if not stop_event.is_set():
                    log.warning("Echo capture stream ended")
                    self._available = False
                break

            result = self.analyzer.analyze(chunk.samples)
            self._publish(result, stop_event)

            # The blocking read already paces the loop; only top up to the interval
            remaining = self.interval - (time.monotonic() - cycle_start)
            if remaining > 0:
                stop_event.wait(remaining)

    def _publish(self, result: SonarResult, stop_event: threading.Event) -> None:
        with self._lock:
            if stop_event.is_set() or self.callback is None:
                return
            try:
                self.callback(result)
            except Exception:
                log.exception("Sonar result callback failed")

    def _release_devices(self) -> None:
        self.capture.stop()
        self.tone.stop()

    def stop(self) -> None:
        """
        Stop both threads and release both devices.

        Safe before start() and when called repeatedly. No callback runs
        after this returns.
        """
        with self._lock:
            self._stop_event.set()
            was_running = self._running
            self._running = False
            self._available = False

        self._release_devices()

        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        if was_running:
            log.info("Active sonar stopped")
