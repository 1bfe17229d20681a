"""
Continuous sonar tone emission.

Single Responsibility: Generate the fixed-frequency waveform and keep it
playing until stopped.
"""
import threading
from typing import Optional

import numpy as np

from fusion.audio import AudioPlayback
from logger import get_logger

log = get_logger(__name__)

INT16_MAX = 32767


def build_tone(freq: float, sample_rate: int, duration_sec: float = 1.0) -> np.ndarray:
    """
    One buffer of a full-scale sine at ``freq``.

    A one-second buffer holds a whole number of cycles for any integer
    frequency, so looping it is seamless.
    """
    n = int(sample_rate * duration_sec)
    t = np.arange(n, dtype=np.float64)
    wave = np.sin(2.0 * np.pi * freq * t / sample_rate) * INT16_MAX
    return wave.astype(np.int16)


class ToneGenerator:
    """Loops a precomputed tone buffer into an output device on its own thread."""

    def __init__(self, config: dict, playback: Optional[AudioPlayback] = None):
        self.sample_rate = config["audio"]["sample_rate"]
        self.freq = float(config["sonar"]["center_freq_hz"])
        self.playback = playback if playback is not None else AudioPlayback(config)
        self.buffer = build_tone(self.freq, self.sample_rate)

        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        """
        Open the output device and begin looping.

        Raises:
            AudioDeviceError: If the output device cannot be opened
        """
        if self._running.is_set():
            return
        self.playback.start()
        self._running.set()
        self._thread = threading.Thread(target=self._loop, name="sonar-tone", daemon=True)
        self._thread.start()
        log.info("Tone generator started at %.0f Hz", self.freq)

    def _loop(self) -> None:
        while self._running.is_set():
            if not self.playback.write(self.buffer):
                if self._running.is_set():
                    log.warning("Tone output closed unexpectedly")
                break

    def stop(self) -> None:
        """Stop looping and release the output device."""
        self._running.clear()
        self.playback.stop()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
