"""
Audio device wrappers.

Single Responsibility: Move PCM blocks between the sonar and ALSA
(arecord for the microphone, aplay for the speaker).
"""
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, List

import numpy as np

from logger import get_logger

log = get_logger(__name__)

BYTES_PER_SAMPLE = 2

ERROR_HINTS = {
    "Device or resource busy": "Audio device is in use by another process",
    "No such file or directory": "Audio device not found. Check with 'arecord -l' / 'aplay -l'",
    "Permission denied": "No permission to access audio device. Add user to audio group: 'sudo usermod -a -G audio $USER'",
    "Invalid argument": "Device does not support the requested rate/format",
}


class AudioDeviceError(RuntimeError):
    """Raised when an audio device cannot be opened."""


@dataclass
class AudioChunk:
    """Represents a block of captured audio."""
    samples: np.ndarray  # int16 samples, unnormalized
    sample_rate: int
    timestamp: float  # Unix timestamp


def _hint_for(stderr_msg: str) -> str:
    for key, msg in ERROR_HINTS.items():
        if key in stderr_msg:
            return f" Hint: {msg}"
    return ""


def _spawn(cmd: List[str], **popen_kwargs) -> subprocess.Popen:
    """Start an ALSA tool and fail fast if it exits immediately."""
    try:
        process = subprocess.Popen(cmd, stderr=subprocess.PIPE, **popen_kwargs)
    except FileNotFoundError:
        raise AudioDeviceError(
            f"{cmd[0]} command not found. Install alsa-utils: "
            "sudo apt-get install alsa-utils"
        )
    except OSError as e:
        raise AudioDeviceError(f"Failed to start {cmd[0]}. Command: {' '.join(cmd)}. Error: {e}")

    # Give process a moment to open the device
    time.sleep(0.1)

    if process.poll() is not None:
        stderr_msg = ""
        if process.stderr:
            stderr_msg = process.stderr.read().decode(errors="ignore").strip()
        raise AudioDeviceError(
            f"{cmd[0]} failed to start. Error: {stderr_msg}.{_hint_for(stderr_msg)}"
        )
    return process


def _terminate(process: subprocess.Popen) -> None:
    if process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()


class AudioCapture:
    """
    Reads fixed-size microphone blocks from ALSA arecord.

    Single Responsibility: Audio input operations.
    """

    def __init__(self, config: dict):
        """
        Initialize audio capture.

        Args:
            config: Configuration dictionary with audio settings
        """
        self.audio_config = config["audio"]
        self.device = self.audio_config["capture_device"]
        self.sample_rate = self.audio_config["sample_rate"]
        self.channels = self.audio_config["channels"]
        self.block_samples = self.audio_config["block_samples"]
        self.block_bytes = self.block_samples * BYTES_PER_SAMPLE * self.channels

        self._process: Optional[subprocess.Popen] = None

    def start(self) -> None:
        """Start the arecord process."""
        if self._process is not None:
            return

        if not self.device or not isinstance(self.device, str):
            raise AudioDeviceError(f"Invalid capture device configuration: {self.device!r}")

        cmd = [
            "arecord",
            "-D", self.device,
            "-f", self.audio_config["sample_format"],
            "-r", str(self.sample_rate),
            "-c", str(self.channels),
            "-q",
            "-t", "raw"
        ]
        self._process = _spawn(cmd, stdout=subprocess.PIPE)
        log.info("Audio capture started on %s at %d Hz", self.device, self.sample_rate)

    def read_chunk(self) -> Optional[AudioChunk]:
        """
        Read next audio block.

        Returns:
            AudioChunk or None if the stream ended or capture is stopped
        """
        process = self._process
        if process is None or process.stdout is None:
            return None

        data = process.stdout.read(self.block_bytes)
        if not data or len(data) < self.block_bytes:
            return None

        samples = np.frombuffer(data, dtype="<i2")
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels).mean(axis=1).astype(np.int16)

        return AudioChunk(
            samples=samples,
            sample_rate=self.sample_rate,
            timestamp=time.time()
        )

    def stop(self) -> None:
        """Stop the capture process. Safe to call repeatedly."""
        process, self._process = self._process, None
        if process is None:
            return
        _terminate(process)
        log.info("Audio capture stopped")


class AudioPlayback:
    """
    Streams int16 PCM to ALSA aplay.

    Single Responsibility: Audio output operations.
    """

    def __init__(self, config: dict):
        self.audio_config = config["audio"]
        self.device = self.audio_config["playback_device"]
        self.sample_rate = self.audio_config["sample_rate"]
        self._process: Optional[subprocess.Popen] = None

    def start(self) -> None:
        """Start the aplay process (mono)."""
        if self._process is not None:
            return

        if not self.device or not isinstance(self.device, str):
            raise AudioDeviceError(f"Invalid playback device configuration: {self.device!r}")

        cmd = [
            "aplay",
            "-D", self.device,
            "-f", self.audio_config["sample_format"],
            "-r", str(self.sample_rate),
            "-c", "1",
            "-q",
            "-t", "raw"
        ]
        self._process = _spawn(cmd, stdin=subprocess.PIPE)
        log.info("Audio playback started on %s", self.device)

    def write(self, samples: np.ndarray) -> bool:
        """
        Write one buffer of int16 samples.

        Returns:
            False once the device is gone (stopped or pipe closed)
        """
        process = self._process
        if process is None or process.stdin is None:
            return False
        try:
            process.stdin.write(samples.astype("<i2").tobytes())
            process.stdin.flush()
        except (BrokenPipeError, ValueError, OSError):
            return False
        return True

    def stop(self) -> None:
        """Stop playback. Safe to call repeatedly."""
        process, self._process = self._process, None
        if process is None:
            return
        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                pass
        _terminate(process)
        log.info("Audio playback stopped")
