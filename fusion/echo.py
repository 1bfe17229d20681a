"""
Narrowband echo analysis.

Single Responsibility: Measure the sonar tone and its two Doppler sidebands
in a block of audio, and turn those magnitudes into a movement direction.
"""
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Union

import numpy as np


class DopplerState(IntEnum):
    """Movement direction derived from one analysis cycle."""
    NONE = 0
    APPROACHING = 1
    RECEDING = -1


@dataclass(frozen=True)
class SonarResult:
    """One published sonar reading."""
    amplitude: float  # Smoothed center-band magnitude
    doppler: DopplerState


@dataclass(frozen=True)
class BandMagnitudes:
    """Goertzel magnitudes for the tone and both sidebands of one block."""
    center: float
    high: float
    low: float


def goertzel_magnitude(
    samples: Union[np.ndarray, Sequence[float]],
    freq: float,
    sample_rate: int
) -> float:
    """
    Magnitude of a single frequency bin via the Goertzel recurrence.

    The bin index is rounded half-up from ``N * freq / sample_rate``, so the
    result equals the DFT magnitude of that bin.

    Args:
        samples: Block of samples (int16 scale or normalized, any real values)
        freq: Target frequency in Hz
        sample_rate: Sample rate in Hz

    Returns:
        Non-negative magnitude; 0.0 for an empty block
    """
    n = len(samples)
    if n == 0:
        return 0.0

    k = int(0.5 + (n * freq) / sample_rate)
    omega = (2.0 * math.pi * k) / n
    coeff = 2.0 * math.cos(omega)

    if isinstance(samples, np.ndarray):
        values = samples.astype(np.float64).tolist()
    else:
        values = [float(x) for x in samples]

    q1 = 0.0
    q2 = 0.0
    for x in values:
        q0 = coeff * q1 - q2 + x
        q2 = q1
        q1 = q0

    power = q1 * q1 + q2 * q2 - q1 * q2 * coeff
    # Rounding can leave a tiny negative residue for silent blocks
    return math.sqrt(max(power, 0.0))


def decide_doppler(
    smooth_amplitude: float,
    high: float,
    low: float,
    threshold_ratio: float = 0.2,
    dominance_ratio: float = 1.1
) -> DopplerState:
    """
    Decide movement direction from sideband magnitudes.

    A sideband counts only if it exceeds ``threshold_ratio`` of the smoothed
    center amplitude and beats the opposite sideband by ``dominance_ratio``.
    """
    threshold = smooth_amplitude * threshold_ratio

    if high > threshold and high > low * dominance_ratio:
        return DopplerState.APPROACHING
    if low > threshold and low > high * dominance_ratio:
        return DopplerState.RECEDING
    return DopplerState.NONE


class EchoAnalyzer:
    """
    Runs the three-band Goertzel analysis and tracks the smoothed echo level.

    Single Responsibility: Per-block echo amplitude and Doppler extraction.
    """

    def __init__(self, config: dict):
        """
        Initialize echo analyzer.

        Args:
            config: Configuration dictionary with audio and sonar settings
        """
        sonar_config = config["sonar"]
        self.sample_rate = config["audio"]["sample_rate"]
        self.center_freq = float(sonar_config["center_freq_hz"])
        self.offset = float(sonar_config["doppler_offset_hz"])
        self.smoothing = float(sonar_config["amplitude_smoothing"])
        self.threshold_ratio = float(sonar_config["sideband_threshold_ratio"])
        self.dominance_ratio = float(sonar_config["sideband_dominance_ratio"])

        self._smooth_amplitude = 0.0

    @property
    def high_freq(self) -> float:
        return self.center_freq + self.offset

    @property
    def low_freq(self) -> float:
        return self.center_freq - self.offset

    @property
    def smooth_amplitude(self) -> float:
        return self._smooth_amplitude

    def measure(self, samples: np.ndarray) -> BandMagnitudes:
        """Goertzel magnitudes at the center frequency and both sidebands."""
        return BandMagnitudes(
            center=goertzel_magnitude(samples, self.center_freq, self.sample_rate),
            high=goertzel_magnitude(samples, self.high_freq, self.sample_rate),
            low=goertzel_magnitude(samples, self.low_freq, self.sample_rate),
        )

    def analyze(self, samples: np.ndarray) -> SonarResult:
        """
        Analyze one captured block.

        Updates the smoothed center amplitude, then decides the Doppler
        direction against it.
        """
        bands = self.measure(samples)

        self._smooth_amplitude = (
            self._smooth_amplitude * self.smoothing
            + bands.center * (1.0 - self.smoothing)
        )

        direction = decide_doppler(
            self._smooth_amplitude,
            bands.high,
            bands.low,
            self.threshold_ratio,
            self.dominance_ratio
        )
        return SonarResult(amplitude=self._smooth_amplitude, doppler=direction)

    def reset(self) -> None:
        """Forget the smoothed amplitude (new session)."""
        self._smooth_amplitude = 0.0
