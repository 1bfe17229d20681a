"""
Signal conditioning for the fusion engine.

Single Responsibility: Turn raw per-event samples into smoothed,
baseline-relative, variance-aware features.

Channels and their smoothing coefficients (weight of the new sample):

    magnetic   0.1   heavy damping against magnetometer jitter
    motion     0.2   fast enough for the stationarity gate
    rf         0.2
    light      1.0   used as-is
    echo       1.0   already smoothed by the sonar

All state lives in one ConditioningState owned by the session coordinator.
"""
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, Optional

import numpy as np

from fusion.baseline import Baseline, BaselineTracker
from fusion.echo import DopplerState, SonarResult


def smooth(previous: float, sample: float, alpha: float) -> float:
    """Exponential moving average step: s' = s*(1-alpha) + x*alpha."""
    return previous * (1.0 - alpha) + sample * alpha


def vector_magnitude(x: float, y: float, z: float) -> float:
    """Magnitude of a 3-axis sensor reading."""
    return math.sqrt(x * x + y * y + z * z)


def linear_motion(x: float, y: float, z: float, gravity: float = 9.81) -> float:
    """Deviation of an accelerometer reading's magnitude from standard gravity."""
    return abs(vector_magnitude(x, y, z) - gravity)


def rolling_stddev(values: Iterable[float]) -> float:
    """
    Population standard deviation over non-zero entries.

    Exact zeros are treated as unfilled buffer slots, so a genuine 0.0
    reading is also ignored. Returns 0.0 when nothing is filled.
    """
    arr = np.asarray(list(values), dtype=np.float64)
    filled = arr[arr != 0.0]
    if filled.size == 0:
        return 0.0
    return float(np.std(filled))


class HistoryBuffer:
    """Fixed-capacity circular buffer of recent smoothed samples."""

    def __init__(self, capacity: int = 20):
        self.capacity = capacity
        self._values = np.zeros(capacity, dtype=np.float64)
        self._index = 0

    def push(self, value: float) -> None:
        self._index = (self._index + 1) % self.capacity
        self._values[self._index] = value

    def values(self) -> np.ndarray:
        return self._values.copy()

    def stddev(self) -> float:
        return rolling_stddev(self._values)

    def clear(self) -> None:
        self._values[:] = 0.0
        self._index = 0


@dataclass(frozen=True)
class FrameSnapshot:
    """Self-consistent view of every channel at one instant."""
    magnetic: float
    rf: float
    light: float
    linear_motion: float
    angular_motion: float
    echo: float
    hum: float
    doppler: DopplerState
    network_count: int
    rf_stddev: float
    light_stddev: float
    baseline: Baseline
    noise_floor: float
    calibrated: bool

    @property
    def magnetic_deviation(self) -> float:
        return abs(self.magnetic - self.baseline.magnetic)

    @property
    def rf_drop(self) -> float:
        return self.baseline.rf - self.rf

    @property
    def echo_ratio(self) -> float:
        """Smoothed echo over its baseline; 1.0 when no baseline was learned."""
        if self.baseline.echo == 0:
            return 1.0
        return self.echo / self.baseline.echo


@dataclass
class ConditioningState:
    """Mutable per-session conditioning state."""
    history_size: int = 20
    hum_window: int = 10
    magnetic: float = 0.0
    rf: float = 0.0
    light: float = 0.0
    linear_motion: float = 0.0
    angular_motion: float = 0.0
    echo: float = 0.0
    doppler: DopplerState = DopplerState.NONE
    network_count: int = 0
    rf_history: Optional[HistoryBuffer] = None
    light_history: Optional[HistoryBuffer] = None
    raw_magnetic: Deque[float] = field(default_factory=deque)

    def __post_init__(self):
        if self.rf_history is None:
            self.rf_history = HistoryBuffer(self.history_size)
        if self.light_history is None:
            self.light_history = HistoryBuffer(self.history_size)
        self.raw_magnetic = deque(self.raw_magnetic, maxlen=self.hum_window)

    @property
    def hum(self) -> float:
        """Max minus min over the recent raw magnetic samples."""
        if not self.raw_magnetic:
            return 0.0
        return max(self.raw_magnetic) - min(self.raw_magnetic)


class SignalConditioner:
    """
    Applies per-channel smoothing, history, hum tracking and calibration.

    Not thread-safe on its own; the session coordinator serializes access.
    """

    def __init__(self, config: dict):
        cond = config["conditioning"]
        self.alpha_magnetic = cond["alpha_magnetic"]
        self.alpha_motion = cond["alpha_motion"]
        self.alpha_rf = cond["alpha_rf"]
        self.alpha_light = cond["alpha_light"]
        self.alpha_echo = cond["alpha_echo"]
        self.history_size = cond["history_size"]
        self.hum_window = cond["hum_window"]
        self.gravity = cond["gravity"]

        self.baselines = BaselineTracker(config)
        self.state = ConditioningState(self.history_size, self.hum_window)

    def on_magnetic(self, magnitude: float) -> None:
        """Raw magnetic-field magnitude (one sensor event)."""
        self.state.raw_magnetic.append(magnitude)
        self.state.magnetic = smooth(self.state.magnetic, magnitude, self.alpha_magnetic)

    def on_linear_motion(self, value: float) -> None:
        self.state.linear_motion = smooth(self.state.linear_motion, value, self.alpha_motion)

    def on_acceleration(self, x: float, y: float, z: float) -> None:
        """Raw 3-axis accelerometer reading; gravity is removed before smoothing."""
        self.on_linear_motion(linear_motion(x, y, z, self.gravity))

    def on_angular_motion(self, value: float) -> None:
        self.state.angular_motion = smooth(self.state.angular_motion, value, self.alpha_motion)

    def on_light(self, level: float) -> None:
        self.state.light = smooth(self.state.light, level, self.alpha_light)

    def on_rf_level(self, level: float) -> None:
        """
        Periodic RF poll. Also advances both history buffers, so RF and
        light variance are sampled at the poll rate.
        """
        self.state.rf = smooth(self.state.rf, level, self.alpha_rf)
        self.state.rf_history.push(self.state.rf)
        self.state.light_history.push(self.state.light)

    def on_network_count(self, count: int) -> None:
        self.state.network_count = max(0, int(count))

    def on_sonar(self, result: SonarResult) -> None:
        self.state.echo = smooth(self.state.echo, result.amplitude, self.alpha_echo)
        self.state.doppler = result.doppler

    def consume_doppler(self) -> None:
        """A direction counts for one frame; it is not carried to the next."""
        self.state.doppler = DopplerState.NONE

    def calibrate(self) -> bool:
        """Fold the current frame into the baselines. True when calibration completes."""
        return self.baselines.update(
            self.state.magnetic,
            self.state.rf,
            self.state.echo,
            self.state.rf_history.stddev()
        )

    @property
    def is_calibrated(self) -> bool:
        return self.baselines.is_calibrated

    def snapshot(self) -> FrameSnapshot:
        s = self.state
        return FrameSnapshot(
            magnetic=s.magnetic,
            rf=s.rf,
            light=s.light,
            linear_motion=s.linear_motion,
            angular_motion=s.angular_motion,
            echo=s.echo,
            hum=s.hum,
            doppler=s.doppler,
            network_count=s.network_count,
            rf_stddev=s.rf_history.stddev(),
            light_stddev=s.light_history.stddev(),
            baseline=self.baselines.baseline,
            noise_floor=self.baselines.noise_floor,
            calibrated=self.baselines.is_calibrated,
        )

    def reset(self) -> None:
        """Discard all session state: smoothed values, histories, baselines."""
        self.state = ConditioningState(self.history_size, self.hum_window)
        self.baselines.reset()
