"""
Pytest configuration and shared fixtures.

This module provides:
- Common fixtures for test configuration
- Helper functions for building frames and audio blocks
- Fake audio devices for sonar tests
"""
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import config_loader
import pytest
import numpy as np

from fusion.audio import AudioChunk, AudioDeviceError
from fusion.baseline import Baseline
from fusion.conditioning import FrameSnapshot
from fusion.echo import DopplerState

# Test constants
TEST_SAMPLE_RATE = 44100
TEST_CENTER_FREQ = 19000.0
TEST_OFFSET = 150.0
INT16_FULL_SCALE = 32767.0


@pytest.fixture
def config():
    """Default configuration, independent of any config.json on disk."""
    return config_loader.get_default_config()


@pytest.fixture
def fast_config(config):
    """Configuration with short calibration and no capture pacing."""
    config["conditioning"]["calibration_samples"] = 5
    config["sonar"]["capture_interval_sec"] = 0.0
    return config


# Helper functions for test data creation

def create_sine(
    frequency: float,
    n_samples: int = TEST_SAMPLE_RATE,
    sample_rate: int = TEST_SAMPLE_RATE,
    amplitude: float = 1000.0
) -> np.ndarray:
    """
    Pure sine block, float64.

    Args:
        frequency: Frequency in Hz
        n_samples: Block length
        sample_rate: Sample rate in Hz
        amplitude: Peak amplitude

    Returns:
        float64 array of samples
    """
    t = np.arange(n_samples, dtype=np.float64)
    return amplitude * np.sin(2 * np.pi * frequency * t / sample_rate)


def make_frame(**overrides) -> FrameSnapshot:
    """
    FrameSnapshot of a calm, calibrated room; override any field.

    Baseline defaults to magnetic=50, rf=-50, echo=100.
    """
    values = dict(
        magnetic=50.0,
        rf=-50.0,
        light=100.0,
        linear_motion=0.0,
        angular_motion=0.0,
        echo=100.0,
        hum=0.0,
        doppler=DopplerState.NONE,
        network_count=3,
        rf_stddev=0.0,
        light_stddev=0.0,
        baseline=Baseline(magnetic=50.0, rf=-50.0, echo=100.0),
        noise_floor=0.3,
        calibrated=True,
    )
    values.update(overrides)
    return FrameSnapshot(**values)


class FakeCapture:
    """Stands in for AudioCapture; serves queued blocks, then waits."""

    def __init__(self, blocks: Optional[List[np.ndarray]] = None, fail: bool = False,
                 sample_rate: int = TEST_SAMPLE_RATE, read_delay: float = 0.01):
        self.blocks = list(blocks or [])
        self.fail = fail
        self.sample_rate = sample_rate
        self.read_delay = read_delay
        self.started = False
        self.is_open = False
        self.reads = 0
        self.stop_calls = 0
        self._stopped = threading.Event()

    def start(self):
        if self.fail:
            raise AudioDeviceError("arecord failed to start")
        self.started = True
        self.is_open = True
        self._stopped.clear()

    def read_chunk(self):
        if self._stopped.is_set():
            return None
        self.reads += 1
        if self.blocks:
            return AudioChunk(self.blocks.pop(0), self.sample_rate, time.time())
        # Blocks like a live pipe, then keeps producing the tone until stopped
        self._stopped.wait(self.read_delay)
        if self._stopped.is_set():
            return None
        return AudioChunk(create_sine(TEST_CENTER_FREQ, 2048), self.sample_rate, time.time())

    def stop(self):
        self.stop_calls += 1
        self.is_open = False
        self._stopped.set()


class FakeTone:
    """Stands in for ToneGenerator."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.started = False
        self.stop_calls = 0

    def start(self):
        if self.fail:
            raise AudioDeviceError("aplay failed to start")
        self.started = True

    def stop(self):
        self.stop_calls += 1
        self.started = False


class SlowTone(FakeTone):
    """FakeTone whose output device takes a while to open."""

    def __init__(self, delay: float = 0.3):
        super().__init__()
        self.delay = delay

    def start(self):
        time.sleep(self.delay)
        super().start()


class FakePlayback:
    """Stands in for AudioPlayback; records writes."""

    def __init__(self, fail: bool = False, max_writes: Optional[int] = None):
        self.fail = fail
        self.max_writes = max_writes
        self.writes = 0
        self.started = False
        self.stop_calls = 0

    def start(self):
        if self.fail:
            raise AudioDeviceError("aplay failed to start")
        self.started = True

    def write(self, samples):
        if not self.started:
            return False
        if self.max_writes is not None and self.writes >= self.max_writes:
            return False
        self.writes += 1
        time.sleep(0.001)
        return True

    def stop(self):
        self.stop_calls += 1
        self.started = False


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until true or timeout."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
