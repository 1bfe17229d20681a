"""
Session calibration: per-channel baselines and the RF noise floor.

Single Responsibility: Learn what the room looks like during the first
frames of a session, then hold those values fixed.
"""
from dataclasses import dataclass

from logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Baseline:
    """Reference values learned during calibration."""
    magnetic: float = 0.0
    rf: float = 0.0
    echo: float = 0.0


class BaselineTracker:
    """
    Tracks running-mean baselines and the adaptive RF noise floor.

    Baselines are updated only for the first ``calibration_samples`` frames
    and are frozen afterwards. Nothing persists across sessions.
    """

    def __init__(self, config: dict):
        """
        Initialize baseline tracker.

        Args:
            config: Configuration dictionary
        """
        cond = config["conditioning"]
        self.calibration_samples = cond["calibration_samples"]
        self.noise_floor_warmup = cond["noise_floor_warmup"]
        self.initial_noise_floor = float(cond["initial_noise_floor"])

        self.reset()

    def reset(self) -> None:
        """Return to the fresh-session state."""
        self._baseline = Baseline()
        self._noise_floor = self.initial_noise_floor
        self._sample_count = 0

    @property
    def baseline(self) -> Baseline:
        return self._baseline

    @property
    def noise_floor(self) -> float:
        return self._noise_floor

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def is_calibrated(self) -> bool:
        return self._sample_count >= self.calibration_samples

    def update(self, magnetic: float, rf: float, echo: float, rf_stddev: float) -> bool:
        """
        Fold one frame into the calibration.

        Args:
            magnetic: Smoothed magnetic magnitude
            rf: Smoothed RF level
            echo: Smoothed echo amplitude
            rf_stddev: Current rolling standard deviation of the RF history

        Returns:
            True if this frame completed calibration
        """
        if self.is_calibrated:
            return False

        self._sample_count += 1
        n = self._sample_count

        # Incremental form of (base * (n - 1) + x) / n; exact for constant input
        base = self._baseline
        self._baseline = Baseline(
            magnetic=base.magnetic + (magnetic - base.magnetic) / n,
            rf=base.rf + (rf - base.rf) / n,
            echo=base.echo + (echo - base.echo) / n,
        )

        if n > self.noise_floor_warmup and rf_stddev > 0:
            self._noise_floor = self._noise_floor * 0.9 + rf_stddev * 0.1

        if self.is_calibrated:
            log.info(
                "Calibration complete: mag=%.2f rf=%.2f echo=%.2f noise=%.3f",
                self._baseline.magnetic, self._baseline.rf,
                self._baseline.echo, self._noise_floor
            )
            return True
        return False
