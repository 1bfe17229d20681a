"""
Sensor fusion engine for environment classification.

Sonar (tone + echo analysis) and the conditioning/classification pipeline
are separate units wired together by SessionCoordinator.
"""

from .audio import AudioCapture, AudioChunk, AudioDeviceError, AudioPlayback
from .tone import ToneGenerator, build_tone
from .echo import (
    BandMagnitudes,
    DopplerState,
    EchoAnalyzer,
    SonarResult,
    decide_doppler,
    goertzel_magnitude,
)
from .sonar import ActiveSonar, SonarChannel
from .baseline import Baseline, BaselineTracker
from .conditioning import (
    ConditioningState,
    FrameSnapshot,
    HistoryBuffer,
    SignalConditioner,
    linear_motion,
    rolling_stddev,
    smooth,
    vector_magnitude,
)
from .models import ClassificationResult, Color, OperatingModes, Severity
from .rules import (
    INTRUSION_RULES,
    PROBE_RULES,
    RULE_TABLES,
    Rule,
    RuleContext,
    Thresholds,
    density_label,
)
from .classifier import ClassificationEngine
from .aggregator import TemporalAggregator
from .session import PeriodicWorker, SessionCoordinator
from .reporting import (
    generate_replay_report,
    load_trace,
    replay_trace,
    summarize_results,
)

__all__ = [
    # Audio
    'AudioCapture',
    'AudioChunk',
    'AudioDeviceError',
    'AudioPlayback',
    # Sonar
    'ToneGenerator',
    'build_tone',
    'BandMagnitudes',
    'DopplerState',
    'EchoAnalyzer',
    'SonarResult',
    'decide_doppler',
    'goertzel_magnitude',
    'ActiveSonar',
    'SonarChannel',
    # Conditioning
    'Baseline',
    'BaselineTracker',
    'ConditioningState',
    'FrameSnapshot',
    'HistoryBuffer',
    'SignalConditioner',
    'linear_motion',
    'rolling_stddev',
    'smooth',
    'vector_magnitude',
    # Classification
    'ClassificationResult',
    'Color',
    'OperatingModes',
    'Severity',
    'INTRUSION_RULES',
    'PROBE_RULES',
    'RULE_TABLES',
    'Rule',
    'RuleContext',
    'Thresholds',
    'density_label',
    'ClassificationEngine',
    'TemporalAggregator',
    # Session
    'PeriodicWorker',
    'SessionCoordinator',
    # Reporting
    'generate_replay_report',
    'load_trace',
    'replay_trace',
    'summarize_results',
]
