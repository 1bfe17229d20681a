"""
Declarative rule tables for the classification engine.

Each profile is an ordered list of Rule(name, matches, build). The engine
evaluates them top to bottom and the first match wins; the last rule of
every table matches unconditionally.

Threshold comparisons are strict (>, <). Only the crowd-density buckets
use inclusive membership.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from fusion.conditioning import FrameSnapshot
from fusion.echo import DopplerState
from fusion.models import ClassificationResult, Color, OperatingModes, Severity


@dataclass(frozen=True)
class Thresholds:
    """Numeric limits used by the rules."""
    stationary: float = 0.05
    handling: float = 0.5
    rf_noise_multiplier: float = 3.0
    rf_variance_floor: float = 1.5
    light_variance: float = 4.0
    rf_drop: float = 5.0
    rf_blocked_max_variance: float = 2.0
    electronics_deviation: float = 3.0
    hum: float = 1.0
    ferrous_deviation: float = 15.0
    probe_ferrous_deviation: float = 10.0
    hard_surface_max_deviation: float = 5.0
    hard_echo_ratio: float = 1.15
    soft_echo_ratio: float = 0.85

    @classmethod
    def from_config(cls, config: dict) -> "Thresholds":
        c = config["classification"]
        return cls(
            stationary=c["stationary_threshold"],
            handling=c["handling_threshold"],
            rf_noise_multiplier=c["rf_noise_multiplier"],
            rf_variance_floor=c["rf_variance_floor"],
            light_variance=c["light_variance_threshold"],
            rf_drop=c["rf_drop_threshold"],
            rf_blocked_max_variance=c["rf_blocked_max_variance"],
            electronics_deviation=c["electronics_deviation"],
            hum=c["hum_threshold"],
            ferrous_deviation=c["ferrous_deviation"],
            probe_ferrous_deviation=c["probe_ferrous_deviation"],
            hard_surface_max_deviation=c["hard_surface_max_deviation"],
            hard_echo_ratio=c["hard_echo_ratio"],
            soft_echo_ratio=c["soft_echo_ratio"],
        )


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at for one evaluation."""
    frame: FrameSnapshot
    modes: OperatingModes
    limits: Thresholds
    tags: Tuple[str, ...]
    density: str

    def moving(self, threshold: float) -> bool:
        return (self.frame.linear_motion > threshold
                or self.frame.angular_motion > threshold)

    @property
    def rf_scatter_limit(self) -> float:
        return max(self.frame.noise_floor * self.limits.rf_noise_multiplier,
                   self.limits.rf_variance_floor)

    @property
    def rf_active(self) -> bool:
        return self.frame.rf_stddev > self.rf_scatter_limit

    @property
    def shadows(self) -> bool:
        return self.frame.light_stddev > self.limits.light_variance


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[RuleContext], bool]
    build: Callable[[RuleContext], ClassificationResult]


def clamp(value: float, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def density_label(network_count: int, stationary: bool, rf_stddev: float) -> str:
    """
    Coarse occupancy estimate from visible networks and body blocking.

    One point each for more than 5, 15 and 30 networks, plus one if the
    device is still while RF variance is above 2.0.
    """
    score = 0
    if network_count > 5:
        score += 1
    if network_count > 15:
        score += 1
    if network_count > 30:
        score += 1
    if stationary and rf_stddev > 2.0:
        score += 1

    if score <= 1:
        return "Low Density"
    if score <= 3:
        return "Moderate Crowd"
    return "High Congestion"


def diagnostic_tags(frame: FrameSnapshot) -> Tuple[str, ...]:
    """Short markers describing notable channel readings."""
    tags = []
    if frame.magnetic_deviation > 10.0:
        tags.append("Mag++")
    if frame.hum > 1.0:
        tags.append("AC-Hum")
    if frame.light_stddev > 5.0:
        tags.append("Shadow")
    tags.append(f"APs:{frame.network_count}")
    return tuple(tags)


# Intrusion profile: sentry (intrusion watch) and sweep (counter-surveillance)

def _device_moving(ctx: RuleContext) -> ClassificationResult:
    main = "SENTRY ALERT" if ctx.modes.sentry_mode else "SWEEP PAUSED"
    return ClassificationResult(
        main, "Device Moving - Put Down", Color.WARNING,
        ctx.tags + ("Stabilize Device",), 0, Severity.WARNING
    )


def _scatter_intrusion(ctx: RuleContext) -> ClassificationResult:
    reason = "Light Shadow" if ctx.shadows else "WiFi Scattering"
    return ClassificationResult(
        "INTRUSION DETECTED", f"Motion ({reason})", Color.INTRUSION,
        ctx.tags + (f"Var:{ctx.frame.rf_stddev:.1f}", ctx.density), 255, Severity.INTRUSION
    )


def _signal_blocked(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "INTRUSION DETECTED", "Signal Line Blocked", Color.BLOCKED,
        ctx.tags + (f"Drop: {ctx.frame.rf_drop:.1f}dB",), 100, Severity.INTRUSION
    )


def _live_electronics(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "THREAT DETECTED", "Live Electronics (AC Hum)", Color.THREAT,
        ctx.tags + (f"Jitter: {ctx.frame.hum:.1f}",),
        clamp(ctx.frame.magnetic_deviation * 5, 50, 255), Severity.THREAT
    )


def _ferrous(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "MAGNETIC SOURCE", "Ferrous Metal Detected", Color.MAGNETIC,
        ctx.tags, clamp(ctx.frame.magnetic_deviation * 2, 30, 150), Severity.MAGNETIC
    )


def _secure(ctx: RuleContext) -> ClassificationResult:
    mode_text = "Sentry Active" if ctx.modes.sentry_mode else "Scanning..."
    return ClassificationResult(
        "SECURE", f"Env: {ctx.density}", Color.SECURE,
        ctx.tags + (mode_text,), 0, Severity.INFO
    )


INTRUSION_RULES: List[Rule] = [
    Rule("device_moving",
         lambda ctx: ctx.moving(ctx.limits.stationary),
         _device_moving),
    Rule("scatter_intrusion",
         lambda ctx: ctx.modes.sentry_mode and (ctx.rf_active or ctx.shadows),
         _scatter_intrusion),
    Rule("signal_blocked",
         lambda ctx: (ctx.modes.sentry_mode
                      and ctx.frame.rf_drop > ctx.limits.rf_drop
                      and ctx.frame.rf_stddev < ctx.limits.rf_blocked_max_variance),
         _signal_blocked),
    Rule("live_electronics",
         lambda ctx: (ctx.frame.magnetic_deviation > ctx.limits.electronics_deviation
                      and ctx.frame.hum > ctx.limits.hum),
         _live_electronics),
    Rule("ferrous_metal",
         lambda ctx: ctx.frame.magnetic_deviation > ctx.limits.ferrous_deviation,
         _ferrous),
    Rule("secure", lambda ctx: True, _secure),
]


# Probe profile: sonar-driven person and object detection

def _handling(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "HOLD STILL", "Device Handling Detected", Color.WARNING,
        ctx.tags + ("Stabilize Device",), 0, Severity.WARNING
    )


def _doppler_person(ctx: RuleContext) -> ClassificationResult:
    if ctx.frame.doppler == DopplerState.APPROACHING:
        sub, intensity = "Approaching", 255
    else:
        sub, intensity = "Moving Away", 150
    return ClassificationResult(
        "PERSON DETECTED", sub, Color.PERSON,
        ctx.tags + (f"Doppler:{int(ctx.frame.doppler):+d}",), intensity, Severity.INTRUSION
    )


def _room_motion(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "PERSON DETECTED", "Motion in Room", Color.PERSON,
        ctx.tags + (f"Var:{ctx.frame.rf_stddev:.1f}",), 200, Severity.INTRUSION
    )


def _probe_ferrous(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "MAGNETIC SOURCE", "Ferrous Metal", Color.MAGNETIC,
        ctx.tags, clamp(ctx.frame.magnetic_deviation * 2, 30, 150), Severity.MAGNETIC
    )


def _hard_surface(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "OBJECT DETECTED", "Hard Non-Metal Surface", Color.HARD_SURFACE,
        ctx.tags + (f"Echo:{ctx.frame.echo_ratio:.2f}x",), 80, Severity.INFO
    )


def _soft_material(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "OBJECT DETECTED", "Soft / Absorptive Material", Color.SOFT_MATERIAL,
        ctx.tags + (f"Echo:{ctx.frame.echo_ratio:.2f}x",), 40, Severity.INFO
    )


def _area_secure(ctx: RuleContext) -> ClassificationResult:
    return ClassificationResult(
        "SCANNING", "Area Secure", Color.SECURE, ctx.tags, 0, Severity.INFO
    )


PROBE_RULES: List[Rule] = [
    Rule("device_handling",
         lambda ctx: ctx.moving(ctx.limits.handling),
         _handling),
    Rule("doppler_person",
         lambda ctx: ctx.frame.doppler != DopplerState.NONE,
         _doppler_person),
    Rule("room_motion",
         lambda ctx: ctx.modes.person_mode and (ctx.rf_active or ctx.shadows),
         _room_motion),
    Rule("ferrous_metal",
         lambda ctx: (ctx.modes.object_mode
                      and ctx.frame.magnetic_deviation > ctx.limits.probe_ferrous_deviation),
         _probe_ferrous),
    Rule("hard_surface",
         lambda ctx: (ctx.modes.object_mode
                      and ctx.frame.magnetic_deviation < ctx.limits.hard_surface_max_deviation
                      and ctx.frame.echo_ratio > ctx.limits.hard_echo_ratio),
         _hard_surface),
    Rule("soft_material",
         lambda ctx: ctx.modes.object_mode and ctx.frame.echo_ratio < ctx.limits.soft_echo_ratio,
         _soft_material),
    Rule("area_secure", lambda ctx: True, _area_secure),
]


RULE_TABLES: Dict[str, List[Rule]] = {
    "intrusion": INTRUSION_RULES,
    "probe": PROBE_RULES,
}
