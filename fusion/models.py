"""
Value types shared by the classification engine and its consumers.
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple


class Severity(IntEnum):
    """Ranking used when several results compete (higher wins)."""
    INFO = 0
    WARNING = 1
    MAGNETIC = 2
    THREAT = 3
    INTRUSION = 4


class Color:
    """Color tokens attached to results."""
    INTRUSION = "#E040FB"
    BLOCKED = "#AA00FF"
    PERSON = "#9C27B0"
    THREAT = "#D32F2F"
    MAGNETIC = "#F44336"
    WARNING = "#FF9800"
    CALIBRATING = "#FFC107"
    SECURE = "#2E7D32"
    IDLE = "#9E9E9E"
    HARD_SURFACE = "#1976D2"
    SOFT_MATERIAL = "#0097A7"


@dataclass(frozen=True)
class ClassificationResult:
    """One evaluation of the environment. Never mutated after creation."""
    main_status: str
    sub_status: str
    severity_color: str
    debug_tags: Tuple[str, ...] = ()
    actuation_intensity: int = 0
    severity: Severity = Severity.INFO

    @property
    def debug_text(self) -> str:
        return " | ".join(self.debug_tags)

    def to_dict(self) -> dict:
        return {
            "main_status": self.main_status,
            "sub_status": self.sub_status,
            "severity_color": self.severity_color,
            "debug_tags": self.debug_text,
            "actuation_intensity": self.actuation_intensity,
            "severity": self.severity.name,
        }


@dataclass
class OperatingModes:
    """
    Externally toggled flags read at evaluation time.

    sentry_mode selects intrusion watch over counter-surveillance sweep;
    person_mode and object_mode enable the probe branches.
    """
    sentry_mode: bool = False
    person_mode: bool = True
    object_mode: bool = True

    @classmethod
    def from_config(cls, config: dict) -> "OperatingModes":
        c = config["classification"]
        return cls(
            sentry_mode=bool(c.get("sentry_mode", False)),
            person_mode=bool(c.get("person_mode", True)),
            object_mode=bool(c.get("object_mode", True)),
        )


CALIBRATING = ClassificationResult(
    "CALIBRATING", "Hold still...", Color.CALIBRATING, severity=Severity.INFO
)
ENVIRONMENT_LEARNED = ClassificationResult(
    "SECURE", "Environment Learned", Color.SECURE, severity=Severity.INFO
)
IDLE = ClassificationResult(
    "SYSTEM IDLE", "Services Stopped", Color.IDLE, severity=Severity.INFO
)
