"""
Classification engine.

Open/Closed: new behaviour is added as rows in a rule table (fusion.rules),
not as branches in the engine.

Single Responsibility: Evaluate one conditioned frame against an ordered
rule table and return exactly one ClassificationResult.
"""
from typing import List, Optional

from fusion.conditioning import FrameSnapshot
from fusion.models import ClassificationResult, OperatingModes
from fusion.rules import (
    RULE_TABLES,
    Rule,
    RuleContext,
    Thresholds,
    density_label,
    diagnostic_tags,
)
from logger import get_logger

log = get_logger(__name__)


class ClassificationEngine:
    """
    Strict-priority rule evaluation, first match wins.

    The engine holds no per-frame state; evaluate() is a total function of
    the snapshot, the mode flags and the configured thresholds.
    """

    def __init__(
        self,
        config: dict,
        rules: Optional[List[Rule]] = None,
        thresholds: Optional[Thresholds] = None
    ):
        """
        Initialize classification engine.

        Args:
            config: Configuration dictionary
            rules: Override the rule table selected by classification.profile
            thresholds: Override thresholds read from the config
        """
        self.profile = config["classification"]["profile"]
        self.rules = rules if rules is not None else RULE_TABLES[self.profile]
        self.thresholds = thresholds if thresholds is not None else Thresholds.from_config(config)

        if not self.rules:
            raise ValueError("Rule table must not be empty")

    def context(self, frame: FrameSnapshot, modes: OperatingModes) -> RuleContext:
        """Derive the shared per-frame inputs every rule sees."""
        stationary = not (
            frame.linear_motion > self.thresholds.stationary
            or frame.angular_motion > self.thresholds.stationary
        )
        return RuleContext(
            frame=frame,
            modes=modes,
            limits=self.thresholds,
            tags=diagnostic_tags(frame),
            density=density_label(frame.network_count, stationary, frame.rf_stddev),
        )

    def evaluate(self, frame: FrameSnapshot, modes: OperatingModes) -> ClassificationResult:
        """
        Classify one frame.

        Args:
            frame: Snapshot of conditioned channels and baselines
            modes: Current operating mode flags

        Returns:
            The result of the first matching rule
        """
        ctx = self.context(frame, modes)
        for rule in self.rules:
            if rule.matches(ctx):
                log.debug("Rule %s matched (%s)", rule.name, ", ".join(ctx.tags))
                return rule.build(ctx)

        # Tables end with an unconditional rule; reaching here means a custom
        # table without one
        return RULE_TABLES[self.profile][-1].build(ctx)
