"""Safety governor.

Every reduction the pipeline makes is measured here, at three levels:
- per pattern / rule (a single regex or repetition sub-step)
- per stage (and per internal pass of the repetition stage)
- cumulatively, against the text the caller handed in

The cumulative check is the hard stop. Rollback decisions use the stage's
uncapped candidate, so a cap that quietly withholds a catastrophic change
still rolls the whole pipeline back instead of hiding the problem.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union
import logging

from ..config.schema import SafetyThresholds

log = logging.getLogger("transcript_sanitizer.governor")

PROCEED = "proceed"
WARN = "warn"
ROLLBACK = "rollback"

TextOrLength = Union[str, int]


def _len(x: TextOrLength) -> int:
    return x if isinstance(x, int) else len(x)


def reduction_ratio(before: TextOrLength, after: TextOrLength) -> float:
    """1 - len(after)/len(before), in code points. Empty input never reduces."""
    b = _len(before)
    if b == 0:
        return 0.0
    return (b - _len(after)) / b


@dataclass(frozen=True)
class Verdict:
    action: str
    cumulative: float
    attempted_cumulative: float
    reason: str = ""


class SafetyGovernor:
    def __init__(self, thresholds: SafetyThresholds):
        self.t = thresholds

    def exceeds_pattern_cap(self, before: TextOrLength, after: TextOrLength) -> bool:
        return reduction_ratio(before, after) > self.t.single_pattern_max_reduction

    def exceeds_repetition_cap(self, before: TextOrLength, after: TextOrLength) -> bool:
        return reduction_ratio(before, after) > self.t.repetition_pattern_max_reduction

    def exceeds_pass_limit(self, before: TextOrLength, after: TextOrLength) -> bool:
        return reduction_ratio(before, after) > self.t.iteration_reduction_limit

    def exceeds_stage_cap(self, before: TextOrLength, after: TextOrLength) -> bool:
        return reduction_ratio(before, after) > self.t.single_cleaner_max_reduction

    def exceeds_structural_cap(self, before: TextOrLength, after: TextOrLength) -> bool:
        return reduction_ratio(before, after) > self.t.structural_max_reduction

    def check(self, stage: str, baseline: TextOrLength, current: TextOrLength, attempted: TextOrLength) -> Verdict:
        """Decide whether the pipeline may continue after `stage`.

        `baseline` is the content the caller handed in, `current` what the
        stage actually produced and `attempted` what it would have produced
        without caps.
        """
        cumulative = reduction_ratio(baseline, current)
        attempted_cumulative = max(cumulative, reduction_ratio(baseline, attempted))
        emergency = self.t.emergency_fallback_threshold
        if attempted_cumulative > emergency:
            reason = f"reduction {attempted_cumulative:.3f} after {stage} exceeds emergency threshold {emergency}"
            log.warning(f"rollback: {reason}")
            return Verdict(ROLLBACK, cumulative, attempted_cumulative, reason)
        if cumulative > self.t.warning_threshold:
            reason = f"reduction {cumulative:.3f} after {stage} exceeds warning threshold {self.t.warning_threshold}"
            log.info(reason)
            return Verdict(WARN, cumulative, attempted_cumulative, reason)
        return Verdict(PROCEED, cumulative, attempted_cumulative)
