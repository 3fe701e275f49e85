"""Core pipeline data model.

A CleaningRequest enters the pipeline, every stage returns a new
StageResult (stages never mutate their input), and the caller gets a
PipelineOutcome back. Diagnostics explain everything the pipeline decided
not to do: capped patterns, skipped stages, failed rules, rollback.

Design goal:
- Keep these types stable so UI / insert-into-document code can rely on them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Diagnostic kinds
PATTERN_CAPPED = "pattern_capped"
PASS_LIMITED = "pass_limited"
STAGE_SKIPPED = "stage_skipped"
STAGE_ERROR = "stage_error"
WARNING = "warning"
ROLLBACK = "rollback"


@dataclass(frozen=True)
class CleaningRequest:
    text: str
    language_tag: str = "auto"


@dataclass(frozen=True)
class Diagnostic:
    stage: str
    kind: str
    rule_id: str = ""
    detail: str = ""


@dataclass
class StageResult:
    stage: str
    text: str
    reduction_ratio: float = 0.0
    matched_rule_ids: List[str] = field(default_factory=list)
    skipped: bool = False
    # length the stage would have produced with every cap lifted
    attempted_length: Optional[int] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def __post_init__(self):
        if self.attempted_length is None:
            self.attempted_length = len(self.text)


@dataclass
class PipelineOutcome:
    final_text: str
    rolled_back: bool = False
    cumulative_reduction: float = 0.0
    stage_results: List[StageResult] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    language: str = "auto"
    corrected: bool = False

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.kind == WARNING)

    def summary(self) -> dict:
        """Flat view for logs, audit records and the CLI --json output."""
        return {
            "rolled_back": self.rolled_back,
            "cumulative_reduction": round(self.cumulative_reduction, 4),
            "language": self.language,
            "corrected": self.corrected,
            "stages": [
                {
                    "stage": r.stage,
                    "reduction_ratio": round(r.reduction_ratio, 4),
                    "skipped": r.skipped,
                    "matched_rule_ids": list(r.matched_rule_ids),
                }
                for r in self.stage_results
            ],
            "diagnostics": [
                {"stage": d.stage, "kind": d.kind, "rule_id": d.rule_id, "detail": d.detail}
                for d in self.diagnostics
            ],
        }
