"""Stage plugin interface.

Stages must:
- accept the current text and the shared PatternCatalog
- return a new StageResult (never mutate shared state)
- keep each rule's reduction under its cap, leaving over-cap matches in place
- report `attempted_length`, the length they would have produced uncapped,
  so the governor can still roll back a catastrophic change

Rules run through RuleRunner, which turns a failing rule into a StageError
diagnostic instead of an exception.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging

from ..errors import StageError
from ..patterns.catalog import PatternCatalog
from ..pipeline.context import Diagnostic, StageResult, PATTERN_CAPPED, STAGE_ERROR

log = logging.getLogger("transcript_sanitizer.stages")

CapCheck = Callable[[str, str], bool]


class Stage(ABC):
    name: str = "stage"

    @abstractmethod
    def apply(self, text: str, catalog: PatternCatalog) -> StageResult:
        ...


class RuleRunner:
    """Applies rules for one stage run and keeps what they matched."""

    def __init__(self, stage: str):
        self.stage = stage
        self.matched: List[str] = []
        self.diagnostics: List[Diagnostic] = []
        # set when any cap withheld a change
        self.capped = False

    def run(self, rule_id: str, fn: Callable[[str], str], text: str, cap: Optional[CapCheck] = None) -> str:
        try:
            candidate = fn(text)
        except Exception as e:
            err = StageError(self.stage, rule_id, e)
            log.warning(f"skipping rule: {err}")
            self.diagnostics.append(Diagnostic(self.stage, STAGE_ERROR, rule_id, str(err)))
            return text
        if candidate == text:
            return text
        if cap is not None and cap(text, candidate):
            self.capped = True
            detail = f"would remove {len(text) - len(candidate)} of {len(text)} chars"
            log.warning(f"{self.stage}/{rule_id} over cap, left in place: {detail}")
            self.diagnostics.append(Diagnostic(self.stage, PATTERN_CAPPED, rule_id, detail))
            return text
        if rule_id not in self.matched:
            self.matched.append(rule_id)
        log.debug(f"{self.stage}/{rule_id} removed {len(text) - len(candidate)} chars")
        return candidate

    def note(self, kind: str, rule_id: str, detail: str) -> None:
        self.capped = True
        self.diagnostics.append(Diagnostic(self.stage, kind, rule_id, detail))
