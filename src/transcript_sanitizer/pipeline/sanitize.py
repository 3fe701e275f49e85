"""Sanitization pipeline (orchestrator).

raw text -> configured stages (contamination, repetition) -> optional
dictionary correction -> final governor check -> PipelineOutcome.

The governor runs after every stage, so one stage's runaway reduction
cannot compound with the next before rollback triggers. Reductions are
always measured against the stripped input, markup included.

The stages are rerun as a whole until a round changes nothing (bounded by
`max_rounds`): a change one stage held back under its cap can fit once
another stage has shortened the text, and sanitizing the output again
must not find anything left to do.

Nothing in here raises for any input text: rule failures become
diagnostics and rollback is reported on the outcome.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional
import logging

from ..config.defaults import DEFAULT_CONFIG
from ..config.schema import CleaningConfig
from ..errors import StageError
from ..patterns.catalog import get_catalog
from ..stages.registry import make_stages
from ..utils.text import normalize_language
from .context import (
    CleaningRequest,
    Diagnostic,
    PipelineOutcome,
    StageResult,
    ROLLBACK as ROLLBACK_KIND,
    STAGE_ERROR,
    WARNING,
)
from .governor import PROCEED, ROLLBACK, WARN, SafetyGovernor, Verdict

log = logging.getLogger("transcript_sanitizer.pipeline")

CORRECTION = "correction"


def _unique(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    # later rounds repeat what the first one already reported
    return list(dict.fromkeys(diagnostics))


class _StageTally:
    """Folds each stage's results from successive rounds into one StageResult.

    The reported reduction is that of the stage's largest single run, the
    quantity its stage cap bounds.
    """

    def __init__(self):
        self.results: Dict[str, StageResult] = {}

    def add(self, result: StageResult) -> None:
        name = result.stage
        prev = self.results.get(name)
        if prev is None:
            self.results[name] = result
            return
        self.results[name] = StageResult(
            stage=name,
            text=result.text,
            reduction_ratio=max(prev.reduction_ratio, result.reduction_ratio),
            matched_rule_ids=prev.matched_rule_ids + [r for r in result.matched_rule_ids if r not in prev.matched_rule_ids],
            skipped=prev.skipped or result.skipped,
            attempted_length=result.attempted_length,
            diagnostics=_unique(prev.diagnostics + result.diagnostics),
        )

    def ordered(self) -> List[StageResult]:
        return list(self.results.values())


class SanitizationPipeline:
    """Runs the configured stages over one transcript at a time.

    Construction compiles and validates the config (ConfigError on a bad
    one). An instance holds no per-call state and can be shared.
    """

    def __init__(self, config: Optional[CleaningConfig] = None, corrector=None):
        self.config = config if config is not None else DEFAULT_CONFIG
        self.catalog = get_catalog(self.config)
        self.stages = make_stages(self.config.stages)
        self.governor = SafetyGovernor(self.config.safety)
        self.corrector = corrector

    def sanitize(self, request: CleaningRequest) -> PipelineOutcome:
        original = (request.text or "").strip()
        language = normalize_language(request.language_tag)
        text = original
        tally = _StageTally()
        diagnostics: List[Diagnostic] = []
        verdict = Verdict(PROCEED, 0.0, 0.0)

        for n in range(self.config.max_rounds):
            before = text
            for stage in self.stages:
                try:
                    result = stage.apply(text, self.catalog)
                except Exception as e:
                    err = StageError(stage.name, "", e)
                    log.exception(f"stage failed, keeping its input: {err}")
                    diagnostics = _unique(diagnostics + [Diagnostic(stage.name, STAGE_ERROR, "", str(err))])
                    continue
                tally.add(result)
                diagnostics = _unique(diagnostics + result.diagnostics)
                verdict = self.governor.check(stage.name, original, len(result.text), result.attempted_length)
                if verdict.action == ROLLBACK:
                    return self._rollback(original, verdict, tally.ordered(), diagnostics, language, stage.name)
                text = result.text
            if text == before:
                break
            log.debug(f"round {n + 1} changed the text; running the stages again")
        else:
            log.warning(f"text still changing after max_rounds={self.config.max_rounds}")

        corrected = False
        if self.corrector is not None and text:
            try:
                fixed = self.corrector.correct(text, language)
            except Exception as e:
                err = StageError(CORRECTION, "", e)
                log.exception(f"correction failed, keeping cleaned text: {err}")
                diagnostics.append(Diagnostic(CORRECTION, STAGE_ERROR, "", str(err)))
                fixed = text
            if fixed != text:
                corrected = True
                verdict = self.governor.check(CORRECTION, original, len(fixed), len(fixed))
                if verdict.action == ROLLBACK:
                    return self._rollback(original, verdict, tally.ordered(), diagnostics, language, CORRECTION)
                text = fixed

        if verdict.action == WARN:
            diagnostics.append(Diagnostic("governor", WARNING, "", verdict.reason))

        return PipelineOutcome(
            final_text=text,
            rolled_back=False,
            cumulative_reduction=verdict.cumulative,
            stage_results=tally.ordered(),
            diagnostics=diagnostics,
            language=language,
            corrected=corrected,
        )

    def _rollback(
        self,
        original: str,
        verdict: Verdict,
        results: List[StageResult],
        diagnostics: List[Diagnostic],
        language: str,
        stage: str,
    ) -> PipelineOutcome:
        diagnostics.append(Diagnostic("governor", ROLLBACK_KIND, stage, verdict.reason))
        return PipelineOutcome(
            final_text=original,
            rolled_back=True,
            cumulative_reduction=verdict.attempted_cumulative,
            stage_results=results,
            diagnostics=diagnostics,
            language=language,
        )


def sanitize(raw_text: str, language_tag: str = "auto", config: Optional[CleaningConfig] = None, corrector=None) -> PipelineOutcome:
    """One-shot convenience wrapper around SanitizationPipeline."""
    pipeline = SanitizationPipeline(config, corrector=corrector)
    return pipeline.sanitize(CleaningRequest(raw_text, language_tag))
