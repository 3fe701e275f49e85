"""Example: adding a cleaning stage without modifying registry.py.

Registers a stage that drops filler words ("um", "uh", "えーと") and runs it
after the built-in stages. The new stage goes through the same RuleRunner
caps and the same governor as the built-in ones.
"""

import re

from transcript_sanitizer import SanitizationPipeline, CleaningRequest, DEFAULT_CONFIG
from transcript_sanitizer.config import config_from_dict
from transcript_sanitizer.pipeline.context import StageResult
from transcript_sanitizer.pipeline.governor import SafetyGovernor, reduction_ratio
from transcript_sanitizer.stages import RuleRunner, Stage, register_stage, known_stages

FILLER_RE = re.compile(r"(?i)(?<!\S)(?:um+|uh+|えーと)[,、]?\s+")


class FillerStage(Stage):
    name = "filler"

    def apply(self, text, catalog):
        gov = SafetyGovernor(catalog.safety)
        runner = RuleRunner(self.name)
        cleaned = runner.run("filler", lambda t: FILLER_RE.sub("", t), text, gov.exceeds_pattern_cap)
        return StageResult(
            stage=self.name,
            text=cleaned,
            reduction_ratio=reduction_ratio(text, cleaned),
            matched_rule_ids=runner.matched,
            diagnostics=runner.diagnostics,
        )


register_stage(FillerStage.name, FillerStage)
print("Registered stages:", known_stages())

config = config_from_dict({"stages": list(DEFAULT_CONFIG.stages) + ["filler"]})
pipeline = SanitizationPipeline(config)
outcome = pipeline.sanitize(CleaningRequest("Um, so uh the deploy finished at noon.", "en"))
print(outcome.final_text)
print(outcome.summary())
