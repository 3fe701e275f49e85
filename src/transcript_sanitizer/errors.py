"""Error taxonomy.

- ConfigError: the cleaning configuration is malformed. Raised while loading
  or compiling it; a pipeline must never run with such a config.
- StageError: one rule failed while matching. Stages catch it, skip the rule
  and record a diagnostic; it never leaves `sanitize`.

Rollback is not an error. It is reported on PipelineOutcome.rolled_back.
"""

from __future__ import annotations
from typing import Optional


class ConfigError(ValueError):
    pass


class StageError(RuntimeError):
    def __init__(self, stage: str, rule_id: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.rule_id = rule_id
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "rule failed"
        super().__init__(f"{stage}/{rule_id}: {detail}")
