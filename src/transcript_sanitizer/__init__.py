"""transcript_sanitizer

Cleans raw speech-to-text output: leaked prompt text, stray markup and
repetition loops are removed under conservative, configurable reduction
limits, and a safety governor rolls back any run that removes too much.

Public API surface:
- transcript_sanitizer.sanitize : one-shot cleaning call
- transcript_sanitizer.SanitizationPipeline : reusable pipeline for one config
- transcript_sanitizer.config : CleaningConfig, defaults and YAML loading
- transcript_sanitizer.correction : fixed lexical corrections
- transcript_sanitizer.cli.main : CLI entrypoint
"""

from .config import CleaningConfig, DEFAULT_CONFIG, load_config
from .errors import ConfigError, StageError
from .pipeline.context import CleaningRequest, Diagnostic, PipelineOutcome, StageResult
from .pipeline.sanitize import SanitizationPipeline, sanitize

__all__ = [
    "__version__",
    "CleaningConfig",
    "CleaningRequest",
    "ConfigError",
    "DEFAULT_CONFIG",
    "Diagnostic",
    "PipelineOutcome",
    "SanitizationPipeline",
    "StageError",
    "StageResult",
    "load_config",
    "sanitize",
]
__version__ = "0.1.0"
