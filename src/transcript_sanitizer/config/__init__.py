"""Cleaning configuration: schema, defaults and YAML loading."""

from .schema import (
    CleaningConfig,
    ContaminationPatterns,
    EnumerationDetection,
    NgramThresholds,
    ParagraphRepeat,
    RepetitionThresholds,
    SafetyThresholds,
    TailRepeat,
    XmlPatternGroups,
)
from .defaults import DEFAULT_CONFIG
from .loader import config_from_dict, config_to_dict, load_config, load_yaml

__all__ = [
    "CleaningConfig",
    "ContaminationPatterns",
    "EnumerationDetection",
    "NgramThresholds",
    "ParagraphRepeat",
    "RepetitionThresholds",
    "SafetyThresholds",
    "TailRepeat",
    "XmlPatternGroups",
    "DEFAULT_CONFIG",
    "config_from_dict",
    "config_to_dict",
    "load_config",
    "load_yaml",
]
