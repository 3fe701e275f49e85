"""Cleaning configuration data model.

CleaningConfig is built once (defaults, YAML or a dict) and then shared by
reference across every pipeline run. All types here are frozen dataclasses
so a config can be used as a cache key and never changes under a running
pipeline.

Regex flags are written inline (``(?im)...``) so every pattern is a plain
string that survives a YAML round trip.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class SafetyThresholds:
    # Fractions (0..1) of the text a cleaning step may remove.
    single_cleaner_max_reduction: float = 0.75
    single_pattern_max_reduction: float = 0.6
    repetition_pattern_max_reduction: float = 0.7
    iteration_reduction_limit: float = 0.75
    emergency_fallback_threshold: float = 0.9
    warning_threshold: float = 0.15
    # cap for the markup step alone (transcript envelopes, stray tags)
    structural_max_reduction: float = 0.95


@dataclass(frozen=True)
class NgramThresholds:
    min_n: int = 3
    max_n: int = 8
    # (n, minimum consecutive repeats) pairs
    thresholds: Tuple[Tuple[int, int], ...] = (
        (3, 4), (4, 3), (5, 2), (6, 2), (7, 2), (8, 2),
    )

    def as_dict(self) -> Dict[int, int]:
        return dict(self.thresholds)


@dataclass(frozen=True)
class EnumerationDetection:
    enabled: bool = True
    min_repeat_count: int = 3
    # longest cycle of items looked for inside one sentence
    max_block_items: int = 10


@dataclass(frozen=True)
class ParagraphRepeat:
    enabled: bool = True
    head_chars: int = 50


@dataclass(frozen=True)
class TailRepeat:
    enabled: bool = True
    # the last `window_chars` of the text are scored; shorter texts are left alone
    window_chars: int = 400
    min_chars: int = 80
    min_diversity: float = 0.3
    max_density: int = 2


@dataclass(frozen=True)
class RepetitionThresholds:
    base_threshold: int = 3
    length_factor: int = 2
    dynamic_threshold_divisor: int = 100
    short_char_keep_ratio: float = 0.3
    sentence_repetition: int = 3
    similarity_threshold: float = 0.85
    minimum_sentence_length_for_similarity: int = 10
    consecutive_newline_limit: int = 3
    max_passes: int = 4
    ngram: NgramThresholds = field(default_factory=NgramThresholds)
    enumeration_detection: EnumerationDetection = field(default_factory=EnumerationDetection)
    paragraph_repeat: ParagraphRepeat = field(default_factory=ParagraphRepeat)
    tail_repeat: TailRepeat = field(default_factory=TailRepeat)


@dataclass(frozen=True)
class XmlPatternGroups:
    complete_xml_tags: Tuple[str, ...] = ()
    sentence_bounded_tags: Tuple[str, ...] = ()
    line_bounded_tags: Tuple[str, ...] = ()
    standalone_tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContaminationPatterns:
    instruction_patterns: Tuple[str, ...] = ()
    xml_pattern_groups: XmlPatternGroups = field(default_factory=XmlPatternGroups)
    context_patterns: Tuple[str, ...] = ()
    prompt_snippet_lengths: Tuple[int, ...] = (20, 30, 40, 50)
    leading_block_labels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CleaningConfig:
    safety: SafetyThresholds = field(default_factory=SafetyThresholds)
    repetition: RepetitionThresholds = field(default_factory=RepetitionThresholds)
    contamination: ContaminationPatterns = field(default_factory=ContaminationPatterns)
    stages: Tuple[str, ...] = ("contamination", "repetition")
    # the stages are rerun until the text stops changing, at most this often
    max_rounds: int = 8
