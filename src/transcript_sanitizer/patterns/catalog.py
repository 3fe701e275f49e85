"""Pattern catalog.

The catalog is the compiled form of a CleaningConfig: every regex is
compiled once here, never per call, and every invariant of the config is
checked before a single transcript is touched. A catalog is read-only after
construction, so one instance can serve any number of concurrent pipelines.
"""

from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Pattern, Tuple
import re

from ..config.schema import CleaningConfig
from ..errors import ConfigError

# punctuation a leaked instruction is often followed by
_TRAILING_PUNCT = r"(?:[。.．：:])?"


@dataclass(frozen=True)
class Rule:
    rule_id: str
    regex: Pattern[str]


def _compile(rule_id: str, source: str) -> Rule:
    try:
        return Rule(rule_id, re.compile(source))
    except re.error as e:
        raise ConfigError(f"{rule_id}: invalid regex {source!r}: {e}") from e


def _compile_group(group: str, sources: Iterable[str]) -> Tuple[Rule, ...]:
    return tuple(_compile(f"{group}:{i}", s) for i, s in enumerate(sources))


def _check_fraction(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ConfigError(f"{name} must be within [0, 1], got {value}")


def _check_min(name: str, value: int, minimum: int) -> None:
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")


def _check_items(name: str, values: Iterable[object], kind: type) -> None:
    for i, v in enumerate(values):
        if not isinstance(v, kind) or isinstance(v, bool):
            raise ConfigError(f"{name}[{i}] must be a {kind.__name__}, got {v!r}")


def validate_config(config: CleaningConfig) -> None:
    """Raise ConfigError if `config` breaks any threshold invariant."""
    s = config.safety
    for name in (
        "single_cleaner_max_reduction",
        "single_pattern_max_reduction",
        "repetition_pattern_max_reduction",
        "iteration_reduction_limit",
        "emergency_fallback_threshold",
        "warning_threshold",
        "structural_max_reduction",
    ):
        _check_fraction(f"safety.{name}", getattr(s, name))
    if not s.warning_threshold < s.emergency_fallback_threshold:
        raise ConfigError(
            f"safety.warning_threshold ({s.warning_threshold}) must be below "
            f"emergency_fallback_threshold ({s.emergency_fallback_threshold})"
        )
    for name in (
        "single_cleaner_max_reduction",
        "single_pattern_max_reduction",
        "repetition_pattern_max_reduction",
        "iteration_reduction_limit",
    ):
        if getattr(s, name) > s.emergency_fallback_threshold:
            raise ConfigError(
                f"safety.{name} ({getattr(s, name)}) exceeds "
                f"emergency_fallback_threshold ({s.emergency_fallback_threshold})"
            )

    r = config.repetition
    _check_min("repetition.base_threshold", r.base_threshold, 1)
    _check_min("repetition.length_factor", r.length_factor, 0)
    _check_min("repetition.dynamic_threshold_divisor", r.dynamic_threshold_divisor, 1)
    _check_min("repetition.sentence_repetition", r.sentence_repetition, 2)
    _check_min("repetition.minimum_sentence_length_for_similarity", r.minimum_sentence_length_for_similarity, 1)
    _check_min("repetition.consecutive_newline_limit", r.consecutive_newline_limit, 1)
    _check_min("repetition.max_passes", r.max_passes, 1)
    if not (0.0 < r.short_char_keep_ratio <= 1.0):
        raise ConfigError(f"repetition.short_char_keep_ratio must be within (0, 1], got {r.short_char_keep_ratio}")
    if not (0.0 < r.similarity_threshold <= 1.0):
        raise ConfigError(f"repetition.similarity_threshold must be within (0, 1], got {r.similarity_threshold}")

    ng = r.ngram
    _check_min("repetition.ngram.min_n", ng.min_n, 1)
    if ng.min_n > ng.max_n:
        raise ConfigError(f"repetition.ngram.min_n ({ng.min_n}) exceeds max_n ({ng.max_n})")
    seen = set()
    for n, repeat in ng.thresholds:
        if n < ng.min_n or n > ng.max_n:
            raise ConfigError(f"repetition.ngram.thresholds: n={n} outside [{ng.min_n}, {ng.max_n}]")
        if n in seen:
            raise ConfigError(f"repetition.ngram.thresholds: duplicate entry for n={n}")
        seen.add(n)
        _check_min(f"repetition.ngram.thresholds[{n}]", repeat, 2)

    _check_min("repetition.enumeration_detection.min_repeat_count", r.enumeration_detection.min_repeat_count, 2)
    _check_min("repetition.enumeration_detection.max_block_items", r.enumeration_detection.max_block_items, 2)
    _check_min("repetition.paragraph_repeat.head_chars", r.paragraph_repeat.head_chars, 1)

    tail = r.tail_repeat
    _check_min("repetition.tail_repeat.min_chars", tail.min_chars, 1)
    _check_min("repetition.tail_repeat.window_chars", tail.window_chars, tail.min_chars)
    _check_min("repetition.tail_repeat.max_density", tail.max_density, 1)
    _check_fraction("repetition.tail_repeat.min_diversity", tail.min_diversity)

    c = config.contamination
    g = c.xml_pattern_groups
    for name, values in (
        ("contamination.instruction_patterns", c.instruction_patterns),
        ("contamination.context_patterns", c.context_patterns),
        ("contamination.leading_block_labels", c.leading_block_labels),
        ("contamination.xml_pattern_groups.complete_xml_tags", g.complete_xml_tags),
        ("contamination.xml_pattern_groups.sentence_bounded_tags", g.sentence_bounded_tags),
        ("contamination.xml_pattern_groups.line_bounded_tags", g.line_bounded_tags),
        ("contamination.xml_pattern_groups.standalone_tags", g.standalone_tags),
        ("stages", config.stages),
    ):
        _check_items(name, values, str)
    _check_items("contamination.prompt_snippet_lengths", c.prompt_snippet_lengths, int)
    for k in c.prompt_snippet_lengths:
        _check_min("contamination.prompt_snippet_lengths", k, 1)
    _check_min("max_rounds", config.max_rounds, 1)

    # lazy: the registry imports the stages, which import this module
    from ..stages.registry import known_stages
    for name in config.stages:
        if name not in known_stages():
            raise ConfigError(f"unknown stage: {name}. Known: {', '.join(sorted(known_stages()))}")


class PatternCatalog:
    """Compiled, validated view of a CleaningConfig."""

    def __init__(self, config: CleaningConfig):
        validate_config(config)
        self.config = config
        self.safety = config.safety
        self.repetition = config.repetition

        c = config.contamination
        g = c.xml_pattern_groups
        self.complete_xml_tags = _compile_group("complete_xml_tags", g.complete_xml_tags)
        for rule in self.complete_xml_tags:
            if rule.regex.groups < 1:
                raise ConfigError(f"{rule.rule_id}: complete tag pattern needs a capture group for the inner text")
        self.sentence_bounded_tags = _compile_group("sentence_bounded_tags", g.sentence_bounded_tags)
        self.line_bounded_tags = _compile_group("line_bounded_tags", g.line_bounded_tags)
        self.standalone_tags = _compile_group("standalone_tags", g.standalone_tags)
        self.context_patterns = _compile_group("context", c.context_patterns)
        self.leading_block_labels = _compile_group("leading_label", c.leading_block_labels)

        self.instruction_phrases: Tuple[str, ...] = tuple(p for p in c.instruction_patterns if p.strip())
        self.instruction_patterns = tuple(
            Rule(f"instruction:{i}", re.compile(re.escape(p) + _TRAILING_PUNCT, re.IGNORECASE))
            for i, p in enumerate(self.instruction_phrases)
        )
        self.snippet_lengths: Tuple[int, ...] = tuple(sorted(set(c.prompt_snippet_lengths), reverse=True))

        self.ngram_thresholds: Dict[int, int] = self.repetition.ngram.as_dict()
        self.ngram_sizes: List[int] = sorted(self.ngram_thresholds)

    def __repr__(self) -> str:
        return (
            f"PatternCatalog(instructions={len(self.instruction_patterns)}, "
            f"context={len(self.context_patterns)}, ngram_sizes={self.ngram_sizes})"
        )


@lru_cache(maxsize=16)
def get_catalog(config: CleaningConfig) -> PatternCatalog:
    """Build (once per config value) the catalog for `config`."""
    return PatternCatalog(config)
