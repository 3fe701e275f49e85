from dataclasses import replace

import pytest

from transcript_sanitizer.config import DEFAULT_CONFIG, config_from_dict
from transcript_sanitizer.errors import ConfigError
from transcript_sanitizer.patterns import PatternCatalog, get_catalog


def test_catalog_is_built_once_per_config():
    assert get_catalog(DEFAULT_CONFIG) is get_catalog(DEFAULT_CONFIG)


def test_default_catalog_contents(catalog):
    assert catalog.ngram_sizes == [3, 4, 5, 6, 7, 8]
    assert catalog.ngram_thresholds[3] == 4
    assert catalog.snippet_lengths == (50, 40, 30, 20)
    assert len(catalog.instruction_patterns) == len(DEFAULT_CONFIG.contamination.instruction_patterns)
    assert all(r.rule_id.startswith("instruction:") for r in catalog.instruction_patterns)


def test_instruction_phrases_match_case_insensitively(catalog):
    rule = catalog.instruction_patterns[0]
    assert rule.regex.search("PLEASE TRANSCRIBE ONLY THE FOLLOWING AUDIO CONTENT.")


@pytest.mark.parametrize("data, message", [
    ({"safety": {"warning_threshold": 0.95}}, "warning_threshold"),
    ({"safety": {"emergency_fallback_threshold": 1.5}}, "within"),
    ({"safety": {"emergency_fallback_threshold": 0.5, "warning_threshold": 0.1}}, "exceeds emergency"),
    ({"repetition": {"ngram": {"thresholds": {2: 4}}}}, "outside"),
    ({"repetition": {"ngram": {"min_n": 5, "max_n": 4, "thresholds": {}}}}, "min_n"),
    ({"repetition": {"ngram": {"thresholds": {3: 1}}}}, "thresholds"),
    ({"repetition": {"similarity_threshold": 0.0}}, "similarity_threshold"),
    ({"contamination": {"context_patterns": ["(unclosed"]}}, "invalid regex"),
    ({"contamination": {"xml_pattern_groups": {"complete_xml_tags": ["<T>.*</T>"]}}}, "capture group"),
    ({"stages": ["contamination", "spellcheck"]}, "unknown stage"),
])
def test_invalid_configs_fail_at_construction(data, message):
    with pytest.raises(ConfigError, match=message):
        PatternCatalog(config_from_dict(data))


@pytest.mark.parametrize("changes, message", [
    ({"stages": ("contamination", 3)}, r"stages\[1\]"),
    ({"max_rounds": 0}, "max_rounds"),
])
def test_dataclass_built_configs_are_checked_too(changes, message):
    with pytest.raises(ConfigError, match=message):
        PatternCatalog(replace(DEFAULT_CONFIG, **changes))
