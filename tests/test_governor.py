import pytest

from transcript_sanitizer.config import SafetyThresholds
from transcript_sanitizer.pipeline.governor import PROCEED, ROLLBACK, WARN, SafetyGovernor, reduction_ratio


def test_reduction_ratio_counts_code_points():
    assert reduction_ratio("abcd", "ab") == 0.5
    assert reduction_ratio("日本語です", "日本") == pytest.approx(0.6)
    assert reduction_ratio(10, 4) == pytest.approx(0.6)


def test_empty_input_never_reduces():
    assert reduction_ratio("", "") == 0.0


def test_growth_is_a_negative_reduction():
    assert reduction_ratio("ab", "abcd") == -1.0


def test_check_proceeds_on_small_changes():
    gov = SafetyGovernor(SafetyThresholds())
    verdict = gov.check("contamination", 100, 95, 95)
    assert verdict.action == PROCEED
    assert verdict.cumulative == pytest.approx(0.05)


def test_check_warns_above_warning_threshold():
    gov = SafetyGovernor(SafetyThresholds())
    verdict = gov.check("repetition", 100, 60, 60)
    assert verdict.action == WARN
    assert "warning threshold" in verdict.reason


def test_check_rolls_back_on_uncapped_candidate():
    gov = SafetyGovernor(SafetyThresholds(emergency_fallback_threshold=0.9))
    # the stage applied nothing, but would have removed 95%
    verdict = gov.check("repetition", 100, 100, 5)
    assert verdict.action == ROLLBACK
    assert verdict.cumulative == 0.0
    assert verdict.attempted_cumulative == pytest.approx(0.95)


def test_cap_helpers():
    gov = SafetyGovernor(SafetyThresholds())
    assert gov.exceeds_pattern_cap(100, 30)
    assert not gov.exceeds_pattern_cap(100, 40)
    assert gov.exceeds_repetition_cap(100, 29)
    assert not gov.exceeds_stage_cap(100, 25)
    assert gov.exceeds_pass_limit(100, 24)
    assert not gov.exceeds_structural_cap(100, 5)
