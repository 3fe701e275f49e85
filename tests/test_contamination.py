import pytest

from transcript_sanitizer.config import config_from_dict
from transcript_sanitizer.patterns import get_catalog
from transcript_sanitizer.pipeline.context import PATTERN_CAPPED, STAGE_SKIPPED
from transcript_sanitizer.stages.contamination import (
    ContaminationStage,
    extract_envelope,
    strip_instruction_snippets,
    strip_leading_prompt_block,
)

from conftest import INSTRUCTION, ENVELOPED


def test_envelope_inner_text(catalog):
    text = "noise <TRANSCRIPT>The real words.</TRANSCRIPT> trailing noise"
    assert extract_envelope(text, catalog) == "The real words."


def test_truncated_envelope_keeps_text_after_opening_tag(catalog):
    assert extract_envelope("prefix <TRANSCRIPT>Hello there", catalog) == "Hello there"


def test_text_without_markup_is_untouched(catalog):
    assert extract_envelope("Just speech.", catalog) == "Just speech."


def test_markup_counts_toward_stage_reduction(catalog):
    result = ContaminationStage().apply(ENVELOPED, catalog)
    assert result.text == "Hello world"
    assert result.reduction_ratio == pytest.approx(1 - len("Hello world") / len(ENVELOPED))
    assert not result.skipped
    assert "markup" in result.matched_rule_ids


def test_markup_has_its_own_structural_cap():
    # 0.3 stage and pattern caps, but the 0.95 structural cap still lets the envelope go
    config = config_from_dict({"safety": {"single_cleaner_max_reduction": 0.3, "single_pattern_max_reduction": 0.3}})
    result = ContaminationStage().apply(ENVELOPED, get_catalog(config))
    assert result.text == "Hello world"
    assert not result.skipped


def test_envelope_over_structural_cap_is_left_in_place(catalog):
    text = "x" * 30 + " <TRANSCRIPT>ok</TRANSCRIPT> " + "y" * 30
    result = ContaminationStage().apply(text, catalog)
    assert result.text == text
    assert any(d.kind == PATTERN_CAPPED and d.rule_id == "markup" for d in result.diagnostics)
    assert result.attempted_length == len("ok")


def test_stray_tags_are_stripped(catalog):
    result = ContaminationStage().apply("Budget approved.<br/> Next item is hiring.", catalog)
    assert result.text == "Budget approved. Next item is hiring."


def test_leading_prompt_block(catalog):
    text = "Output format:\n" + INSTRUCTION + "\nWe start with the quarterly numbers today."
    assert strip_leading_prompt_block(text, catalog) == "We start with the quarterly numbers today."


def test_prompt_block_keeps_speech_on_the_instruction_line(catalog):
    text = INSTRUCTION + ". Good morning, everyone, and welcome to the weekly sync."
    assert strip_leading_prompt_block(text, catalog) == "Good morning, everyone, and welcome to the weekly sync."


def test_instruction_phrase_inside_text(catalog):
    text = (
        "Thanks for joining the planning call this morning. "
        + INSTRUCTION
        + ". Today we cover the roadmap, the hiring plan and the office move in that order."
    )
    result = ContaminationStage().apply(text, catalog)
    assert INSTRUCTION.lower() not in result.text.lower()
    assert result.text.startswith("Thanks for joining the planning call this morning.")
    assert "instruction:0" in result.matched_rule_ids


def test_truncated_instruction_at_start(catalog):
    text = "Please transcribe only the follo we start with the budget review and then move to hiring."
    assert strip_instruction_snippets(text, catalog) == "we start with the budget review and then move to hiring."


def test_truncated_instruction_at_end(catalog):
    text = "We will meet again on Monday. Please transcribe only the fol"
    assert strip_instruction_snippets(text, catalog) == "We will meet again on Monday."


def test_snippets_shorter_than_every_length_are_kept(catalog):
    text = "Please transcribe the minutes for the board."
    assert strip_instruction_snippets(text, catalog) == text


def test_speaker_only_annotation_and_trailing_label(catalog):
    result = ContaminationStage().apply("(speaker content only)\nThe numbers are final.\nOutput format:", catalog)
    assert result.text == "The numbers are final."


def test_japanese_instruction_line(catalog):
    text = "以下の音声内容のみを文字に起こしてください\n明日の会議は十時からです。資料は共有フォルダにあります。"
    result = ContaminationStage().apply(text, catalog)
    assert result.text == "明日の会議は十時からです。資料は共有フォルダにあります。"


def test_over_cap_pattern_is_left_in_place(catalog):
    text = INSTRUCTION + ". Hi"
    result = ContaminationStage().apply(text, catalog)
    assert result.text == text
    assert not result.skipped
    assert any(d.kind == PATTERN_CAPPED for d in result.diagnostics)
    # the uncapped candidate is still reported for the governor
    assert result.attempted_length == len("Hi")


def test_stage_cap_reverts_and_marks_skipped():
    config = config_from_dict({"safety": {"single_cleaner_max_reduction": 0.3}})
    text = "Output format:\nThe numbers are final."
    result = ContaminationStage().apply(text, get_catalog(config))
    assert result.skipped
    assert result.text == text
    assert result.reduction_ratio == 0.0
    assert any(d.kind == STAGE_SKIPPED for d in result.diagnostics)
