import random

import pytest

from transcript_sanitizer import CleaningRequest, SanitizationPipeline, sanitize
from transcript_sanitizer.config import DEFAULT_CONFIG, config_from_dict
from transcript_sanitizer.correction import CorrectionEntry, DictionaryCorrector
from transcript_sanitizer.pipeline.context import ROLLBACK, STAGE_ERROR, WARNING
from transcript_sanitizer.stages import repetition
from transcript_sanitizer.stages.repetition import RepetitionStage

from conftest import (
    INSTRUCTION,
    LOOPED_SENTENCE,
    ENVELOPED,
    LEAKED_PROMPT,
    NGRAM_LOOP,
    NGRAM_UNDER_THRESHOLD,
    SENTENCE_LOOP,
    UNIQUE_PREAMBLE,
)

SAMPLES = [
    ENVELOPED,
    LEAKED_PROMPT,
    NGRAM_LOOP,
    NGRAM_UNDER_THRESHOLD,
    "以下の音声内容のみを文字に起こしてください\n明日の会議は十時からです。資料は共有フォルダにあります。",
    "Just a normal sentence about the weather, nothing to clean here.",
    "  leading and trailing whitespace  \n\n",
    "",
]


def test_envelope_is_unwrapped():
    outcome = sanitize(ENVELOPED)
    assert outcome.final_text == "Hello world"
    assert not outcome.rolled_back
    # the envelope is part of the input: removing it counts
    assert outcome.cumulative_reduction == pytest.approx(1 - len("Hello world") / len(ENVELOPED))
    assert outcome.warnings


@pytest.mark.parametrize("speech", [
    "Finance asked for revised travel estimates before the end of next month. " * 4,
    UNIQUE_PREAMBLE,
])
def test_envelope_holding_a_sliver_of_the_speech_rolls_back(speech):
    text = speech + "<TRANSCRIPT>Okay thanks everyone</TRANSCRIPT>"
    outcome = sanitize(text)
    assert outcome.rolled_back
    assert outcome.final_text == text
    assert outcome.cumulative_reduction > DEFAULT_CONFIG.safety.emergency_fallback_threshold


def test_leaked_instruction_and_repeated_sentence():
    outcome = sanitize(LEAKED_PROMPT, "en")
    assert outcome.final_text == "the cat sat."
    assert not outcome.rolled_back
    assert [r.stage for r in outcome.stage_results] == ["contamination", "repetition"]
    assert "prompt_block" in outcome.stage_results[0].matched_rule_ids
    assert "sentence" in outcome.stage_results[1].matched_rule_ids
    assert outcome.warnings and outcome.warnings[0].kind == WARNING


def test_ngram_loop_at_threshold():
    assert sanitize(NGRAM_LOOP).final_text == "We agreed that I went home before dinner."


def test_ngram_below_threshold_kept():
    outcome = sanitize(NGRAM_UNDER_THRESHOLD)
    assert outcome.final_text == NGRAM_UNDER_THRESHOLD
    assert outcome.cumulative_reduction == 0.0


def test_sentence_loop_rolls_back(strict_config):
    naive = UNIQUE_PREAMBLE + LOOPED_SENTENCE
    assert 1 - len(naive) / len(SENTENCE_LOOP) > 0.5

    outcome = sanitize("\n  " + SENTENCE_LOOP + "  \n", "en", strict_config)
    assert outcome.rolled_back
    assert outcome.final_text == SENTENCE_LOOP
    assert outcome.cumulative_reduction > 0.5
    assert any(d.kind == ROLLBACK for d in outcome.diagnostics)


def test_loop_is_collapsed_under_default_limits():
    outcome = sanitize(SENTENCE_LOOP)
    assert not outcome.rolled_back
    assert outcome.final_text == UNIQUE_PREAMBLE + LOOPED_SENTENCE


def test_leaked_prompt_dominating_the_text_rolls_back():
    text = INSTRUCTION + ". Hi"
    outcome = sanitize(text)
    assert outcome.rolled_back
    assert outcome.final_text == text


@pytest.mark.parametrize("text", SAMPLES)
def test_idempotent(text):
    once = sanitize(text).final_text
    assert sanitize(once).final_text == once


@pytest.mark.parametrize("text", SAMPLES + [SENTENCE_LOOP])
def test_never_grows(text):
    assert len(sanitize(text).final_text) <= len(text)


@pytest.mark.parametrize("text", SAMPLES + [SENTENCE_LOOP])
def test_stage_cap_respected(text):
    outcome = sanitize(text)
    for r in outcome.stage_results:
        assert r.reduction_ratio <= DEFAULT_CONFIG.safety.single_cleaner_max_reduction


def test_deterministic():
    a = sanitize(LEAKED_PROMPT).summary()
    b = sanitize(LEAKED_PROMPT).summary()
    assert a == b


def test_empty_input():
    outcome = sanitize("   \n ")
    assert outcome.final_text == ""
    assert not outcome.rolled_back
    assert outcome.cumulative_reduction == 0.0


def test_failing_rule_is_skipped(monkeypatch):
    def boom(text, catalog):
        raise RuntimeError("catastrophic backtracking")

    monkeypatch.setattr(repetition, "collapse_ngrams", boom)
    outcome = sanitize(NGRAM_LOOP)
    assert outcome.final_text == NGRAM_LOOP
    errors = [d for d in outcome.diagnostics if d.kind == STAGE_ERROR]
    assert errors and errors[0].stage == "repetition" and errors[0].rule_id == "ngram"
    assert "catastrophic backtracking" in errors[0].detail


def test_failing_stage_keeps_its_input(monkeypatch):
    def boom(self, text, catalog):
        raise ValueError("bad stage")

    monkeypatch.setattr(RepetitionStage, "apply", boom)
    outcome = sanitize(ENVELOPED)
    assert outcome.final_text == "Hello world"
    assert [r.stage for r in outcome.stage_results] == ["contamination"]
    assert any(d.kind == STAGE_ERROR and d.stage == "repetition" for d in outcome.diagnostics)


def test_stage_order_follows_config():
    config = config_from_dict({"stages": ["repetition"]})
    outcome = SanitizationPipeline(config).sanitize(CleaningRequest(ENVELOPED))
    assert [r.stage for r in outcome.stage_results] == ["repetition"]
    assert outcome.final_text == ENVELOPED


def test_corrector_runs_after_cleaning():
    corrector = DictionaryCorrector([CorrectionEntry(("pie torch",), "PyTorch")])
    pipeline = SanitizationPipeline(corrector=corrector)
    outcome = pipeline.sanitize(CleaningRequest("<TRANSCRIPT>we train everything with pie torch now</TRANSCRIPT>", "en-US"))
    assert outcome.final_text == "we train everything with PyTorch now"
    assert outcome.corrected
    assert outcome.language == "en"


def test_summary_shape():
    summary = sanitize(LEAKED_PROMPT).summary()
    assert summary["rolled_back"] is False
    assert [s["stage"] for s in summary["stages"]] == ["contamination", "repetition"]
    assert {"stage", "kind", "rule_id", "detail"} <= set(summary["diagnostics"][0])


FOLLOW_UP = "The vendor confirmed the replacement parts ship on Friday morning."
# an instruction cut off mid-word, stranded between two copies of a paragraph
STRANDED_SNIPPET = FOLLOW_UP + "\n\n" + INSTRUCTION[:30] + "\n\n" + FOLLOW_UP


def test_rounds_reach_what_one_pass_exposes():
    # dropping the repeated paragraph leaves the snippet at the end of the text
    outcome = sanitize(STRANDED_SNIPPET)
    assert outcome.final_text == FOLLOW_UP
    assert not outcome.rolled_back
    contamination, rep = outcome.stage_results
    assert "snippet" in contamination.matched_rule_ids
    assert "paragraph" in rep.matched_rule_ids
    assert sanitize(outcome.final_text).final_text == FOLLOW_UP


def test_single_round_stops_early():
    config = config_from_dict({"max_rounds": 1})
    outcome = sanitize(STRANDED_SNIPPET, config=config)
    assert outcome.final_text == FOLLOW_UP + "\n\n" + INSTRUCTION[:30]


def test_long_char_run_is_collapsed_once():
    text = (
        "N" + "o" * 22 + " way did the vendor ship the replacement parts on Friday morning. "
        "The team had already rebuilt the staging cluster and the dashboards were finally "
        "green after a long week of outages and late nights for everyone involved."
    )
    once = sanitize(text).final_text
    assert once.startswith("N" + "o" * 6 + " way")
    assert sanitize(once).final_text == once


FRAGMENTS = [
    INSTRUCTION,
    INSTRUCTION[:30],
    "<TRANSCRIPT>",
    "</TRANSCRIPT>",
    "Output format:",
    "(speaker content only)",
    "ha ha ha ha ha ha ha",
    "N" + "o" * 15,
    "!!!!!!!!!!",
    "the cat sat.",
    "red, blue, red, blue, red, blue.",
    "We shipped the release on Tuesday.",
    "The dashboards look healthy again.",
    "I went home I went home I went home I went home",
    "明日の会議は十時からです。",
    "- update the runbook",
    LOOPED_SENTENCE,
    "\ufffd",
    "\n\n",
    "\n",
]


def _generated(seed):
    rng = random.Random(seed)
    pieces = [rng.choice(FRAGMENTS) for _ in range(rng.randint(1, 14))]
    return "".join(p + rng.choice([" ", " ", "\n", ""]) for p in pieces)


@pytest.mark.parametrize("seed", range(150))
def test_idempotent_on_generated_text(seed):
    text = _generated(seed)
    once = sanitize(text).final_text
    assert len(once) <= len(text)
    assert sanitize(once).final_text == once
