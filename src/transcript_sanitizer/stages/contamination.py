"""Prompt contamination stage.

Removes text the transcription model should never have emitted:
- transcript envelopes and stray XML-like tags
- leaked instruction phrases (whole, or truncated at either end of the text)
- speaker-only annotations and dangling "Output format:" style labels

Markup is stripped first, under its own looser structural cap. The content
caps that follow are measured against the unwrapped text, but the stage
reports its reduction against the text it was given: an envelope that
swallows most of the transcript still counts toward rollback.
"""

from __future__ import annotations
from functools import partial
from typing import Optional, Pattern, Tuple
import logging
import re

from ..patterns.catalog import PatternCatalog
from ..pipeline.context import Diagnostic, StageResult, STAGE_SKIPPED
from ..pipeline.governor import SafetyGovernor, reduction_ratio
from ..utils.text import normalize_whitespace
from .base import CapCheck, RuleRunner, Stage

log = logging.getLogger("transcript_sanitizer.stages.contamination")

_SNIPPET_TRAILER_RE = re.compile(r"^[。.．：:]")


def _sub(regex: Pattern[str], text: str) -> str:
    return regex.sub("", text)


def extract_envelope(text: str, catalog: PatternCatalog) -> str:
    """Return the inner text of the first complete transcript envelope.

    Without a complete pair, an opening tag whose close was cut off keeps
    everything after it.
    """
    best: Optional[re.Match] = None
    for rule in catalog.complete_xml_tags:
        m = rule.regex.search(text)
        if m and (best is None or m.start() < best.start()):
            best = m
    if best is not None:
        return best.group(1).strip()

    opening: Optional[re.Match] = None
    for rule in catalog.sentence_bounded_tags:
        for m in rule.regex.finditer(text):
            if m.group(0).startswith("</"):
                continue
            if opening is None or m.start() < opening.start():
                opening = m
            break
    if opening is not None:
        return text[opening.end():].strip()
    return text


def strip_markup(text: str, catalog: PatternCatalog) -> str:
    text = extract_envelope(text, catalog)
    for group in (catalog.sentence_bounded_tags, catalog.line_bounded_tags, catalog.standalone_tags):
        for rule in group:
            text = rule.regex.sub("", text)
    return text


def _strip_leading_phrases(line: str, catalog: PatternCatalog) -> str:
    changed = True
    while changed:
        changed = False
        for rule in catalog.instruction_patterns:
            m = rule.regex.match(line)
            if m:
                line = line[m.end():].lstrip()
                changed = True
    return line


def strip_leading_prompt_block(text: str, catalog: PatternCatalog) -> str:
    """Drop the block of instruction/label lines a leaked prompt leaves at the top."""
    lines = text.split("\n")
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or any(rule.regex.match(stripped) for rule in catalog.leading_block_labels):
            continue
        rest = _strip_leading_phrases(stripped, catalog)
        if not rest:
            continue
        if rest == stripped:
            return "\n".join(lines[i:]) if i else text
        # instruction followed by speech on the same line: keep the speech
        return "\n".join([rest] + lines[i + 1:])
    return ""


def _is_word_char(c: str) -> bool:
    return c.isascii() and c.isalnum()


def _strip_snippet_prefix(text: str, phrase: str, k: int) -> str:
    body = text.lstrip()
    low = body.lower()
    p = phrase.lower()
    if len(low) != len(body) or low[:k] != p[:k]:
        return text
    n = k
    while n < len(low) and n < len(p) and low[n] == p[n]:
        n += 1
    if n < len(p) and n < len(body) and _is_word_char(body[n - 1]) and _is_word_char(body[n]):
        # mismatch inside a word: back off to the last word boundary
        n = body.rfind(" ", 0, n)
        if n < k:
            return text
    rest = _SNIPPET_TRAILER_RE.sub("", body[n:])
    return rest.lstrip(" \t")


def _strip_snippet_suffix(text: str, phrase: str, k: int) -> str:
    body = text.rstrip()
    low = body.lower()
    p = phrase.lower()
    if len(low) != len(body):
        return text
    idx = low.rfind(p[:k])
    if idx < 0 or not p.startswith(low[idx:]):
        return text
    if idx > 0 and _is_word_char(body[idx - 1]) and _is_word_char(body[idx]):
        return text
    return body[:idx].rstrip()


def strip_instruction_snippets(text: str, catalog: PatternCatalog) -> str:
    """Remove an instruction phrase truncated at the start or end of the text."""
    for k in catalog.snippet_lengths:
        for phrase in catalog.instruction_phrases:
            if len(phrase) < k:
                continue
            text = _strip_snippet_prefix(text, phrase, k)
            text = _strip_snippet_suffix(text, phrase, k)
    return text


class ContaminationStage(Stage):
    name = "contamination"

    def apply(self, text: str, catalog: PatternCatalog) -> StageResult:
        gov = SafetyGovernor(catalog.safety)
        runner = RuleRunner(self.name)
        unwrapped, cleaned = self._clean(text, catalog, runner, gov)
        naive = cleaned
        if runner.capped:
            _, naive = self._clean(text, catalog, RuleRunner(self.name), None)

        # the content phase answers to the stage cap; markup only to its own
        if gov.exceeds_stage_cap(unwrapped, cleaned):
            ratio = reduction_ratio(unwrapped, cleaned)
            log.warning(f"contamination stage would remove {ratio:.3f} of the text; skipped")
            runner.diagnostics.append(Diagnostic(
                self.name, STAGE_SKIPPED, "", f"reduction {ratio:.3f} over stage cap",
            ))
            return StageResult(
                stage=self.name,
                text=text,
                reduction_ratio=0.0,
                skipped=True,
                attempted_length=len(naive),
                diagnostics=runner.diagnostics,
            )

        return StageResult(
            stage=self.name,
            text=cleaned,
            reduction_ratio=reduction_ratio(text, cleaned),
            matched_rule_ids=list(runner.matched),
            attempted_length=len(naive),
            diagnostics=runner.diagnostics,
        )

    def _clean(
        self, text: str, catalog: PatternCatalog, runner: RuleRunner, gov: Optional[SafetyGovernor]
    ) -> Tuple[str, str]:
        """Return (unwrapped, cleaned); without a governor nothing is capped."""
        structural: Optional[CapCheck] = gov.exceeds_structural_cap if gov is not None else None
        cap: Optional[CapCheck] = gov.exceeds_pattern_cap if gov is not None else None
        unwrapped = runner.run("markup", partial(strip_markup, catalog=catalog), text, structural)

        text = runner.run("prompt_block", partial(strip_leading_prompt_block, catalog=catalog), unwrapped, cap)
        for rule in catalog.instruction_patterns:
            text = runner.run(rule.rule_id, partial(_sub, rule.regex), text, cap)
        text = runner.run("snippet", partial(strip_instruction_snippets, catalog=catalog), text, cap)
        for rule in catalog.context_patterns:
            text = runner.run(rule.rule_id, partial(_sub, rule.regex), text, cap)
        limit = catalog.repetition.consecutive_newline_limit
        return unwrapped, runner.run("newline_limit", partial(normalize_whitespace, newline_limit=limit), text, cap)
