"""Repetition stage.

Collapses the loops speech models fall into:
- runs of one character or one very short token ("!!!!!!!!", "ha ha ha ha ha")
- consecutive repeats of the same word n-gram
- near-duplicate sentences repeated across the transcript
- paragraphs that restart with the same opening
- enumerations that cycle through the same items
- a tail that degenerates into a loop at the end of the transcript

Stray U+FFFD replacement characters are dropped as well.

Short n-grams need more repeats than long ones to count: three-word phrases
legitimately recur, an eight-word phrase twice in a row almost never does.

The stage runs in passes until a pass changes nothing. Every sub-step, every
pass and the stage as a whole have their own reduction caps.
"""

from __future__ import annotations
from difflib import SequenceMatcher
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import re

from ..patterns.catalog import PatternCatalog
from ..pipeline.context import Diagnostic, StageResult, PASS_LIMITED, STAGE_SKIPPED
from ..pipeline.governor import SafetyGovernor, reduction_ratio
from ..utils.text import (
    fingerprint,
    normalize_token,
    normalize_unicode_nfkc,
    normalize_whitespace,
    split_sentences,
    words,
)
from .base import CapCheck, RuleRunner, Stage

log = logging.getLogger("transcript_sanitizer.stages.repetition")

_CHAR_RUN_RE = re.compile(r"([^\s\d])\1+")
_SHORT_TOKEN_RUN_RE = re.compile(r"(?<!\S)(\S{1,2})(?:[ \t]+\1(?!\S)){2,}", re.IGNORECASE)
_PARAGRAPH_SPLIT_RE = re.compile(r"(\n[ \t]*\n\s*)")
_LIST_ITEM_RE = re.compile(r"^[ \t]*(?:[-*•・]|\d+[.)]|[A-Za-z][.)])[ \t]+(\S.*?)[ \t]*$")
_ENUM_SEP_RE = re.compile(r"(\s*[,;、，；·\t]\s*)")
_SENTENCE_END_RE = re.compile(r"([.!?。！？]*\s*)$")
_SENTENCE_END_CHARS = ".!?。！？"
_LEXICAL_TOKEN_RE = re.compile(r"[^\W\d_]+|\d+")
_LOOP_RE = re.compile(r"(.{2,20})\1{2,}", re.DOTALL)


def dynamic_threshold(length: int, catalog: PatternCatalog) -> int:
    r = catalog.repetition
    return r.base_threshold + (length // r.dynamic_threshold_divisor) * r.length_factor


def _keep_count(run: int, threshold: int, catalog: PatternCatalog) -> int:
    # a kept run longer than the threshold would itself count as a repetition
    return min(threshold, max(1, int(run * catalog.repetition.short_char_keep_ratio)))


def collapse_char_runs(text: str, catalog: PatternCatalog, threshold: Optional[int] = None) -> str:
    if threshold is None:
        threshold = dynamic_threshold(len(text), catalog)

    def repl(m: re.Match) -> str:
        run = len(m.group(0))
        if run <= threshold:
            return m.group(0)
        return m.group(1) * _keep_count(run, threshold, catalog)

    return _CHAR_RUN_RE.sub(repl, text)


def collapse_short_token_runs(text: str, catalog: PatternCatalog, threshold: Optional[int] = None) -> str:
    if threshold is None:
        threshold = dynamic_threshold(len(text), catalog)

    def repl(m: re.Match) -> str:
        tokens = m.group(0).split()
        if len(tokens) <= threshold:
            return m.group(0)
        return " ".join(tokens[:_keep_count(len(tokens), threshold, catalog)])

    return _SHORT_TOKEN_RUN_RE.sub(repl, text)


def _delete_spans(text: str, spans: Sequence[Tuple[int, int]]) -> str:
    if not spans:
        return text
    out = []
    pos = 0
    for start, end in spans:
        out.append(text[pos:start])
        pos = end
    out.append(text[pos:])
    return "".join(out)


def collapse_ngrams(text: str, catalog: PatternCatalog) -> str:
    tokens = words(text)
    keys = [normalize_token(m.group(0)) for m in tokens]
    spans: List[Tuple[int, int]] = []
    i = 0
    while i < len(keys):
        for n in catalog.ngram_sizes:
            need = catalog.ngram_thresholds[n]
            if i + n * need > len(keys):
                continue
            gram = keys[i:i + n]
            if not any(gram):
                continue
            repeats = 1
            while keys[i + repeats * n:i + (repeats + 1) * n] == gram:
                repeats += 1
            if repeats >= need:
                # keep the first occurrence, drop through the end of the last
                spans.append((tokens[i + n - 1].end(), tokens[i + repeats * n - 1].end()))
                i += repeats * n
                break
        else:
            i += 1
    return _delete_spans(text, spans)


def _sentence_key(sentence: str) -> List[str]:
    tokens = [t for t in (normalize_token(w) for w in sentence.split()) if t]
    if len(tokens) < 3:
        # scripts written without spaces compare character by character
        return list("".join(tokens))
    return tokens


def sentence_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    if not a and not b:
        return 1.0
    return SequenceMatcher(None, a, b, autojunk=False).ratio()


def _similar(a: Sequence[str], b: Sequence[str], threshold: float) -> bool:
    sm = SequenceMatcher(None, a, b, autojunk=False)
    return sm.real_quick_ratio() >= threshold and sm.quick_ratio() >= threshold and sm.ratio() >= threshold


def dedupe_sentences(text: str, catalog: PatternCatalog) -> str:
    r = catalog.repetition
    pieces = split_sentences(text)
    clusters: List[Tuple[List[str], List[int]]] = []
    for idx, piece in enumerate(pieces):
        if len(piece.strip()) < r.minimum_sentence_length_for_similarity:
            continue
        key = _sentence_key(piece)
        for rep, members in clusters:
            if _similar(rep, key, r.similarity_threshold):
                members.append(idx)
                break
        else:
            clusters.append((key, [idx]))

    drop = set()
    for _, members in clusters:
        if len(members) >= r.sentence_repetition:
            drop.update(members[1:])
    if not drop:
        return text

    out = ""
    for idx, piece in enumerate(pieces):
        if idx not in drop:
            out += piece
            continue
        tail = piece[len(piece.rstrip()):]
        if "\n" in tail and not out.endswith("\n"):
            # keep the line break the dropped sentence ended on
            out = out.rstrip(" \t") + "\n" * tail.count("\n")
    return out


def dedupe_paragraphs(text: str, catalog: PatternCatalog) -> str:
    r = catalog.repetition
    parts = _PARAGRAPH_SPLIT_RE.split(text)
    if len(parts) < 3:
        return text
    seen = set()
    out = [parts[0]]
    head = parts[0].strip()
    if len(head) >= r.minimum_sentence_length_for_similarity:
        seen.add(fingerprint(head[:r.paragraph_repeat.head_chars]))
    for j in range(2, len(parts), 2):
        sep, para = parts[j - 1], parts[j]
        head = para.strip()
        if len(head) >= r.minimum_sentence_length_for_similarity:
            fp = fingerprint(head[:r.paragraph_repeat.head_chars])
            if fp in seen:
                continue
            seen.add(fp)
        out.append(sep)
        out.append(para)
    return "".join(out)


def _collapse_list_lines(text: str, min_repeat: int) -> str:
    lines = text.split("\n")
    out = []
    i = 0
    while i < len(lines):
        m = _LIST_ITEM_RE.match(lines[i])
        if m:
            body = normalize_token(m.group(1))
            j = i + 1
            while j < len(lines):
                mj = _LIST_ITEM_RE.match(lines[j])
                if not mj or normalize_token(mj.group(1)) != body:
                    break
                j += 1
            if j - i >= min_repeat:
                out.append(lines[i])
                i = j
                continue
        out.append(lines[i])
        i += 1
    return "\n".join(out)


def _find_cycle(keys: Sequence[str], min_repeat: int, max_size: int) -> Optional[Tuple[int, int, int]]:
    """First (start, size, repeats) whose block of `size` items repeats back to back.

    run[i] counts how many items from i on match the item `size` positions
    later, so a block at `start` repeats 1 + run[start] // size times. Work
    is linear in the number of items for a fixed `max_size`.
    """
    n = len(keys)
    empties = [0]
    for k in keys:
        empties.append(empties[-1] + (not k))
    runs: List[Tuple[int, List[int]]] = []
    for size in range(2, min(max_size, n // min_repeat) + 1):
        run = [0] * (n + 1)
        for i in range(n - size - 1, -1, -1):
            if keys[i] == keys[i + size]:
                run[i] = run[i + 1] + 1
        runs.append((size, run))
    for start in range(n):
        for size, run in runs:
            if start + size * min_repeat > n:
                break
            if empties[start + size] - empties[start]:
                continue
            repeats = 1 + run[start] // size
            if repeats >= min_repeat:
                return start, size, repeats
    return None


def _collapse_inline(sentence: str, min_repeat: int, max_size: int) -> str:
    end = _SENTENCE_END_RE.search(sentence)
    body, ending = sentence[:end.start()], end.group(0)
    parts = _ENUM_SEP_RE.split(body)
    items = parts[0::2]
    if len(items) < min_repeat * 2:
        return sentence
    found = _find_cycle([normalize_token(x) for x in items], min_repeat, max_size)
    if found is None:
        return sentence
    start, size, repeats = found
    kept = "".join(parts[:2 * (start + size) - 1])
    resume = start + repeats * size
    rest = "".join(parts[2 * resume - 1:]) if resume < len(items) else ""
    return kept + rest + ending


def collapse_enumerations(text: str, catalog: PatternCatalog) -> str:
    e = catalog.repetition.enumeration_detection
    text = _collapse_list_lines(text, e.min_repeat_count)
    return "".join(_collapse_inline(s, e.min_repeat_count, e.max_block_items) for s in split_sentences(text))


def lexical_diversity(text: str) -> float:
    """Share of distinct words among the words of two or more characters."""
    tokens = [t for t in (normalize_unicode_nfkc(m.group(0)).casefold() for m in _LEXICAL_TOKEN_RE.finditer(text)) if len(t) >= 2]
    if not tokens:
        return 1.0
    return len(set(tokens)) / len(tokens)


def repetition_density(text: str) -> int:
    """Number of short chunks (2-20 chars) repeated three or more times in a row."""
    return sum(1 for _ in _LOOP_RE.finditer(text))


def suppress_tail_repetition(text: str, catalog: PatternCatalog) -> str:
    """Cut a degenerate tail back to the last sentence end before it.

    Speech models that lose track of the audio tend to loop at the very end;
    the tail is judged by its word diversity and its density of short loops.
    """
    t = catalog.repetition.tail_repeat
    window = min(t.window_chars, len(text))
    if window < t.min_chars:
        return text
    tail = text[len(text) - window:]
    if lexical_diversity(tail) >= t.min_diversity and repetition_density(tail) < t.max_density:
        return text
    head = text[:len(text) - window]
    cut = max(head.rfind(c) for c in _SENTENCE_END_CHARS)
    if cut <= 0:
        return text
    return head[:cut + 1]


def strip_replacement_chars(text: str, catalog: PatternCatalog) -> str:
    return text.replace("\ufffd", "")


class RepetitionStage(Stage):
    name = "repetition"

    def _steps(self, catalog: PatternCatalog, threshold: int) -> List[Tuple[str, Callable[..., str]]]:
        # run thresholds come from the stage input so later passes never re-cut a kept run
        steps = [
            ("char_run", partial(collapse_char_runs, threshold=threshold)),
            ("short_token_run", partial(collapse_short_token_runs, threshold=threshold)),
            ("ngram", collapse_ngrams),
            ("sentence", dedupe_sentences),
        ]
        r = catalog.repetition
        if r.paragraph_repeat.enabled:
            steps.append(("paragraph", dedupe_paragraphs))
        if r.enumeration_detection.enabled:
            steps.append(("enumeration", collapse_enumerations))
        if r.tail_repeat.enabled:
            steps.append(("tail", suppress_tail_repetition))
        steps.append(("replacement_char", strip_replacement_chars))
        return steps

    def _passes(self, text: str, catalog: PatternCatalog, runner: RuleRunner, gov: Optional[SafetyGovernor]) -> str:
        cap: Optional[CapCheck] = gov.exceeds_repetition_cap if gov is not None else None
        limit = catalog.repetition.consecutive_newline_limit
        steps = self._steps(catalog, dynamic_threshold(len(text), catalog))
        current = text
        for n in range(catalog.repetition.max_passes):
            before = current
            for rule_id, step in steps:
                current = runner.run(rule_id, partial(step, catalog=catalog), current, cap)
            current = normalize_whitespace(current, limit)
            if current == before:
                return current
            if gov is not None and gov.exceeds_pass_limit(before, current):
                ratio = reduction_ratio(before, current)
                log.warning(f"pass {n + 1} would remove {ratio:.3f}; stopping at the previous pass")
                runner.note(PASS_LIMITED, "", f"pass {n + 1} reduction {ratio:.3f} over iteration limit")
                return before
        log.debug(f"stopped after max_passes={catalog.repetition.max_passes}")
        return current

    def apply(self, text: str, catalog: PatternCatalog) -> StageResult:
        gov = SafetyGovernor(catalog.safety)
        runner = RuleRunner(self.name)
        cleaned = self._passes(text, catalog, runner, gov)
        naive = cleaned
        if runner.capped:
            naive = self._passes(text, catalog, RuleRunner(self.name), None)

        if gov.exceeds_stage_cap(text, cleaned):
            ratio = reduction_ratio(text, cleaned)
            log.warning(f"repetition stage would remove {ratio:.3f} of the text; skipped")
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
