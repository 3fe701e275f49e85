"""Text normalization helpers shared by the stages."""

from __future__ import annotations
import re
import unicodedata
from typing import List

_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.M)
_WORD_RE = re.compile(r"\S+")
_SENTENCE_RE = re.compile(r"[^.!?。！？]*(?:[.!?。！？]+|$)\s*")
_FINGERPRINT_DROP_RE = re.compile(r"[\s、。,.;:!！?？，；：]+")

EDGE_PUNCT = ".,!?;:。、，！？；：\"'()[]{}「」『』…-—"


def normalize_unicode_nfkc(text: str) -> str:
    """Apply Unicode NFKC so full-width and compatibility forms compare equal."""
    if not text:
        return text
    try:
        return unicodedata.normalize("NFKC", text)
    except (UnicodeError, TypeError):
        return text


def normalize_token(token: str) -> str:
    return normalize_unicode_nfkc(token).casefold().strip(EDGE_PUNCT)


def fingerprint(text: str) -> str:
    """Whitespace/punctuation-insensitive key used to compare heads of paragraphs."""
    return _FINGERPRINT_DROP_RE.sub("", normalize_unicode_nfkc(text)).casefold()


def words(text: str) -> List[re.Match]:
    return list(_WORD_RE.finditer(text))


def split_sentences(text: str) -> List[str]:
    """Split after sentence punctuation; the pieces concatenate back to `text`."""
    return [m.group(0) for m in _SENTENCE_RE.finditer(text) if m.group(0)]


def normalize_whitespace(text: str, newline_limit: int) -> str:
    """Drop trailing spaces, cap runs of newlines at `newline_limit`, strip."""
    text = _TRAILING_WS_RE.sub("", text)
    text = re.sub("\n{%d,}" % (newline_limit + 1), "\n" * newline_limit, text)
    return text.strip()


def normalize_language(tag: str) -> str:
    """Reduce a language tag to the short code used for logs and corrections.

    'ja-JP' -> 'ja', 'zh-Hant' -> 'zh', empty/None -> 'auto'.
    """
    if not tag:
        return "auto"
    lang = str(tag).strip().lower().replace("_", "-")
    if lang == "auto":
        return "auto"
    return lang.split("-", 1)[0] or "auto"
