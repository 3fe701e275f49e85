"""Fixed lexical corrections applied after sanitization.

Two kinds of correction:
- definite corrections: exact from -> to phrase substitution (a speech model
  that keeps writing "Pie Torch" for "PyTorch")
- rules: regex pattern -> replacement, each with its own case sensitivity

Rules run before definite corrections. The corrector never touches texts
shorter than two non-space characters.

Dictionary YAML:

```yaml
enabled: true
case_sensitive: true
languages: [ja, en]
definite_corrections:
  - from: ["Pie Torch", "pie torch"]
    to: "PyTorch"
rules:
  - pattern: "\\bgonna\\b"
    replacement: "going to"
    case_sensitive: false
```
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple
import logging
import re

from ..config.loader import load_yaml
from ..errors import ConfigError
from ..utils.text import normalize_language

log = logging.getLogger("transcript_sanitizer.correction")


@dataclass(frozen=True)
class CorrectionEntry:
    from_: Tuple[str, ...]
    to: str

    def __post_init__(self):
        # a single string is accepted for older one-to-one dictionaries
        if isinstance(self.from_, str):
            object.__setattr__(self, "from_", (self.from_,))
        else:
            object.__setattr__(self, "from_", tuple(self.from_))


@dataclass(frozen=True)
class CorrectionRule:
    pattern: str
    replacement: str
    case_sensitive: bool = False
    description: str = ""


def _compile_rule(rule: CorrectionRule) -> Pattern[str]:
    try:
        return re.compile(rule.pattern, 0 if rule.case_sensitive else re.IGNORECASE)
    except re.error as e:
        raise ConfigError(f"correction rule {rule.pattern!r}: {e}") from e


class DictionaryCorrector:
    def __init__(
        self,
        entries: Iterable[CorrectionEntry] = (),
        rules: Iterable[CorrectionRule] = (),
        *,
        case_sensitive: bool = True,
        enabled: bool = True,
        languages: Optional[Sequence[str]] = None,
    ):
        self.case_sensitive = case_sensitive
        self.enabled = enabled
        self.languages = {normalize_language(l) for l in languages} if languages else None
        self.entries: List[CorrectionEntry] = []
        self.rules: List[CorrectionRule] = []
        self._rule_res: List[Pattern[str]] = []
        self._entry_res: List[Tuple[Pattern[str], str]] = []
        for r in rules:
            self.add_rule(r)
        for e in entries:
            self.add_entry(e)

    def add_entry(self, entry: CorrectionEntry) -> None:
        flags = 0 if self.case_sensitive else re.IGNORECASE
        self.entries.append(entry)
        for phrase in entry.from_:
            if phrase:
                self._entry_res.append((re.compile(re.escape(phrase), flags), entry.to))

    def add_rule(self, rule: CorrectionRule) -> None:
        self._rule_res.append(_compile_rule(rule))
        self.rules.append(rule)

    def applies_to(self, language: str) -> bool:
        if self.languages is None:
            return True
        return normalize_language(language) in self.languages

    def correct(self, text: str, language: str = "auto") -> str:
        if not self.enabled or not self.applies_to(language):
            return text
        if not text or len("".join(text.split())) < 2:
            return text
        result = text
        for regex, rule in zip(self._rule_res, self.rules):
            result = regex.sub(rule.replacement, result)
        for regex, to in self._entry_res:
            # function replacement: `to` is literal text, never a template
            result = regex.sub(lambda _m, to=to: to, result)
        if result != text:
            log.debug(f"dictionary corrected {len(text)} -> {len(result)} chars")
        return result

    def __repr__(self) -> str:
        return f"DictionaryCorrector(entries={len(self.entries)}, rules={len(self.rules)}, enabled={self.enabled})"


def _str_list(value: Any, where: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}: expected a string or a list of strings")
    return list(value)


def corrector_from_dict(data: Mapping[str, Any]) -> DictionaryCorrector:
    known = {"enabled", "case_sensitive", "languages", "definite_corrections", "rules"}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"dictionary: unknown keys {sorted(unknown)}")

    entries = []
    for i, item in enumerate(data.get("definite_corrections") or []):
        where = f"definite_corrections[{i}]"
        if not isinstance(item, Mapping) or "from" not in item or "to" not in item:
            raise ConfigError(f"{where}: needs 'from' and 'to'")
        entries.append(CorrectionEntry(tuple(_str_list(item["from"], where)), str(item["to"])))

    rules = []
    for i, item in enumerate(data.get("rules") or []):
        if not isinstance(item, Mapping) or "pattern" not in item:
            raise ConfigError(f"rules[{i}]: needs 'pattern'")
        rules.append(CorrectionRule(
            pattern=str(item["pattern"]),
            replacement=str(item.get("replacement", "")),
            case_sensitive=bool(item.get("case_sensitive", False)),
            description=str(item.get("description", "")),
        ))

    languages = data.get("languages")
    return DictionaryCorrector(
        entries,
        rules,
        case_sensitive=bool(data.get("case_sensitive", True)),
        enabled=bool(data.get("enabled", True)),
        languages=_str_list(languages, "languages") if languages else None,
    )


def load_dictionary(path: str) -> DictionaryCorrector:
    return corrector_from_dict(load_yaml(path))
