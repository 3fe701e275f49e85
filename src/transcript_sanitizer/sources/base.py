"""Transcript source types.

A source yields TranscriptRecord values for the batch runner. Only local
JSONL exports are built in; other sources only need to provide `stream()`.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class TranscriptRecord:
    record_id: str
    text: str
    source: str
    language: str = "auto"
    source_file: Optional[str] = None
    source_line: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SourceSpec:
    name: str
    dataset: Union[str, List[str]]  # file, list of files, directory, or glob pattern
    kind: str = "local_jsonl"
    text_field: str = "text"
    language_field: str = "language"
    id_field: str = "id"
    default_language: str = "auto"
