"""Local JSONL transcript source.

Each line is a JSON object with at least:
- text
Optional:
- id, language (field names are configurable on the SourceSpec)

Supported `dataset` forms:
- Single file: "path/to/file.jsonl"
- Multiple files: ["path/to/file1.jsonl", "path/to/file2.jsonl"]
- Directory: "path/to/directory/" (all .jsonl files, recursively)
- Glob pattern: "path/to/*.jsonl" or "path/to/**/*.jsonl"
"""

from __future__ import annotations
import glob
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from .base import SourceSpec, TranscriptRecord

log = logging.getLogger("transcript_sanitizer.sources.local_jsonl")


class LocalJSONLSource:
    def __init__(self, spec: SourceSpec):
        self.spec = spec
        self.name = spec.name
        self.files = self._resolve_files(spec.dataset)

    def _resolve_files(self, dataset: Union[str, List[str]]) -> List[str]:
        if isinstance(dataset, list):
            files: List[str] = []
            for item in dataset:
                files.extend(self._resolve_files(item))
            return files

        dataset = str(dataset)
        if any(c in dataset for c in "*?["):
            matched = glob.glob(dataset, recursive=True)
            return sorted(f for f in matched if os.path.isfile(f) and f.endswith(".jsonl"))

        path = Path(dataset)
        if path.is_dir():
            return sorted(str(f) for f in path.glob("**/*.jsonl") if f.is_file())

        # a missing file is kept so stream() can warn about it
        return [dataset]

    def metadata(self) -> Dict[str, Any]:
        return {
            "kind": "local_jsonl",
            "files": self.files,
            "file_count": len(self.files),
            "total_size_bytes": sum(os.path.getsize(f) for f in self.files if os.path.exists(f)),
        }

    def stream(self) -> Iterable[TranscriptRecord]:
        """Yield records from every resolved file; bad lines are logged and skipped."""
        spec = self.spec
        for file_path in self.files:
            if not os.path.exists(file_path):
                log.warning(f"File not found: {file_path}, skipping")
                continue

            with open(file_path, "r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        ex = json.loads(line)
                    except json.JSONDecodeError as e:
                        log.warning(f"Invalid JSON in {file_path}:{line_num}: {e}")
                        continue
                    if not isinstance(ex, dict):
                        log.warning(f"{file_path}:{line_num}: expected a JSON object, skipping")
                        continue
                    yield TranscriptRecord(
                        record_id=str(ex.get(spec.id_field) or f"{Path(file_path).stem}_{line_num}"),
                        text=ex.get(spec.text_field) or "",
                        source=spec.name,
                        language=ex.get(spec.language_field) or spec.default_language,
                        source_file=file_path,
                        source_line=line_num,
                        extra=ex,
                    )
