"""Parquet writers.

We keep writers simple and robust:
- write shards of `outcomes/part-NNNNN.parquet` with cleaned transcripts
- write `rollbacks.jsonl` for auditability (append-only)
- write a run manifest at the end
"""

from __future__ import annotations
from typing import Any, Dict, List
import json
import os
import pyarrow as pa
import pyarrow.parquet as pq


def outcomes_schema() -> pa.Schema:
    return pa.schema([
        ("record_id", pa.string()),
        ("source", pa.string()),
        ("language", pa.string()),
        ("source_file", pa.string()),
        ("original_text", pa.string()),
        ("final_text", pa.string()),
        ("original_chars", pa.int64()),
        ("final_chars", pa.int64()),
        ("rolled_back", pa.bool_()),
        ("corrected", pa.bool_()),
        ("cumulative_reduction", pa.float64()),
        ("matched_rule_ids", pa.list_(pa.string())),
        ("skipped_stages", pa.list_(pa.string())),
        ("diagnostic_kinds", pa.list_(pa.string())),
        ("config_fingerprint", pa.string()),
        ("created_at_ms", pa.int64()),
    ], metadata={"schema_version": "v1"})


def write_outcomes_shard(path: str, rows: List[Dict[str, Any]]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    table = pa.Table.from_pylist(rows, schema=outcomes_schema())
    pq.write_table(table, path, compression="zstd")


def append_jsonl(path: str, rows: List[Dict[str, Any]]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        for r in rows:
            f.write(json.dumps(r, ensure_ascii=False) + "\n")


def write_manifest(path: str, manifest: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)
