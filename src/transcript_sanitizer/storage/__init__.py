"""Output writers for batch runs."""

from .writer import append_jsonl, outcomes_schema, write_manifest, write_outcomes_shard

__all__ = ["append_jsonl", "outcomes_schema", "write_manifest", "write_outcomes_shard"]
