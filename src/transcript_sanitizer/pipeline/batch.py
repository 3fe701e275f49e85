"""Batch runner.

Sanitizes every transcript of one or more JSONL sources and writes:
- `outcomes/<source>/part-NNNNN.parquet`: cleaned text plus outcome fields
- `audit/rollbacks.jsonl`: every rolled-back record and every record error
- `analytics/...`: one event per stage and source, with reduction
  percentiles (p50/p90/p99)
- `manifests/<run_id>.json`: run summary, including the effective config

Batch config:

```yaml
run:
  run_id: meetings_2024_06      # optional; generated from the first source
  out_dir: storage/{run_id}
  shard_records: 5000
  log_every_records: 1000
cleaning:
  config: examples/cleaning.yaml        # optional, defaults otherwise
  dictionary: examples/dictionary.yaml  # optional
sources:
  - name: meetings
    dataset: examples/sample_transcripts.jsonl
    text_field: text
    language_field: language
```

A record that fails unexpectedly is logged and audited; the run continues.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging
import os
import time
from tqdm import tqdm

from ..analytics.schemas import make_event
from ..analytics.sink import AnalyticsSink
from ..config.loader import config_from_dict, config_to_dict, load_config
from ..correction.dictionary import load_dictionary
from ..errors import ConfigError
from ..run_id import resolve_out_dir, resolve_run_id
from ..sources.base import SourceSpec, TranscriptRecord
from ..sources.local_jsonl import LocalJSONLSource
from ..storage.writer import append_jsonl, write_manifest, write_outcomes_shard
from ..utils.fingerprint import stable_fingerprint
from .context import CleaningRequest, PipelineOutcome, PATTERN_CAPPED, PASS_LIMITED, ROLLBACK, STAGE_ERROR
from .sanitize import SanitizationPipeline

log = logging.getLogger("transcript_sanitizer.batch")


class _StageStats:
    """Per-stage counters for one source, flushed as analytics events."""

    def __init__(self, stages: List[str]):
        self.stages = stages
        self.reset()

    def reset(self) -> None:
        self.counts = {s: {"records": 0, "changed": 0, "skipped": 0, "capped": 0, "errors": 0} for s in self.stages}
        self.reductions: Dict[str, List[float]] = {s: [] for s in self.stages}
        self.rules: Dict[str, Dict[str, int]] = {s: {} for s in self.stages}
        self.rolled_back = 0

    def add(self, outcome: PipelineOutcome) -> None:
        for r in outcome.stage_results:
            if r.stage not in self.counts:
                continue
            c = self.counts[r.stage]
            c["records"] += 1
            c["changed"] += int(bool(r.matched_rule_ids))
            c["skipped"] += int(r.skipped)
            self.reductions[r.stage].append(r.reduction_ratio)
            for rule_id in r.matched_rule_ids:
                self.rules[r.stage][rule_id] = self.rules[r.stage].get(rule_id, 0) + 1
        for d in outcome.diagnostics:
            if d.stage not in self.counts:
                continue
            if d.kind in (PATTERN_CAPPED, PASS_LIMITED):
                self.counts[d.stage]["capped"] += 1
            elif d.kind == STAGE_ERROR:
                self.counts[d.stage]["errors"] += 1
        self.rolled_back += int(outcome.rolled_back)

    def flush(self, sink: AnalyticsSink, run_id: str, source: str) -> None:
        for s in self.stages:
            if not self.counts[s]["records"]:
                continue
            sink.emit(make_event(
                run_id=run_id,
                stage=s,
                source=source,
                counts={**self.counts[s], "rolled_back": self.rolled_back},
                metric_samples={"reduction": self.reductions[s]},
                rule_breakdown=self.rules[s],
            ))
        sink.flush_aggregates()
        self.reset()


def _outcome_row(rec: TranscriptRecord, outcome: PipelineOutcome, config_fp: str) -> Dict[str, Any]:
    matched: List[str] = []
    for r in outcome.stage_results:
        matched.extend(f"{r.stage}/{rule_id}" for rule_id in r.matched_rule_ids)
    return {
        "record_id": rec.record_id,
        "source": rec.source,
        "language": outcome.language,
        "source_file": rec.source_file or "",
        "original_text": rec.text,
        "final_text": outcome.final_text,
        "original_chars": len(rec.text),
        "final_chars": len(outcome.final_text),
        "rolled_back": outcome.rolled_back,
        "corrected": outcome.corrected,
        "cumulative_reduction": float(outcome.cumulative_reduction),
        "matched_rule_ids": matched,
        "skipped_stages": [r.stage for r in outcome.stage_results if r.skipped],
        "diagnostic_kinds": sorted({d.kind for d in outcome.diagnostics}),
        "config_fingerprint": config_fp,
        "created_at_ms": int(time.time() * 1000),
    }


def build_pipeline(cfg: Dict[str, Any]) -> SanitizationPipeline:
    """Cleaning config, optional overrides and optional dictionary from a batch config."""
    cleaning = cfg.get("cleaning") or {}
    config = load_config(cleaning.get("config"))
    if cleaning.get("overrides"):
        config = config_from_dict(cleaning["overrides"], base=config)
    corrector = load_dictionary(cleaning["dictionary"]) if cleaning.get("dictionary") else None
    return SanitizationPipeline(config, corrector=corrector)


def run_batch(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Run every configured source through the pipeline; return the manifest."""
    run = cfg.get("run") or {}
    run_id = resolve_run_id(cfg)
    out_dir = resolve_out_dir(cfg, run_id)
    shard_records = int(run.get("shard_records", 5000))
    log_every = int(run.get("log_every_records", 1000))
    start_time_ms = int(time.time() * 1000)

    if not cfg.get("sources"):
        raise ConfigError("batch config needs at least one entry under sources")

    pipeline = build_pipeline(cfg)
    config_dict = config_to_dict(pipeline.config)
    config_fp = stable_fingerprint(config_dict)
    stage_names = [s.name for s in pipeline.stages]
    sink = AnalyticsSink(out_dir=out_dir, run_id=run_id)
    audit_path = os.path.join(out_dir, "audit", "rollbacks.jsonl")

    log.info(f"run_id={run_id} out_dir={out_dir} stages={stage_names} config={config_fp[:12]}")

    totals = {"records": 0, "rolled_back": 0, "errors": 0, "corrected": 0}
    sources_summary: Dict[str, Any] = {}

    for s_cfg in cfg["sources"]:
        try:
            spec = SourceSpec(**s_cfg)
        except TypeError as e:
            raise ConfigError(f"bad source entry {s_cfg!r}: {e}") from e
        if spec.kind != "local_jsonl":
            raise ConfigError(f"Unknown source kind: {spec.kind}")
        src = LocalJSONLSource(spec)
        log.info(f"Starting source={spec.name} files={src.metadata()['file_count']}")

        stats = _StageStats(stage_names)
        rows: List[Dict[str, Any]] = []
        audit: List[Dict[str, Any]] = []
        shard_idx = 0
        counts = {"records": 0, "rolled_back": 0, "errors": 0, "corrected": 0}

        for rec in tqdm(src.stream(), desc=f"sanitize:{spec.name}", unit="rec"):
            counts["records"] += 1
            try:
                outcome = pipeline.sanitize(CleaningRequest(rec.text, rec.language))
            except Exception as e:
                log.exception(f"Unhandled error sanitizing record={rec.record_id} source={spec.name}: {e}")
                counts["errors"] += 1
                audit.append({
                    "record_id": rec.record_id,
                    "source": spec.name,
                    "source_file": rec.source_file,
                    "event": "error",
                    "detail": str(e),
                    "ts_ms": int(time.time() * 1000),
                })
                continue

            stats.add(outcome)
            rows.append(_outcome_row(rec, outcome, config_fp))
            counts["corrected"] += int(outcome.corrected)
            if outcome.rolled_back:
                counts["rolled_back"] += 1
                audit.append({
                    "record_id": rec.record_id,
                    "source": spec.name,
                    "source_file": rec.source_file,
                    "event": "rollback",
                    "cumulative_reduction": round(outcome.cumulative_reduction, 4),
                    "detail": "; ".join(d.detail for d in outcome.diagnostics if d.kind == ROLLBACK),
                    "ts_ms": int(time.time() * 1000),
                })

            if len(rows) >= shard_records:
                write_outcomes_shard(os.path.join(out_dir, "outcomes", spec.name, f"part-{shard_idx:05d}.parquet"), rows)
                rows.clear()
                shard_idx += 1

            if counts["records"] % log_every == 0:
                log.info(f"source={spec.name} processed={counts['records']} rolled_back={counts['rolled_back']} errors={counts['errors']}")
                stats.flush(sink, run_id, spec.name)
                if audit:
                    append_jsonl(audit_path, audit)
                    audit.clear()

        if rows:
            write_outcomes_shard(os.path.join(out_dir, "outcomes", spec.name, f"part-{shard_idx:05d}.parquet"), rows)
            rows.clear()
            shard_idx += 1
        stats.flush(sink, run_id, spec.name)
        if audit:
            append_jsonl(audit_path, audit)

        if counts["records"] == 0:
            log.warning(f"Source {spec.name}: no records read from {spec.dataset}")
        log.info(f"Source {spec.name} complete: " + " ".join(f"{k}={v}" for k, v in counts.items()))
        sources_summary[spec.name] = {**counts, "shards": shard_idx, "files": src.files}
        for k in totals:
            totals[k] += counts[k]

    manifest = {
        "run_id": run_id,
        "start_time_ms": start_time_ms,
        "end_time_ms": int(time.time() * 1000),
        "totals": totals,
        "sources": sources_summary,
        "stages": stage_names,
        "config_fingerprint": config_fp,
        "config": config_dict,
        "outputs": {
            "outcomes_dir": os.path.join(out_dir, "outcomes"),
            "audit": audit_path,
            "analytics_events": os.path.join(out_dir, "analytics", "events"),
            "analytics_aggregates": os.path.join(out_dir, "analytics", "aggregates"),
        },
    }
    write_manifest(os.path.join(out_dir, "manifests", f"{run_id}.json"), manifest)
    log.info(f"run {run_id} done: " + " ".join(f"{k}={v}" for k, v in totals.items()))
    return manifest
