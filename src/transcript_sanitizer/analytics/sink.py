"""Analytics sink.

Two storage layers:
1) Raw events (append-only Parquet): `analytics/events/stage=.../date=.../events.parquet`
2) Aggregates: `analytics/aggregates/daily_aggregates.parquet`

Events may carry `metric_samples` ({"reduction": [..]}); the sink turns them
into p50/p90/p99 metrics before writing.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence
import logging
import os
import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

log = logging.getLogger("transcript_sanitizer.analytics")

COUNT_KEYS = ("records", "changed", "rolled_back", "skipped", "capped", "errors")


def percentiles(xs: Sequence[float], ps=(50, 90, 99)) -> Dict[str, float]:
    if not xs:
        return {}
    arr = np.array(xs, dtype=np.float64)
    return {f"p{p}": float(np.percentile(arr, p)) for p in ps}


class AnalyticsSink:
    def __init__(self, out_dir: str, run_id: str):
        self.out_dir = out_dir
        self.run_id = run_id
        self.events_dir = os.path.join(out_dir, "analytics", "events")
        self.aggs_dir = os.path.join(out_dir, "analytics", "aggregates")
        os.makedirs(self.events_dir, exist_ok=True)
        os.makedirs(self.aggs_dir, exist_ok=True)
        # key=(date, stage, source) -> counters and latest percentile metrics
        self._agg: Dict[tuple, Dict[str, Any]] = {}

    def emit(self, event: Dict[str, Any]) -> None:
        stage = event["stage"]
        date = datetime.fromtimestamp(event["timestamp_ms"] / 1000, tz=timezone.utc).date().isoformat()

        samples = event.pop("metric_samples", None) or {}
        metrics = event.setdefault("metrics", {})
        for k, xs in samples.items():
            for pk, pv in percentiles(xs).items():
                metrics[f"{k}_{pk}"] = pv

        p = os.path.join(self.events_dir, f"stage={stage}", f"date={date}", "events.parquet")
        self._append_parquet(p, [event])

        key = (date, stage, event["source"])
        cur = self._agg.setdefault(key, {"date": date, "stage": stage, "source": event["source"], **{k: 0 for k in COUNT_KEYS}})
        counts = event.get("counts", {})
        for k in COUNT_KEYS:
            cur[k] += int(counts.get(k, 0))
        for mk, mv in metrics.items():
            if isinstance(mv, (int, float)):
                cur[mk] = float(mv)

    def flush_aggregates(self) -> None:
        if not self._agg:
            return
        p = os.path.join(self.aggs_dir, "daily_aggregates.parquet")
        self._append_parquet(p, list(self._agg.values()))
        self._agg.clear()

    @staticmethod
    def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
        # empty dicts have no Parquet struct type; store them as null
        return {k: (None if isinstance(v, dict) and not v else v) for k, v in row.items()}

    def _append_parquet(self, path: str, rows: List[Dict[str, Any]]) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        rows = [self._normalize_row(r) for r in rows]
        if os.path.exists(path) and os.path.getsize(path) > 0:
            rows = [self._normalize_row(r) for r in pq.read_table(path).to_pylist()] + rows
        table = pa.Table.from_pylist(rows)
        pq.write_table(table, path, compression="zstd")
