"""Analytics event schemas.

The batch runner emits one small event per stage and source. Events are
stored to Parquet; this module only defines the constructor and the
recommended keys, without strict validation.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import time


def make_event(
    *,
    run_id: str,
    stage: str,
    source: str,
    counts: Dict[str, int],
    metrics: Optional[Dict[str, float]] = None,
    metric_samples: Optional[Dict[str, List[float]]] = None,
    rule_breakdown: Optional[Dict[str, int]] = None,
) -> Dict[str, Any]:
    event = {
        "run_id": run_id,
        "stage": stage,
        "source": source,
        "timestamp_ms": int(time.time() * 1000),
        "counts": counts,
        "metrics": metrics or {},
        "rule_breakdown": rule_breakdown or {},
    }
    if metric_samples:
        # turned into p50/p90/p99 metrics by the sink
        event["metric_samples"] = metric_samples
    return event
