"""Run ID resolution: explicit `run.run_id`, or generated from the first source.

Generated ids look like `<source name>_<YYYYMMDDHHMMSS>`.
"""

from __future__ import annotations
import re
from datetime import datetime, timezone
from typing import Any, Dict


def generate_run_id(cfg: Dict[str, Any]) -> str:
    sources = cfg.get("sources") or []
    name = (sources[0].get("name") if sources else None) or "run"
    # Safe for file names: alphanumeric, underscore and dash
    name = re.sub(r"[^\w\-]", "_", str(name)) or "run"
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{name}_{ts}"


def resolve_run_id(cfg: Dict[str, Any]) -> str:
    run = cfg.get("run") or {}
    explicit = run.get("run_id")
    if explicit is not None and str(explicit).strip():
        return str(explicit).strip()
    return generate_run_id(cfg)


def resolve_out_dir(cfg: Dict[str, Any], run_id: str) -> str:
    """Return out_dir with any {run_id} placeholder filled in."""
    run = cfg.get("run") or {}
    out_dir = run.get("out_dir") or "storage"
    return out_dir.replace("{run_id}", run_id)
