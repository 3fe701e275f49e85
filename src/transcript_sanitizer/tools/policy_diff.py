"""Cleaning config diff tool.

Compares two cleaning config YAML files and prints a structured diff of the
*effective* configs: both files are overlaid on the defaults and validated
first, so a key spelled out with its default value is not a change.

Usage:
`transcript-sanitizer policy-diff --a configs/cleaning.yaml --b configs/cleaning_v2.yaml`
"""

from __future__ import annotations
from typing import Any, List, Tuple

from ..config.loader import config_to_dict, load_config
from ..patterns.catalog import validate_config


def diff(a: Any, b: Any, prefix: str = "") -> List[Tuple[str, str, Any, Any]]:
    """Return list of (path, change_type, old, new)."""
    out = []
    if isinstance(a, dict) and isinstance(b, dict):
        for k in sorted(set(a) | set(b), key=str):
            pfx = f"{prefix}.{k}" if prefix else str(k)
            if k not in a:
                out.append((pfx, "added", None, b[k]))
            elif k not in b:
                out.append((pfx, "removed", a[k], None))
            else:
                out.extend(diff(a[k], b[k], pfx))
    elif a != b:
        out.append((prefix, "changed", a, b))
    return out


def render(diff_rows: List[Tuple[str, str, Any, Any]]) -> str:
    lines = []
    for path, typ, old, new in diff_rows:
        if typ == "added":
            lines.append(f"+ {path}: {new}")
        elif typ == "removed":
            lines.append(f"- {path}: {old}")
        else:
            lines.append(f"~ {path}: {old} -> {new}")
    return "\n".join(lines)


def main(a_path: str, b_path: str) -> str:
    a = load_config(a_path)
    b = load_config(b_path)
    validate_config(a)
    validate_config(b)
    return render(diff(config_to_dict(a), config_to_dict(b)))
