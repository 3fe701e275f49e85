import hashlib
import json
from typing import Any


def stable_fingerprint(obj: Any) -> str:
    """SHA-256 of the canonical JSON form of `obj` (keys sorted)."""
    blob = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()
