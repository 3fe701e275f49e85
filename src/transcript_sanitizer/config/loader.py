"""Config loader.

Cleaning configs are YAML files whose keys mirror the dataclass fields in
`config.schema`. Keeping them in YAML allows:
- reviewing threshold changes without reading code
- versioned configuration across deployments
- diffing two configs with `transcript-sanitizer policy-diff`

Keys that are omitted keep their default; unknown keys are rejected.

```yaml
safety:
  emergency_fallback_threshold: 0.8
repetition:
  ngram:
    thresholds: {3: 4, 4: 3, 5: 2}
contamination:
  instruction_patterns:
    - "Please transcribe only the following audio content"
```
"""

from __future__ import annotations
from dataclasses import fields, is_dataclass, replace
from typing import Any, Dict, Mapping, Optional, get_args, get_origin, get_type_hints
import yaml

from ..errors import ConfigError
from .defaults import DEFAULT_CONFIG
from .schema import CleaningConfig, NgramThresholds


def load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _element_type(hint: Any) -> Optional[type]:
    # Tuple[str, ...] -> str; anything else is checked elsewhere
    args = get_args(hint)
    if get_origin(hint) is tuple and len(args) == 2 and args[1] is Ellipsis and isinstance(args[0], type):
        return args[0]
    return None


def _check_elements(value: Any, elem: type, path: str) -> None:
    for i, x in enumerate(value):
        if not isinstance(x, elem) or (isinstance(x, bool) and elem is not bool):
            raise ConfigError(f"{path}[{i}]: expected {elem.__name__}, got {x!r}")


def _coerce(current: Any, value: Any, path: str, hint: Any = None) -> Any:
    if isinstance(current, NgramThresholds) and isinstance(value, Mapping):
        value = dict(value)
        if "thresholds" in value:
            value["thresholds"] = _ngram_pairs(value["thresholds"], f"{path}.thresholds")
    if is_dataclass(current):
        if not isinstance(value, Mapping):
            raise ConfigError(f"{path}: expected a mapping, got {type(value).__name__}")
        return _overlay(current, value, path)
    if isinstance(current, tuple):
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ConfigError(f"{path}: expected a list, got {type(value).__name__}")
        elem = _element_type(hint)
        if elem is not None:
            _check_elements(value, elem, path)
        return tuple(value)
    if isinstance(current, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{path}: expected true/false, got {value!r}")
        return value
    if isinstance(current, int) and not isinstance(current, bool):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{path}: expected an integer, got {value!r}")
        return value
    if isinstance(current, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{path}: expected a number, got {value!r}")
        return float(value)
    return value


def _ngram_pairs(value: Any, path: str):
    # YAML form is a mapping {n: repeat}; a list of pairs is accepted too
    if isinstance(value, Mapping):
        items = value.items()
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigError(f"{path}: expected a mapping of n -> repeat count")
    try:
        pairs = tuple(sorted((int(n), int(r)) for n, r in items))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{path}: {e}") from e
    return pairs


def _overlay(base: Any, overrides: Mapping[str, Any], path: str) -> Any:
    known = {f.name for f in fields(base)}
    hints = get_type_hints(type(base))
    changes = {}
    for key, value in overrides.items():
        sub = f"{path}.{key}" if path else str(key)
        if key not in known:
            raise ConfigError(f"unknown config key: {sub}")
        changes[key] = _coerce(getattr(base, key), value, sub, hints.get(key))
    return replace(base, **changes)


def config_from_dict(data: Optional[Mapping[str, Any]], base: CleaningConfig = DEFAULT_CONFIG) -> CleaningConfig:
    """Overlay a plain mapping on `base` (the defaults unless given)."""
    if not data:
        return base
    return _overlay(base, data, "")


def load_config(path: Optional[str] = None) -> CleaningConfig:
    """Load a cleaning config from YAML, or the defaults when `path` is None."""
    if path is None:
        return DEFAULT_CONFIG
    return config_from_dict(load_yaml(path))


def config_to_dict(cfg: Any) -> Any:
    """Render a config (or any part of it) back to YAML-friendly data."""
    if isinstance(cfg, NgramThresholds):
        return {"min_n": cfg.min_n, "max_n": cfg.max_n, "thresholds": cfg.as_dict()}
    if is_dataclass(cfg):
        return {f.name: config_to_dict(getattr(cfg, f.name)) for f in fields(cfg)}
    if isinstance(cfg, tuple):
        return [config_to_dict(x) for x in cfg]
    return cfg
