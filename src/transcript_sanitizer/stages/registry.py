"""Stage registry.

Stages are configured by name under `stages:` in the cleaning config and run
in the order listed.

Teams can add a stage by:
1) implementing Stage in `transcript_sanitizer.stages.*` (or an external package)
2) calling `register_stage(name, factory)` at startup

Built-in stages are registered on import.
"""

from __future__ import annotations
from typing import Callable, Dict, List, Sequence

from ..errors import ConfigError
from .base import Stage
from .contamination import ContaminationStage
from .repetition import RepetitionStage

_STAGES: Dict[str, Callable[[], Stage]] = {}


def register_stage(name: str, factory: Callable[[], Stage]) -> None:
    """Register a stage factory. A second registration under a name replaces the first."""
    _STAGES[name] = factory


def known_stages() -> List[str]:
    return list(_STAGES)


def make_stages(stage_names: Sequence[str]) -> List[Stage]:
    stages = []
    for n in stage_names:
        if n not in _STAGES:
            raise ConfigError(f"Unknown stage: {n}. Register it in transcript_sanitizer.stages.registry")
        stages.append(_STAGES[n]())
    return stages


register_stage(ContaminationStage.name, ContaminationStage)
register_stage(RepetitionStage.name, RepetitionStage)
