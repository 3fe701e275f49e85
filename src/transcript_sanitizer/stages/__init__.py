"""Cleaning stages and their registry."""

from .base import Stage, RuleRunner
from .registry import register_stage, known_stages, make_stages

__all__ = ["Stage", "RuleRunner", "register_stage", "known_stages", "make_stages"]
