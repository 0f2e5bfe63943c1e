"""Planning: oracle prompts, tolerant plan parsing, fallback and formatting."""

from __future__ import annotations

from .fallback import fallback_plan
from .formatter import ResultFormatter
from .parsing import ParsedPlan, RecoveredPlan, Unparseable, parse_plan_text
from .planner import Planner
from .prompts import HELP_TEXT

__all__ = [
    "HELP_TEXT",
    "ParsedPlan",
    "Planner",
    "RecoveredPlan",
    "ResultFormatter",
    "Unparseable",
    "fallback_plan",
    "parse_plan_text",
]
