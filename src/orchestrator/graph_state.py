from __future__ import annotations

import operator
from typing import Annotated, Optional

from typing_extensions import TypedDict

from core.types import PendingAction, Plan, ToolResult


class PlanningState(TypedDict, total=False):
    # Input
    request_text: str

    # PLAN outputs
    iteration: int
    plan: Plan
    summary: str

    # Accumulated history (prior results + everything executed this loop)
    results: Annotated[list[ToolResult], operator.add]

    # Routing: continue | done | pending | exhausted
    outcome: str
    pending: Optional[PendingAction]
