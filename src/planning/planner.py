from __future__ import annotations

import threading

from core.errors import OracleError, PlanningFailure
from core.types import Plan, PlannerContext, ToolResult
from observability.logging import get_logger
from oracle import Oracle

from .fallback import fallback_plan
from .parsing import RecoveredPlan, Unparseable, parse_plan_text
from .prompts import planner_messages


class Planner:
    """Turn a request (plus results gathered so far) into the next Plan.

    The oracle is asked first; empty or unrecoverable output goes to the
    deterministic fallback. Oracle transport failure or cancellation aborts the
    turn with PlanningFailure.
    """

    def __init__(self, oracle: Oracle, *, max_result_chars: int = 4000) -> None:
        self._oracle = oracle
        self._max_result_chars = max_result_chars
        self._log = get_logger("kube_copilot.planner")

    def plan(
        self,
        request_text: str,
        ctx: PlannerContext,
        history: list[ToolResult],
        *,
        cancel: threading.Event | None = None,
    ) -> Plan:
        messages = planner_messages(request_text, ctx, history, max_result_chars=self._max_result_chars)
        try:
            raw = "".join(self._oracle.stream(messages, cancel=cancel))
        except OracleError as e:
            self._log.warning("plan_oracle_failed", error=type(e).__name__, reason=str(e))
            raise PlanningFailure(str(e) or type(e).__name__) from e

        if not raw.strip():
            self._log.info("fallback_plan_used", reason="empty_response")
            return fallback_plan(request_text, ctx, history)

        outcome = parse_plan_text(raw)
        if isinstance(outcome, Unparseable):
            self._log.info("fallback_plan_used", reason=outcome.reason, raw_len=len(raw))
            return fallback_plan(request_text, ctx, history)
        if isinstance(outcome, RecoveredPlan):
            self._log.info("plan_recovered", repairs=list(outcome.repairs))
        return outcome.plan
