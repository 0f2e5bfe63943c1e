from __future__ import annotations

import itertools
import json
import re
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, cast

from langgraph.graph import END, START, StateGraph

from core.errors import PlanningFailure, UnrecognizedRequest
from core.types import PendingAction, PlannerContext, ToolCall, ToolResult
from observability import add_error, bind_context, get_logger, set_iteration, set_state
from observability.ids import new_trace_id, session_log_id
from planning import HELP_TEXT, Planner, ResultFormatter
from tools.dispatch import ToolExecutor
from tools.operations import partition

from .graph_state import PlanningState
from .session import SessionStore

CONFIRM_PATTERN = re.compile(r"^(confirm|yes|proceed|ok)[.!]*$", re.IGNORECASE)
CANCEL_PATTERN = re.compile(r"^(cancel|no|stop)[.!]*$", re.IGNORECASE)

CANCELLED_TEXT = "Cancelled. No changes were made."
CONFIRMED_TEXT = "Confirmed. Executing changes...\n\n"
DISCARDED_TEXT = "Discarded the pending changes; nothing was executed.\n\n"

UNRELATED_REPLY_ABANDON = "abandon"
UNRELATED_REPLY_REPROMPT = "reprompt"

TextSink = Callable[[str], None]


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


@dataclass(frozen=True, slots=True)
class ConfirmationPrompt:
    summary: str
    calls: list[ToolCall]
    triggers: tuple[str, str] = ("confirm", "cancel")

    def render(self) -> str:
        lines = [f"- **{c.tool}** `{json.dumps(c.args, ensure_ascii=False)}`" for c in self.calls]
        return (
            "### Planned changes\n"
            f"**{self.summary}**\n\n"
            + "\n".join(lines)
            + f"\n\nReply **{self.triggers[0]}** to proceed or **{self.triggers[1]}** to stop."
        )


@dataclass(slots=True)
class TurnOutput:
    assistant_text: str
    tool_results: list[ToolResult]
    state: SessionState
    confirmation: ConfirmationPrompt | None = None


@dataclass(slots=True)
class _Transcript:
    """Collects the turn's text and forwards each chunk to the caller's sink."""

    sink: TextSink | None = None
    parts: list[str] = field(default_factory=list)

    def emit(self, text: str) -> None:
        if not text:
            return
        self.parts.append(text)
        if self.sink is not None:
            self.sink(text)

    def text(self) -> str:
        return "".join(self.parts)


class Orchestrator:
    """Plan → act loop with a confirmation gate in front of every mutation.

    One call to `handle_turn` is one user message. Read-only calls run as soon
    as they are planned; mutating calls are parked in the session store as a
    PendingAction and only run on an explicit confirming reply.
    """

    def __init__(
        self,
        *,
        planner: Planner,
        formatter: ResultFormatter,
        executor: ToolExecutor,
        store: SessionStore,
        context: PlannerContext,
        max_iterations: int = 10,
        on_unrelated_reply: str = UNRELATED_REPLY_ABANDON,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if on_unrelated_reply not in (UNRELATED_REPLY_ABANDON, UNRELATED_REPLY_REPROMPT):
            raise ValueError(f"unsupported on_unrelated_reply: {on_unrelated_reply!r}")

        self._planner = planner
        self._formatter = formatter
        self._executor = executor
        self._store = store
        self._context = context
        self._max_iterations = max_iterations
        self._on_unrelated_reply = on_unrelated_reply

        self._turns = itertools.count(1)
        self._log = get_logger("kube_copilot.orchestrator")

    @property
    def store(self) -> SessionStore:
        return self._store

    def handle_turn(
        self,
        session_key: str,
        text: str,
        *,
        context: PlannerContext | None = None,
        cancel: threading.Event | None = None,
        on_text: TextSink | None = None,
    ) -> TurnOutput:
        with self._store.turn(session_key):
            bind_context(trace_id=new_trace_id(), session_id=session_log_id(session_key), turn_id=next(self._turns))
            t0 = time.perf_counter()
            out = self._handle_locked(session_key, text, context or self._context, cancel, _Transcript(on_text))
            set_state(out.state.name)
            self._log.info(
                "turn_done",
                latency_ms=round((time.perf_counter() - t0) * 1000, 2),
                tool_results=len(out.tool_results),
                session_state=out.state.value,
            )
            return out

    def _handle_locked(
        self,
        key: str,
        text: str,
        ctx: PlannerContext,
        cancel: threading.Event | None,
        transcript: _Transcript,
    ) -> TurnOutput:
        request_text = (text or "").strip()
        pending = self._store.get(key)

        if not request_text:
            transcript.emit(HELP_TEXT)
            return self._output(transcript, [], pending)

        if pending is not None:
            if CONFIRM_PATTERN.match(request_text):
                return self._confirm(key, pending, ctx, cancel, transcript)

            if CANCEL_PATTERN.match(request_text):
                self._store.delete(key)
                self._log.info("pending_cancelled", calls=len(pending.pending_tool_calls))
                transcript.emit(CANCELLED_TEXT)
                return self._output(transcript, [], None)

            if self._on_unrelated_reply == UNRELATED_REPLY_REPROMPT:
                self._log.info("pending_reprompted")
                prompt = ConfirmationPrompt(summary=pending.plan.summary, calls=list(pending.pending_tool_calls))
                transcript.emit(prompt.render())
                return self._output(transcript, [], pending, prompt)

            self._store.delete(key)
            self._log.info("pending_abandoned", calls=len(pending.pending_tool_calls))
            transcript.emit(DISCARDED_TEXT)

        return self._run_loop(key, request_text, ctx, [], [], cancel, transcript)

    def _confirm(
        self,
        key: str,
        pending: PendingAction,
        ctx: PlannerContext,
        cancel: threading.Event | None,
        transcript: _Transcript,
    ) -> TurnOutput:
        set_state("CONFIRM")
        self._store.delete(key)
        self._log.info("pending_confirmed", calls=len(pending.pending_tool_calls))
        transcript.emit(CONFIRMED_TEXT)

        # Sequential, original order, no fail-fast.
        outcomes = [self._executor.execute(call, ctx) for call in pending.pending_tool_calls]
        history = list(pending.prior_results) + outcomes

        if not pending.plan.done:
            return self._run_loop(key, pending.originating_request_text, ctx, history, outcomes, cancel, transcript)

        self._format(pending.originating_request_text, pending.plan.summary, history, cancel, transcript)
        return self._output(transcript, outcomes, None)

    def _run_loop(
        self,
        key: str,
        request_text: str,
        ctx: PlannerContext,
        history: list[ToolResult],
        turn_results: list[ToolResult],
        cancel: threading.Event | None,
        transcript: _Transcript,
    ) -> TurnOutput:
        executed = list(turn_results)
        graph = self._build_graph(ctx=ctx, cancel=cancel, executed=executed)

        try:
            final = cast(
                PlanningState,
                graph.invoke(
                    {
                        "request_text": request_text,
                        "iteration": 0,
                        "summary": "",
                        "results": list(history),
                        "outcome": "continue",
                        "pending": None,
                    },
                    config={"recursion_limit": 2 * self._max_iterations + 5},
                ),
            )
        except PlanningFailure as e:
            add_error(f"planning_failed: {e}")
            self._log.warning("planning_failed", reason=str(e))
            transcript.emit(f"Failed to plan request: `{e}`")
            return self._output(transcript, executed, None)
        except UnrecognizedRequest as e:
            add_error("unrecognized_request")
            self._log.info("unrecognized_request", text_len=len(e.request_text))
            transcript.emit(f"{e}\n\n{HELP_TEXT}")
            return self._output(transcript, executed, None)

        outcome = final.get("outcome", "done")
        summary = str(final.get("summary", ""))
        results = list(final.get("results", []))

        action = final.get("pending")
        if outcome == "pending" and action is None:
            add_error("pending_missing")
            self._log.error("pending_missing", summary=summary)
            outcome = "done"

        if outcome == "pending":
            self._store.put(key, action)
            self._log.info("pending_created", calls=len(action.pending_tool_calls))
            prompt = ConfirmationPrompt(summary=action.plan.summary, calls=list(action.pending_tool_calls))
            transcript.emit(prompt.render())
            return self._output(transcript, executed, action, prompt)

        if outcome == "exhausted":
            add_error("max_iterations_reached")
            self._log.warning("max_iterations_reached", max_iterations=self._max_iterations)
            transcript.emit(f"Reached maximum iterations ({self._max_iterations}). Stopping.\n\n")

        self._format(request_text, summary, results, cancel, transcript)
        return self._output(transcript, executed, None)

    def _format(
        self,
        request_text: str,
        summary: str,
        results: list[ToolResult],
        cancel: threading.Event | None,
        transcript: _Transcript,
    ) -> None:
        set_state("FORMAT")
        self._formatter.format(request_text, summary, results, on_text=transcript.emit, cancel=cancel)

    @staticmethod
    def _output(
        transcript: _Transcript,
        results: list[ToolResult],
        pending: PendingAction | None,
        prompt: ConfirmationPrompt | None = None,
    ) -> TurnOutput:
        return TurnOutput(
            assistant_text=transcript.text(),
            tool_results=list(results),
            state=SessionState.AWAITING_CONFIRMATION if pending is not None else SessionState.IDLE,
            confirmation=prompt,
        )

    def _build_graph(self, *, ctx: PlannerContext, cancel: threading.Event | None, executed: list[ToolResult]):
        max_iterations = self._max_iterations

        def plan_node(state: PlanningState) -> dict[str, Any]:
            iteration = int(state.get("iteration", 0)) + 1
            set_state("PLAN")
            set_iteration(iteration)

            t0 = time.perf_counter()
            plan = self._planner.plan(
                str(state.get("request_text", "")),
                ctx,
                list(state.get("results", [])),
                cancel=cancel,
            )
            self._log.info(
                "plan_done",
                latency_ms=round((time.perf_counter() - t0) * 1000, 2),
                tool_calls=len(plan.tool_calls),
                done=plan.done,
            )

            finished = not plan.tool_calls and plan.done
            return {
                "iteration": iteration,
                "plan": plan,
                "summary": plan.summary,
                "outcome": "done" if finished else "continue",
            }

        def act_node(state: PlanningState) -> dict[str, Any]:
            set_state("ACT")
            plan = state["plan"]
            read_only, mutating = partition(plan.tool_calls)

            new_results = [self._executor.execute(call, ctx) for call in read_only]
            executed.extend(new_results)

            if mutating:
                set_state("AWAITING_CONFIRMATION")
                action = PendingAction(
                    originating_request_text=str(state.get("request_text", "")),
                    plan=plan,
                    pending_tool_calls=mutating,
                    prior_results=list(state.get("results", [])) + new_results,
                )
                return {"results": new_results, "outcome": "pending", "pending": action}

            if plan.done:
                outcome = "done"
            elif int(state.get("iteration", 0)) >= max_iterations:
                outcome = "exhausted"
            else:
                outcome = "continue"
            return {"results": new_results, "outcome": outcome}

        def after_plan(state: PlanningState) -> str:
            return END if state.get("outcome") == "done" else "act"

        def after_act(state: PlanningState) -> str:
            return "plan" if state.get("outcome") == "continue" else END

        builder = StateGraph(PlanningState)
        builder.add_node("plan", plan_node)
        builder.add_node("act", act_node)

        builder.add_edge(START, "plan")
        builder.add_conditional_edges("plan", after_plan, ["act", END])
        builder.add_conditional_edges("act", after_act, ["plan", END])

        return builder.compile()
