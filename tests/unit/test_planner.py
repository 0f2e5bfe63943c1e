from __future__ import annotations

import json
import threading

import pytest

from core.errors import OracleUnavailableError, PlanningFailure
from core.types import Plan, PlannerContext, ToolCall, ToolResult
from oracle import ScriptedOracle
from planning import Planner

CTX = PlannerContext(default_namespace="dev", allowed_namespaces=frozenset({"dev", "qa"}))


def test_oracle_plan_is_used() -> None:
    doc = {"summary": "List pods", "toolCalls": [{"tool": "listNamespacedPod", "args": {"namespace": "qa"}}], "done": True}
    oracle = ScriptedOracle([["{\"summary\": ", json.dumps(doc)[len('{"summary": '):]]])

    plan = Planner(oracle).plan("list pods in qa", CTX, [])

    assert plan == Plan("List pods", [ToolCall("listNamespacedPod", {"namespace": "qa"})], True)


def test_empty_oracle_output_uses_fallback() -> None:
    plan = Planner(ScriptedOracle()).plan("What namespaces exist?", CTX, [])
    assert plan == Plan("List all namespaces", [ToolCall("listNamespaces", {})], True)


def test_unparseable_output_uses_fallback() -> None:
    oracle = ScriptedOracle(["I think you should scale it."])
    plan = Planner(oracle).plan("scale payments-api to 3", CTX, [])
    assert plan.tool_calls == [ToolCall("scaleDeployment", {"name": "payments-api", "replicas": 3, "namespace": "dev"})]


def test_transport_failure_is_planning_failure() -> None:
    oracle = ScriptedOracle([OracleUnavailableError("connection refused")])
    with pytest.raises(PlanningFailure) as ei:
        Planner(oracle).plan("What namespaces exist?", CTX, [])
    assert "connection refused" in str(ei.value)


def test_cancellation_is_planning_failure() -> None:
    cancel = threading.Event()
    cancel.set()
    oracle = ScriptedOracle(['{"summary": "x", "toolCalls": [], "done": true}'])
    with pytest.raises(PlanningFailure):
        Planner(oracle).plan("What namespaces exist?", CTX, [], cancel=cancel)


def test_history_is_sent_to_oracle_and_truncated() -> None:
    oracle = ScriptedOracle()
    history = [ToolResult("listNamespacedPod", {"namespace": "dev"}, True, {"items": ["x" * 5000]})]

    Planner(oracle, max_result_chars=300).plan("list pods in all namespaces", CTX, history)

    messages = oracle.requests[0]
    assert messages[0]["role"] == "system"
    assert "listNamespaces" in messages[0]["content"]
    assert '"allowedNamespaces": ["dev", "qa"]' in messages[0]["content"]
    assert messages[1]["content"] == "User request: list pods in all namespaces"
    assert "Previous tool results" in messages[2]["content"]
    assert "...(truncated)" in messages[2]["content"]
    assert len(messages[2]["content"]) < 1000


def test_no_history_means_no_history_message() -> None:
    oracle = ScriptedOracle()
    Planner(oracle).plan("What namespaces exist?", CTX, [])
    assert len(oracle.requests[0]) == 2


def test_one_malformed_call_does_not_discard_the_plan() -> None:
    doc = {
        "summary": "Inspect qa",
        "toolCalls": [{"tool": "listNamespacedPod", "args": {"namespace": "qa"}}, {"tool": None, "args": "oops"}],
        "done": True,
    }
    plan = Planner(ScriptedOracle([json.dumps(doc)])).plan("list pods in qa", CTX, [])

    assert plan.summary == "Inspect qa"
    assert plan.tool_calls == [ToolCall("listNamespacedPod", {"namespace": "qa"}), ToolCall("", "oops")]
