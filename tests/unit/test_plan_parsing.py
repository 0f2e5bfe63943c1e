from __future__ import annotations

import json

import pytest

from core.types import Plan, ToolCall
from planning.parsing import ParsedPlan, RecoveredPlan, Unparseable, parse_plan_text

PLAN_DOC = {
    "summary": "Scale payments-api",
    "toolCalls": [{"tool": "scaleDeployment", "args": {"name": "payments-api", "replicas": 3, "namespace": "dev"}}],
    "done": True,
}
EXPECTED = Plan(
    summary="Scale payments-api",
    tool_calls=[ToolCall("scaleDeployment", {"name": "payments-api", "replicas": 3, "namespace": "dev"})],
    done=True,
)


def test_strict_json_is_parsed_directly() -> None:
    outcome = parse_plan_text(json.dumps(PLAN_DOC))
    assert isinstance(outcome, ParsedPlan)
    assert outcome.plan == EXPECTED


def test_fenced_with_trailing_comma_matches_well_formed() -> None:
    text = """```json
{
  "summary": "Scale payments-api",
  "toolCalls": [
    {"tool": "scaleDeployment", "args": {"name": "payments-api", "replicas": 3, "namespace": "dev",},},
  ],
  "done": true,
}
```"""
    outcome = parse_plan_text(text)
    assert isinstance(outcome, RecoveredPlan)
    assert outcome.plan == parse_plan_text(json.dumps(PLAN_DOC)).plan  # type: ignore[union-attr]
    assert outcome.repairs == ("strip_fences", "trailing_commas")


def test_prose_around_json_is_trimmed() -> None:
    text = f"Sure! Here is the plan:\n{json.dumps(PLAN_DOC)}\nLet me know."
    outcome = parse_plan_text(text)
    assert isinstance(outcome, RecoveredPlan)
    assert outcome.plan == EXPECTED
    assert "trim_prose" in outcome.repairs


def test_python_literals_and_single_quotes() -> None:
    text = "{'summary': 'List namespaces', 'toolCalls': [{'tool': 'listNamespaces', 'args': {}}], 'done': True}"
    outcome = parse_plan_text(text)
    assert isinstance(outcome, RecoveredPlan)
    assert outcome.plan == Plan("List namespaces", [ToolCall("listNamespaces", {})], True)


def test_array_is_unwrapped_to_first_plan_shaped_element() -> None:
    text = json.dumps([{"note": "thinking"}, PLAN_DOC, {"summary": "other", "toolCalls": [], "done": False}])
    outcome = parse_plan_text(text)
    assert isinstance(outcome, RecoveredPlan)
    assert outcome.plan == EXPECTED
    assert outcome.repairs == ("array_unwrap",)


def test_missing_args_become_empty_mapping() -> None:
    outcome = parse_plan_text('{"summary": "ns", "toolCalls": [{"tool": "listNamespaces"}], "done": true}')
    assert isinstance(outcome, ParsedPlan)
    assert outcome.plan.tool_calls == [ToolCall("listNamespaces", {})]


def test_unknown_tool_is_not_rejected_by_parsing() -> None:
    outcome = parse_plan_text('{"summary": "x", "toolCalls": [{"tool": "rebootNode", "args": {}}], "done": true}')
    assert isinstance(outcome, ParsedPlan)
    assert outcome.plan.tool_calls[0].tool == "rebootNode"


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "I cannot help with that.",
        '{"summary": "x", "toolCalls": [], "done": "yes"}',
        '{"summary": "x", "done": true}',
        "[1, 2, 3]",
        "{not json at all",
    ],
)
def test_unrecoverable_text_is_unparseable(text: str) -> None:
    assert isinstance(parse_plan_text(text), Unparseable)


def test_malformed_entry_keeps_the_rest_of_the_plan() -> None:
    text = json.dumps(
        {
            "summary": "Mixed",
            "toolCalls": [
                {"tool": "listNamespaces", "args": {}},
                {"tool": 42},
                {"tool": "getService", "args": "oops"},
                {"args": {"namespace": "dev"}},
            ],
            "done": True,
        }
    )
    outcome = parse_plan_text(text)
    assert isinstance(outcome, ParsedPlan)
    assert outcome.plan.tool_calls == [
        ToolCall("listNamespaces", {}),
        ToolCall("42", {}),
        ToolCall("getService", "oops"),
        ToolCall("", {"namespace": "dev"}),
    ]


def test_bare_string_entry_is_read_as_tool_name() -> None:
    outcome = parse_plan_text('{"summary": "ns", "toolCalls": ["listNamespaces"], "done": true}')
    assert isinstance(outcome, ParsedPlan)
    assert outcome.plan.tool_calls == [ToolCall("listNamespaces", {})]
