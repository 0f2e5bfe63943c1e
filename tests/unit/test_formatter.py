from __future__ import annotations

import json

from core.errors import OracleUnavailableError
from core.types import ToolResult
from oracle import ScriptedOracle
from planning import ResultFormatter

RESULTS = [ToolResult("listNamespaces", {}, True, ["dev", "qa"])]


def test_chunks_are_streamed_and_joined() -> None:
    seen: list[str] = []
    oracle = ScriptedOracle([["There are ", "2 namespaces: dev, qa."]])

    text = ResultFormatter(oracle).format("what namespaces?", "List all namespaces", RESULTS, on_text=seen.append)

    assert text == "There are 2 namespaces: dev, qa."
    assert seen == ["There are ", "2 namespaces: dev, qa."]
    user = oracle.requests[0][-1]["content"]
    assert "what namespaces?" in user
    assert '"listNamespaces"' in user


def test_empty_output_falls_back_to_raw_block() -> None:
    seen: list[str] = []
    text = ResultFormatter(ScriptedOracle()).format("x", "y", RESULTS, on_text=seen.append)

    assert text.startswith("```json\n")
    assert text.endswith("```\n")
    body = text[len("```json\n") : -len("```\n")]
    assert json.loads(body) == [{"tool": "listNamespaces", "args": {}, "ok": True, "result": ["dev", "qa"]}]
    assert seen == [text]


def test_oracle_failure_before_text_falls_back() -> None:
    oracle = ScriptedOracle([OracleUnavailableError("down")])
    text = ResultFormatter(oracle).format("x", "y", RESULTS)
    assert text.startswith("```json")
