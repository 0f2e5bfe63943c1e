"""Tolerant parsing of oracle output into a Plan.

Oracle text is often "almost JSON": wrapped in a markdown fence, surrounded by
prose, with trailing commas, Python literals or single quotes. Parsing tries
the text as-is first, then applies repairs one at a time and reports which of
them were needed.

Outcome:
- ParsedPlan: strict JSON that validated directly
- RecoveredPlan: validated after one or more repairs (`repairs` names them)
- Unparseable: nothing recoverable; the caller falls back
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, model_validator

from core.types import Plan, ToolCall

_FENCE = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_PY_LITERALS = ((re.compile(r"\bTrue\b"), "true"), (re.compile(r"\bFalse\b"), "false"), (re.compile(r"\bNone\b"), "null"))


class ToolCallDocument(BaseModel):
    """One entry of `toolCalls`.

    Shape problems inside a single entry (a numeric tool name, string args)
    are kept as-is so dispatch can fail that call alone.
    """

    model_config = ConfigDict(extra="ignore")

    tool: Any = None
    args: Any = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_entry(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value
        return {"tool": value}

    def to_call(self) -> ToolCall:
        tool = "" if self.tool is None else self.tool if isinstance(self.tool, str) else str(self.tool)
        if self.args is None:
            args: Any = {}
        elif isinstance(self.args, dict):
            args = dict(self.args)
        else:
            args = self.args
        return ToolCall(tool=tool, args=args)


class PlanDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: StrictStr
    tool_calls: list[ToolCallDocument] = Field(alias="toolCalls")
    done: StrictBool

    def to_plan(self) -> Plan:
        return Plan(
            summary=self.summary,
            tool_calls=[c.to_call() for c in self.tool_calls],
            done=self.done,
        )


@dataclass(frozen=True, slots=True)
class ParsedPlan:
    plan: Plan


@dataclass(frozen=True, slots=True)
class RecoveredPlan:
    plan: Plan
    repairs: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Unparseable:
    reason: str


PlanParseOutcome = Union[ParsedPlan, RecoveredPlan, Unparseable]


def _try_load(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _strip_fences(text: str) -> str | None:
    m = _FENCE.search(text)
    return m.group(1) if m else None


def _outermost_value(text: str) -> str | None:
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start : end + 1]


def _normalize_literals(text: str) -> str:
    for pattern, repl in _PY_LITERALS:
        text = pattern.sub(repl, text)
    return text


def _normalize_quotes(text: str) -> str:
    # Only when the document has no double quotes at all.
    if '"' in text or "'" not in text:
        return text
    return text.replace("'", '"')


def _repair_chain(text: str) -> tuple[Any, tuple[str, ...]] | None:
    repairs: list[str] = []
    candidate = text.strip()

    unfenced = _strip_fences(candidate)
    if unfenced is not None:
        candidate = unfenced
        repairs.append("strip_fences")
        ok, value = _try_load(candidate)
        if ok:
            return value, tuple(repairs)

    trimmed = _outermost_value(candidate)
    if trimmed is None:
        return None
    if trimmed != candidate:
        candidate = trimmed
        repairs.append("trim_prose")
        ok, value = _try_load(candidate)
        if ok:
            return value, tuple(repairs)

    steps = (
        ("trailing_commas", lambda s: _TRAILING_COMMA.sub(r"\1", s)),
        ("python_literals", _normalize_literals),
        ("single_quotes", _normalize_quotes),
    )
    for name, fix in steps:
        fixed = fix(candidate)
        if fixed == candidate:
            continue
        candidate = fixed
        repairs.append(name)
        ok, value = _try_load(candidate)
        if ok:
            return value, tuple(repairs)
    return None


def _validate(value: Any) -> Plan | None:
    try:
        return PlanDocument.model_validate(value).to_plan()
    except ValidationError:
        return None


def _select_plan(value: Any) -> tuple[Plan | None, bool]:
    """Return (plan, unwrapped_from_array)."""

    if isinstance(value, list):
        for element in value:
            if isinstance(element, dict):
                plan = _validate(element)
                if plan is not None:
                    return plan, True
        return None, True
    return _validate(value), False


def parse_plan_text(text: str) -> PlanParseOutcome:
    if not text or not text.strip():
        return Unparseable("empty response")

    ok, value = _try_load(text.strip())
    repairs: tuple[str, ...] = ()
    if not ok:
        recovered = _repair_chain(text)
        if recovered is None:
            return Unparseable("no recoverable JSON value")
        value, repairs = recovered

    plan, unwrapped = _select_plan(value)
    if plan is None:
        return Unparseable("JSON does not match the plan shape")
    if unwrapped:
        repairs = repairs + ("array_unwrap",)
    if repairs:
        return RecoveredPlan(plan=plan, repairs=repairs)
    return ParsedPlan(plan=plan)
