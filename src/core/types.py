from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ToolCall:
    """One proposed cluster operation (wire name + structured arguments)."""

    tool: str
    # A mapping for well-formed plans; anything else is rejected at dispatch.
    args: Any = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool, "args": dict(self.args) if isinstance(self.args, dict) else self.args}


@dataclass(frozen=True, slots=True)
class ToolResult:
    tool: str
    args: dict[str, Any]
    ok: bool
    result: Any

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool, "args": dict(self.args), "ok": self.ok, "result": self.result}


@dataclass(frozen=True, slots=True)
class Plan:
    summary: str
    tool_calls: list[ToolCall]
    done: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "toolCalls": [c.to_dict() for c in self.tool_calls],
            "done": self.done,
        }


@dataclass(frozen=True, slots=True)
class PendingAction:
    """Mutating calls waiting for an explicit confirm/cancel reply."""

    originating_request_text: str
    plan: Plan
    pending_tool_calls: list[ToolCall]
    prior_results: list[ToolResult]


@dataclass(frozen=True, slots=True)
class PlannerContext:
    """Per-turn ambient configuration; doubles as the dispatch policy context."""

    default_namespace: str = "dev"
    allowed_namespaces: frozenset[str] = frozenset({"dev"})
    max_replicas: int = 20
    allowed_image_prefixes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "defaultNamespace": self.default_namespace,
            "allowedNamespaces": sorted(self.allowed_namespaces),
            "maxReplicas": self.max_replicas,
            "allowedImagePrefixes": list(self.allowed_image_prefixes),
        }
