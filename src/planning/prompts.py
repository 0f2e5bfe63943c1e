from __future__ import annotations

import json

from core.types import PlannerContext, ToolResult
from oracle import Message
from tools.operations import ARGUMENT_SHAPES, MUTATING
from tools.result_codec import dumps_results

HELP_TEXT = """Ask Kubernetes questions in natural language.

Examples:
- What namespaces exist?
- List pods in all namespaces
- Deploy nginx in dev
- Scale payments-api to 3
- Is payments-api healthy?

You will be asked to **confirm** before any changes are made.
"""


def _tool_lines() -> str:
    lines = []
    for op, shape in ARGUMENT_SHAPES.items():
        marker = " (mutating, needs confirmation)" if op in MUTATING else ""
        lines.append(f"- {op.value} {shape}{marker}")
    return "\n".join(lines)


def planner_system_prompt(ctx: PlannerContext) -> str:
    return f"""You are a Kubernetes planning engine.

Respond with a single JSON object and nothing else (no prose, no markdown):

{{
  "summary": string,
  "toolCalls": [{{"tool": "...", "args": {{...}}}}],
  "done": boolean
}}

Allowed tools:
{_tool_lines()}

Policy context:
{json.dumps(ctx.to_dict(), ensure_ascii=False)}

Rules:
- Use only the allowed tools and only namespaces from allowedNamespaces.
- When a missing namespace is implied, use defaultNamespace.
- Never request more than maxReplicas replicas.
- If you need information from one tool before calling another, plan ONE step at a time
  and set "done": false; the tool results will be sent back to you.
- Set "done": true once the listed calls are enough to answer the user.
- Example, all pods in all namespaces: first listNamespaces with done=false, then one
  listNamespacedPod per namespace with done=true.
- If unsure, choose the safest read-only tool.
"""


def planner_messages(
    request_text: str,
    ctx: PlannerContext,
    history: list[ToolResult],
    *,
    max_result_chars: int = 0,
) -> list[Message]:
    messages: list[Message] = [
        {"role": "system", "content": planner_system_prompt(ctx)},
        {"role": "user", "content": f"User request: {request_text}"},
    ]
    if history:
        messages.append(
            {
                "role": "user",
                "content": (
                    "Previous tool results:\n"
                    f"{dumps_results(history, max_chars=max_result_chars)}\n\n"
                    "Use these results to decide the next step. Set done=true if you have enough information."
                ),
            }
        )
    return messages


FORMATTER_INSTRUCTION = (
    "Format a concise markdown response for the user. Explain what was attempted, "
    "what succeeded and what failed. Do not invent results."
)


def formatter_messages(
    request_text: str,
    summary: str,
    results: list[ToolResult],
    *,
    max_result_chars: int = 0,
) -> list[Message]:
    return [
        {"role": "system", "content": FORMATTER_INSTRUCTION},
        {
            "role": "user",
            "content": (
                f"Request: {request_text}\n"
                f"Summary: {summary}\n"
                f"Results: {dumps_results(results, indent=None, max_chars=max_result_chars)}"
            ),
        },
    ]
