"""Deterministic pattern planner used when the oracle gives nothing usable.

Rules are tried in order; the first match wins. With an empty history an
unmatched request raises UnrecognizedRequest. With a non-empty history the
planner ends the loop (`done=True`, no calls) so whatever was gathered gets
formatted.
"""

from __future__ import annotations

import re
from typing import Any

from core.errors import UnrecognizedRequest
from core.types import Plan, PlannerContext, ToolCall, ToolResult
from tools.operations import Operation

_NAME = r"([a-z0-9][a-z0-9.-]*)"
_I = re.IGNORECASE

_PODS = re.compile(r"\bpods?\b", _I)
_ALL_NAMESPACES = re.compile(
    r"\b(?:in|across)\s+(?:all|every|each)\s+(?:the\s+)?namespaces?\b|\ball\s+namespaces\b|\bcluster[- ]wide\b", _I
)
_ALL_PODS = re.compile(r"\ball\s+(?:the\s+)?pods\b", _I)
_IN_NAMESPACE = re.compile(r"\bin\s+(?:the\s+)?(?:namespace\s+)?([a-z0-9][a-z0-9-]*)", _I)
_NOT_A_NAMESPACE = {"all", "every", "each", "namespace", "namespaces"}

_NAMESPACE_QUESTION = re.compile(r"\b(?:list|what|which|show|get)\b.*\bnamespaces\b|\b(?:what|which)\s+namespace\b", _I)

_LIST = re.compile(
    r"\b(?:list|show|get)\s+(?:me\s+)?(?:all\s+)?(?:the\s+)?"
    r"(pods?|deployments?|services?|svc|config\s?maps?|events?)\b",
    _I,
)
_LIST_OPS = {
    "pod": Operation.LIST_NAMESPACED_POD,
    "deployment": Operation.LIST_NAMESPACED_DEPLOYMENT,
    "service": Operation.LIST_NAMESPACED_SERVICE,
    "svc": Operation.LIST_NAMESPACED_SERVICE,
    "configmap": Operation.LIST_NAMESPACED_CONFIG_MAP,
    "event": Operation.LIST_NAMESPACED_EVENT,
}

_STATUS = (
    re.compile(rf"\bstatus\s+(?:of|for)\s+(?:the\s+)?(?:deployment\s+)?{_NAME}", _I),
    re.compile(rf"\bis\s+(?:the\s+)?(?:deployment\s+)?{_NAME}\s+(?:healthy|ready|running|up)\b", _I),
)

_SCALE = re.compile(r"\bscale\s+(?:deployment\s+)?(\S+)\s+to\s+(\d+)", _I)

_CREATE = re.compile(
    r"\b(deploy|create|run)\s+(?:an?\s+|the\s+|new\s+)*"
    r"(?:(pod|deployment|namespace|service|config\s?map)\s+)?"
    rf"(?:(?:named|called)\s+)?{_NAME}"
    r"(?:\s+(pod|deployment|namespace|service|config\s?map)\b)?",
    _I,
)
_IMAGE = re.compile(r"\b(?:image|using)\s+([^\s,]+)", _I)
_REPLICAS = re.compile(r"\b(\d+)\s+replicas?\b", _I)
_PORT = re.compile(r"\bport\s+(\d+)", _I)
_KEY_VALUE = re.compile(r"([A-Za-z0-9_.-]+)=([^\s,]+)")
_NOT_A_NAME = {"a", "an", "the", "in", "to", "with", "image", "using", "new", "named", "called"}

_UPDATE_IMAGE = (
    re.compile(rf"\b(?:update|set)\s+(?:deployment\s+)?{_NAME}\s+image\s+to\s+([^\s,]+)", _I),
    re.compile(rf"\b(?:update|set)\s+(?:the\s+)?image\s+(?:of|for)\s+(?:deployment\s+)?{_NAME}\s+to\s+([^\s,]+)", _I),
)
_UPDATE_CONFIG_MAP = re.compile(rf"\b(?:update|set)\s+config\s?map\s+{_NAME}\s+(.+)", _I)
_UPDATE_SERVICE = re.compile(rf"\b(?:update|set)\s+service\s+{_NAME}\s+(?:to\s+)?(?:use\s+)?port\s+(\d+)", _I)

_DELETE = re.compile(rf"\b(?:delete|remove)\s+(?:the\s+)?(?:deployment\s+)?{_NAME}", _I)
# Kind words after "delete" that name something other than a deployment.
_OTHER_KINDS = {
    "pod", "pods", "service", "services", "svc", "configmap", "configmaps", "config",
    "namespace", "namespaces", "secret", "secrets", "event", "events", "ingress", "node", "nodes",
}


def _clean_name(value: str) -> str:
    return value.lower().rstrip(".-")


def _namespace_in(text: str, default: str) -> str:
    for m in _IN_NAMESPACE.finditer(text):
        ns = m.group(1).lower()
        if ns not in _NOT_A_NAMESPACE:
            return ns
    return default


def _namespaces_from_history(history: list[ToolResult]) -> list[str] | None:
    for r in history:
        if r.tool == Operation.LIST_NAMESPACES.value and r.ok and isinstance(r.result, list):
            return [str(ns) for ns in r.result]
    return None


def _asked_namespaces_before(history: list[ToolResult]) -> bool:
    return any(r.tool == Operation.LIST_NAMESPACES.value for r in history)


def _asks_all_pods(text: str) -> bool:
    if not _PODS.search(text):
        return False
    if _ALL_NAMESPACES.search(text):
        return True
    return bool(_ALL_PODS.search(text)) and _namespace_in(text, "") == ""


def _call(op: Operation, **args: Any) -> ToolCall:
    return ToolCall(tool=op.value, args=args)


def _create_plan(m: re.Match[str], text: str, ctx: PlannerContext) -> Plan | None:
    verb = m.group(1).lower()
    resource = (m.group(2) or m.group(4) or "").lower().replace(" ", "")
    name = _clean_name(m.group(3))
    if name in _NOT_A_NAME:
        return None
    if not resource:
        resource = "pod" if verb == "run" else "deployment"

    if resource == "namespace":
        return Plan(f"Create namespace {name}", [_call(Operation.CREATE_NAMESPACE, name=name)], True)

    namespace = _namespace_in(text, ctx.default_namespace)

    if resource == "service":
        port = _PORT.search(text)
        args = {"namespace": namespace, "name": name, "port": int(port.group(1)) if port else 80, "selector": {"app": name}}
        return Plan(f"Create service {name} in {namespace}", [_call(Operation.CREATE_SERVICE, **args)], True)

    if resource == "configmap":
        data = dict(_KEY_VALUE.findall(text))
        return Plan(
            f"Create config map {name} in {namespace}",
            [_call(Operation.CREATE_CONFIG_MAP, namespace=namespace, name=name, data=data)],
            True,
        )

    image_match = _IMAGE.search(text)
    image = image_match.group(1) if image_match else f"{name}:latest"
    check_ns = _call(Operation.GET_NAMESPACE, name=namespace)

    if resource == "pod":
        return Plan(
            f"Deploy pod {name} in {namespace}",
            [check_ns, _call(Operation.CREATE_POD, namespace=namespace, name=name, image=image)],
            True,
        )

    args: dict[str, Any] = {"namespace": namespace, "name": name, "image": image}
    replicas = _REPLICAS.search(text)
    args["replicas"] = int(replicas.group(1)) if replicas else 1
    port = _PORT.search(text)
    if port:
        args["port"] = int(port.group(1))
    return Plan(f"Deploy {name} in {namespace}", [check_ns, _call(Operation.CREATE_DEPLOYMENT, **args)], True)


def fallback_plan(request_text: str, ctx: PlannerContext, history: list[ToolResult]) -> Plan:
    text = request_text.strip()
    default_ns = ctx.default_namespace

    if _asks_all_pods(text):
        namespaces = _namespaces_from_history(history)
        if namespaces is not None:
            calls = [_call(Operation.LIST_NAMESPACED_POD, namespace=ns) for ns in namespaces]
            return Plan("List pods in all namespaces", calls, True)
        if _asked_namespaces_before(history):
            return Plan("Could not list namespaces", [], True)
        return Plan("List all namespaces first", [_call(Operation.LIST_NAMESPACES)], False)

    if _NAMESPACE_QUESTION.search(text):
        return Plan("List all namespaces", [_call(Operation.LIST_NAMESPACES)], True)

    if m := _LIST.search(text):
        word = m.group(1).lower().replace(" ", "")
        op = _LIST_OPS[word if word == "svc" else word.rstrip("s")]
        namespace = _namespace_in(text, default_ns)
        return Plan(f"List {op.value[len('listNamespaced'):].lower()}s in {namespace}", [_call(op, namespace=namespace)], True)

    for pattern in _STATUS:
        if m := pattern.search(text):
            name = _clean_name(m.group(1))
            namespace = _namespace_in(text, default_ns)
            return Plan(
                f"Check status of deployment {name}",
                [_call(Operation.GET_DEPLOYMENT_STATUS, namespace=namespace, name=name)],
                True,
            )

    if m := _SCALE.search(text):
        name = _clean_name(m.group(1))
        replicas = int(m.group(2))
        return Plan(
            f"Scale deployment {name} to {replicas}",
            [_call(Operation.SCALE_DEPLOYMENT, name=name, replicas=replicas, namespace=_namespace_in(text, default_ns))],
            True,
        )

    if m := _CREATE.search(text):
        plan = _create_plan(m, text, ctx)
        if plan is not None:
            return plan

    for pattern in _UPDATE_IMAGE:
        if m := pattern.search(text):
            name = _clean_name(m.group(1))
            return Plan(
                f"Update image of {name} to {m.group(2)}",
                [
                    _call(
                        Operation.UPDATE_DEPLOYMENT_IMAGE,
                        namespace=_namespace_in(text, default_ns),
                        name=name,
                        image=m.group(2),
                    )
                ],
                True,
            )

    if m := _UPDATE_CONFIG_MAP.search(text):
        data = dict(_KEY_VALUE.findall(m.group(2)))
        if data:
            name = _clean_name(m.group(1))
            return Plan(
                f"Update config map {name}",
                [_call(Operation.UPDATE_CONFIG_MAP, namespace=_namespace_in(text, default_ns), name=name, data=data)],
                True,
            )

    if m := _UPDATE_SERVICE.search(text):
        name = _clean_name(m.group(1))
        return Plan(
            f"Update service {name} port to {m.group(2)}",
            [
                _call(
                    Operation.UPDATE_SERVICE,
                    namespace=_namespace_in(text, default_ns),
                    name=name,
                    port=int(m.group(2)),
                )
            ],
            True,
        )

    if m := _DELETE.search(text):
        name = _clean_name(m.group(1))
        if name not in _NOT_A_NAME and name not in _OTHER_KINDS:
            return Plan(
                f"Delete deployment {name}",
                [_call(Operation.DELETE_DEPLOYMENT, namespace=_namespace_in(text, default_ns), name=name)],
                True,
            )

    if history:
        return Plan("Nothing further to do", [], True)
    raise UnrecognizedRequest(request_text)
