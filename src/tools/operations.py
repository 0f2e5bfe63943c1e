"""Closed set of cluster operations and the read-only/mutating classification.

`MUTATING` is the single source of truth for what needs human confirmation.
Every `Operation` member must appear in exactly one of `READ_ONLY` / `MUTATING`
and must have an argument shape in `ARGUMENT_SHAPES` (checked at import time).
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from core.types import ToolCall


class Operation(str, Enum):
    LIST_NAMESPACES = "listNamespaces"
    GET_NAMESPACE = "getNamespace"
    LIST_NAMESPACED_POD = "listNamespacedPod"
    LIST_NAMESPACED_EVENT = "listNamespacedEvent"
    LIST_NAMESPACED_DEPLOYMENT = "listNamespacedDeployment"
    LIST_NAMESPACED_SERVICE = "listNamespacedService"
    LIST_NAMESPACED_CONFIG_MAP = "listNamespacedConfigMap"
    LIST_CUSTOM_OBJECT = "listCustomObject"
    GET_SERVICE = "getService"
    GET_CONFIG_MAP = "getConfigMap"
    GET_CUSTOM_OBJECT = "getCustomObject"
    GET_DEPLOYMENT_STATUS = "getDeploymentStatus"

    CREATE_NAMESPACE = "createNamespace"
    CREATE_POD = "createPod"
    CREATE_DEPLOYMENT = "createDeployment"
    CREATE_SERVICE = "createService"
    CREATE_CONFIG_MAP = "createConfigMap"
    CREATE_CUSTOM_OBJECT = "createCustomObject"
    UPDATE_DEPLOYMENT = "updateDeployment"
    UPDATE_DEPLOYMENT_IMAGE = "updateDeploymentImage"
    UPDATE_SERVICE = "updateService"
    UPDATE_CONFIG_MAP = "updateConfigMap"
    UPDATE_CUSTOM_OBJECT = "updateCustomObject"
    DELETE_DEPLOYMENT = "deleteDeployment"
    SCALE_DEPLOYMENT = "scaleDeployment"

    @classmethod
    def parse(cls, tool: str) -> "Operation | None":
        try:
            return cls(tool)
        except ValueError:
            return None


READ_ONLY: frozenset[Operation] = frozenset(
    {
        Operation.LIST_NAMESPACES,
        Operation.GET_NAMESPACE,
        Operation.LIST_NAMESPACED_POD,
        Operation.LIST_NAMESPACED_EVENT,
        Operation.LIST_NAMESPACED_DEPLOYMENT,
        Operation.LIST_NAMESPACED_SERVICE,
        Operation.LIST_NAMESPACED_CONFIG_MAP,
        Operation.LIST_CUSTOM_OBJECT,
        Operation.GET_SERVICE,
        Operation.GET_CONFIG_MAP,
        Operation.GET_CUSTOM_OBJECT,
        Operation.GET_DEPLOYMENT_STATUS,
    }
)

MUTATING: frozenset[Operation] = frozenset(
    {
        Operation.CREATE_NAMESPACE,
        Operation.CREATE_POD,
        Operation.CREATE_DEPLOYMENT,
        Operation.CREATE_SERVICE,
        Operation.CREATE_CONFIG_MAP,
        Operation.CREATE_CUSTOM_OBJECT,
        Operation.UPDATE_DEPLOYMENT,
        Operation.UPDATE_DEPLOYMENT_IMAGE,
        Operation.UPDATE_SERVICE,
        Operation.UPDATE_CONFIG_MAP,
        Operation.UPDATE_CUSTOM_OBJECT,
        Operation.DELETE_DEPLOYMENT,
        Operation.SCALE_DEPLOYMENT,
    }
)

_LIST_ARGS = "labelSelector?: string, fieldSelector?: string, limit?: number, continueToken?: string"

# Shown to the oracle as the allowed-tool contract.
ARGUMENT_SHAPES: dict[Operation, str] = {
    Operation.LIST_NAMESPACES: "{}",
    Operation.GET_NAMESPACE: "{name: string}",
    Operation.LIST_NAMESPACED_POD: f"{{namespace: string, {_LIST_ARGS}}}",
    Operation.LIST_NAMESPACED_EVENT: "{namespace: string, podName?: string, limit?: number, continueToken?: string}",
    Operation.LIST_NAMESPACED_DEPLOYMENT: f"{{namespace: string, {_LIST_ARGS}}}",
    Operation.LIST_NAMESPACED_SERVICE: f"{{namespace: string, {_LIST_ARGS}}}",
    Operation.LIST_NAMESPACED_CONFIG_MAP: f"{{namespace: string, {_LIST_ARGS}}}",
    Operation.LIST_CUSTOM_OBJECT: f"{{namespace: string, kind: string, {_LIST_ARGS}}}",
    Operation.GET_SERVICE: "{namespace: string, name: string}",
    Operation.GET_CONFIG_MAP: "{namespace: string, name: string}",
    Operation.GET_CUSTOM_OBJECT: "{namespace: string, kind: string, name: string}",
    Operation.GET_DEPLOYMENT_STATUS: "{namespace: string, name: string}",
    Operation.CREATE_NAMESPACE: "{name: string}",
    Operation.CREATE_POD: "{namespace: string, name: string, image: string}",
    Operation.CREATE_DEPLOYMENT: "{namespace: string, name: string, image: string, replicas?: number, port?: number}",
    Operation.CREATE_SERVICE: (
        "{namespace: string, name: string, port: number, targetPort?: number, "
        "selector?: object, type?: string}"
    ),
    Operation.CREATE_CONFIG_MAP: "{namespace: string, name: string, data?: object, binaryData?: object}",
    Operation.CREATE_CUSTOM_OBJECT: "{namespace: string, kind: string, manifest: object}",
    Operation.UPDATE_DEPLOYMENT: "{namespace: string, name: string, patch: object (strategic merge patch)}",
    Operation.UPDATE_DEPLOYMENT_IMAGE: "{namespace: string, name: string, image: string}",
    Operation.UPDATE_SERVICE: (
        "{namespace: string, name: string, port?: number, targetPort?: number, "
        "selector?: object, type?: string}"
    ),
    Operation.UPDATE_CONFIG_MAP: "{namespace: string, name: string, data?: object, binaryData?: object}",
    Operation.UPDATE_CUSTOM_OBJECT: "{namespace: string, kind: string, name: string, patch: object (merge patch)}",
    Operation.DELETE_DEPLOYMENT: "{namespace: string, name: string}",
    Operation.SCALE_DEPLOYMENT: "{namespace: string, name: string, replicas: number}",
}


def _check_exhaustive() -> None:
    members = set(Operation)
    if READ_ONLY & MUTATING:
        raise RuntimeError(f"operations classified twice: {sorted(o.value for o in READ_ONLY & MUTATING)}")
    missing = members - (READ_ONLY | MUTATING)
    if missing:
        raise RuntimeError(f"unclassified operations: {sorted(o.value for o in missing)}")
    missing = members - set(ARGUMENT_SHAPES)
    if missing:
        raise RuntimeError(f"operations without argument shape: {sorted(o.value for o in missing)}")


_check_exhaustive()


def is_mutating(tool: str | Operation) -> bool:
    """True when executing `tool` changes cluster state.

    Identifiers outside the enumeration are reported as read-only: dispatch
    rejects them as unsupported, so they can never reach the backend.
    """

    op = tool if isinstance(tool, Operation) else Operation.parse(tool)
    return op is not None and op in MUTATING


def partition(calls: Iterable[ToolCall]) -> tuple[list[ToolCall], list[ToolCall]]:
    """Split calls into (read_only, mutating), keeping relative order."""

    read_only: list[ToolCall] = []
    mutating: list[ToolCall] = []
    for call in calls:
        (mutating if is_mutating(call.tool) else read_only).append(call)
    return read_only, mutating
