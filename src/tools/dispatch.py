from __future__ import annotations

from typing import Any, Callable

from core.errors import InvalidArgumentsError, KubeCopilotError
from core.types import PlannerContext, ToolCall, ToolResult
from observability.logging import get_logger

from .arguments import (
    optional_int,
    optional_mapping,
    optional_name,
    optional_str,
    require_int,
    require_mapping,
    require_name,
    require_namespace,
    require_str,
)
from .backend import (
    CONFIG_MAP,
    DEPLOYMENT,
    EVENT,
    NAMESPACE,
    POD,
    SERVICE,
    ClusterBackend,
    ListOptions,
    ResourceKind,
    custom_kind,
)
from .operations import Operation
from .policy import PolicyError, SafetyPolicy
from .result_codec import to_json_friendly
from .summarize import summarize_list

DEFAULT_LIST_LIMIT = 50

Args = dict[str, Any]
Handler = Callable[[ClusterBackend, Args], Any]

# Operations that address the cluster scope or name a namespace directly.
_NO_NAMESPACE_ARG = {Operation.LIST_NAMESPACES, Operation.GET_NAMESPACE, Operation.CREATE_NAMESPACE}


def _list_options(args: Args) -> ListOptions:
    return ListOptions(
        label_selector=optional_str(args, "labelSelector"),
        field_selector=optional_str(args, "fieldSelector"),
        limit=optional_int(args, "limit", DEFAULT_LIST_LIMIT),
        continue_token=optional_str(args, "continueToken"),
    )


def _list(kind: ResourceKind) -> Handler:
    def handler(backend: ClusterBackend, args: Args) -> Any:
        raw = backend.list(kind, require_namespace(args), _list_options(args))
        return summarize_list(raw, kind.kind)

    return handler


def _name_of(obj: dict[str, Any]) -> dict[str, Any]:
    return {"name": (obj.get("metadata") or {}).get("name")}


def _list_namespaces(backend: ClusterBackend, args: Args) -> Any:
    raw = backend.list(NAMESPACE, None, ListOptions())
    names = [(i.get("metadata") or {}).get("name") for i in raw.get("items") or []]
    return [n for n in names if n]


def _get_namespace(backend: ClusterBackend, args: Args) -> Any:
    return _name_of(backend.get(NAMESPACE, require_namespace(args, "name"), None))


def _list_events(backend: ClusterBackend, args: Args) -> Any:
    namespace = require_namespace(args)
    selector = f"involvedObject.namespace={namespace}"
    pod_name = optional_name(args, "podName")
    if pod_name:
        selector += f",involvedObject.name={pod_name}"
    options = ListOptions(
        field_selector=selector,
        limit=optional_int(args, "limit", DEFAULT_LIST_LIMIT),
        continue_token=optional_str(args, "continueToken"),
    )
    return summarize_list(backend.list(EVENT, namespace, options), EVENT.kind)


def _list_custom(backend: ClusterBackend, args: Args) -> Any:
    kind = custom_kind(args.get("kind"))
    raw = backend.list(kind, require_namespace(args), _list_options(args))
    return summarize_list(raw, kind.kind)


def _get(kind: ResourceKind) -> Handler:
    def handler(backend: ClusterBackend, args: Args) -> Any:
        return backend.get(kind, require_name(args), require_namespace(args))

    return handler


def _get_custom(backend: ClusterBackend, args: Args) -> Any:
    kind = custom_kind(args.get("kind"))
    return backend.get(kind, require_name(args), require_namespace(args))


def _deployment_status(backend: ClusterBackend, args: Args) -> Any:
    obj = backend.get(DEPLOYMENT, require_name(args), require_namespace(args))
    return obj.get("status") or {}


def _create_namespace(backend: ClusterBackend, args: Args) -> Any:
    manifest = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": require_namespace(args, "name")}}
    return _name_of(backend.create(NAMESPACE, manifest, None))


def _create_pod(backend: ClusterBackend, args: Args) -> Any:
    name = require_name(args)
    manifest = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name},
        "spec": {"restartPolicy": "Never", "containers": [{"name": "main", "image": require_str(args, "image")}]},
    }
    return _name_of(backend.create(POD, manifest, require_namespace(args)))


def _create_deployment(backend: ClusterBackend, args: Args) -> Any:
    name = require_name(args)
    container: dict[str, Any] = {"name": "app", "image": require_str(args, "image")}
    port = optional_int(args, "port")
    if port:
        container["ports"] = [{"containerPort": port}]
    manifest = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name},
        "spec": {
            "replicas": optional_int(args, "replicas", 1),
            "selector": {"matchLabels": {"app": name}},
            "template": {"metadata": {"labels": {"app": name}}, "spec": {"containers": [container]}},
        },
    }
    return _name_of(backend.create(DEPLOYMENT, manifest, require_namespace(args)))


def _create_service(backend: ClusterBackend, args: Args) -> Any:
    name = require_name(args)
    port = require_int(args, "port")
    manifest = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name},
        "spec": {
            "type": optional_str(args, "type") or "ClusterIP",
            "selector": optional_mapping(args, "selector") or {"app": name},
            "ports": [{"port": port, "targetPort": optional_int(args, "targetPort", port)}],
        },
    }
    return _name_of(backend.create(SERVICE, manifest, require_namespace(args)))


def _create_config_map(backend: ClusterBackend, args: Args) -> Any:
    manifest: dict[str, Any] = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": require_name(args)}}
    for key in ("data", "binaryData"):
        value = optional_mapping(args, key)
        if value is not None:
            manifest[key] = value
    return _name_of(backend.create(CONFIG_MAP, manifest, require_namespace(args)))


def _create_custom(backend: ClusterBackend, args: Args) -> Any:
    kind = custom_kind(args.get("kind"))
    manifest = require_mapping(args, "manifest")
    manifest.setdefault("apiVersion", kind.api_version)
    manifest.setdefault("kind", kind.kind)
    return backend.create(kind, manifest, require_namespace(args))


def _update_deployment(backend: ClusterBackend, args: Args) -> Any:
    patch = require_mapping(args, "patch")
    updated = backend.patch(DEPLOYMENT, require_name(args), require_namespace(args), patch)
    return _name_of(updated)


def _update_deployment_image(backend: ClusterBackend, args: Args) -> Any:
    namespace = require_namespace(args)
    image = require_str(args, "image")
    deployment = backend.get(DEPLOYMENT, require_name(args), namespace)
    pod_spec = deployment.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})
    containers = pod_spec.get("containers") or []
    if not containers:
        raise InvalidArgumentsError("No containers found to update")
    containers[0]["image"] = image
    pod_spec["containers"] = containers
    return _name_of(backend.replace(DEPLOYMENT, deployment, namespace))


def _update_service(backend: ClusterBackend, args: Args) -> Any:
    namespace = require_namespace(args)
    port = optional_int(args, "port")
    target_port = optional_int(args, "targetPort")
    selector = optional_mapping(args, "selector")
    service_type = optional_str(args, "type")
    if not (port or target_port or selector or service_type):
        raise InvalidArgumentsError("No service fields to update")

    service = backend.get(SERVICE, require_name(args), namespace)
    spec = service.setdefault("spec", {})
    if service_type:
        spec["type"] = service_type
    if selector:
        spec["selector"] = selector
    if port or target_port:
        spec["ports"] = [{"port": port or 80, "targetPort": target_port or port or 80}]
    return _name_of(backend.replace(SERVICE, service, namespace))


def _update_config_map(backend: ClusterBackend, args: Args) -> Any:
    namespace = require_namespace(args)
    data = optional_mapping(args, "data")
    binary_data = optional_mapping(args, "binaryData")
    if not data and not binary_data:
        raise InvalidArgumentsError("No ConfigMap data to update")

    cm = backend.get(CONFIG_MAP, require_name(args), namespace)
    cm["data"] = {**(cm.get("data") or {}), **(data or {})}
    cm["binaryData"] = {**(cm.get("binaryData") or {}), **(binary_data or {})}
    return _name_of(backend.replace(CONFIG_MAP, cm, namespace))


def _update_custom(backend: ClusterBackend, args: Args) -> Any:
    kind = custom_kind(args.get("kind"))
    patch = require_mapping(args, "patch")
    return backend.patch(
        kind, require_name(args), require_namespace(args), patch, strategy="merge"
    )


def _delete_deployment(backend: ClusterBackend, args: Args) -> Any:
    res = backend.delete(DEPLOYMENT, require_name(args), require_namespace(args))
    return {"status": res.get("status"), "details": res.get("details")}


def _scale_deployment(backend: ClusterBackend, args: Args) -> Any:
    namespace = require_namespace(args)
    replicas = require_int(args, "replicas")
    deployment = backend.get(DEPLOYMENT, require_name(args), namespace)
    deployment.setdefault("spec", {})["replicas"] = replicas
    updated = backend.replace(DEPLOYMENT, deployment, namespace)
    return {"name": (updated.get("metadata") or {}).get("name"), "replicas": (updated.get("spec") or {}).get("replicas")}


_HANDLERS: dict[Operation, Handler] = {
    Operation.LIST_NAMESPACES: _list_namespaces,
    Operation.GET_NAMESPACE: _get_namespace,
    Operation.LIST_NAMESPACED_POD: _list(POD),
    Operation.LIST_NAMESPACED_EVENT: _list_events,
    Operation.LIST_NAMESPACED_DEPLOYMENT: _list(DEPLOYMENT),
    Operation.LIST_NAMESPACED_SERVICE: _list(SERVICE),
    Operation.LIST_NAMESPACED_CONFIG_MAP: _list(CONFIG_MAP),
    Operation.LIST_CUSTOM_OBJECT: _list_custom,
    Operation.GET_SERVICE: _get(SERVICE),
    Operation.GET_CONFIG_MAP: _get(CONFIG_MAP),
    Operation.GET_CUSTOM_OBJECT: _get_custom,
    Operation.GET_DEPLOYMENT_STATUS: _deployment_status,
    Operation.CREATE_NAMESPACE: _create_namespace,
    Operation.CREATE_POD: _create_pod,
    Operation.CREATE_DEPLOYMENT: _create_deployment,
    Operation.CREATE_SERVICE: _create_service,
    Operation.CREATE_CONFIG_MAP: _create_config_map,
    Operation.CREATE_CUSTOM_OBJECT: _create_custom,
    Operation.UPDATE_DEPLOYMENT: _update_deployment,
    Operation.UPDATE_DEPLOYMENT_IMAGE: _update_deployment_image,
    Operation.UPDATE_SERVICE: _update_service,
    Operation.UPDATE_CONFIG_MAP: _update_config_map,
    Operation.UPDATE_CUSTOM_OBJECT: _update_custom,
    Operation.DELETE_DEPLOYMENT: _delete_deployment,
    Operation.SCALE_DEPLOYMENT: _scale_deployment,
}

_missing = set(Operation) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"operations without handler: {sorted(o.value for o in _missing)}")


def handled_operations() -> frozenset[Operation]:
    return frozenset(_HANDLERS)


def effective_args(op: Operation, args: Args, context: PlannerContext) -> Args:
    """Copy of `args` with a missing namespace filled from the context default."""

    out = dict(args)
    if op not in _NO_NAMESPACE_ARG and not out.get("namespace"):
        out["namespace"] = context.default_namespace
    return out


def _echo_args(call: ToolCall) -> dict[str, Any]:
    return dict(call.args) if isinstance(call.args, dict) else {}


class ToolExecutor:
    """Run one ToolCall against the cluster backend.

    `execute` never raises: unsupported operations, bad arguments, policy
    violations and backend failures all become `ToolResult(ok=False)` with a
    human-readable message as the result.
    """

    def __init__(self, backend: ClusterBackend) -> None:
        self._backend = backend
        self._log = get_logger("kube_copilot.dispatch")

    def execute(self, call: ToolCall, context: PlannerContext) -> ToolResult:
        op = Operation.parse(call.tool)
        if op is None:
            return self._failed(call, f"Unsupported operation: {call.tool}")
        if not isinstance(call.args, dict):
            return self._failed(call, f"Tool arguments must be an object, got {type(call.args).__name__}")

        try:
            args = effective_args(op, call.args, context)
            SafetyPolicy.from_context(context).check(op, args)
            result = _HANDLERS[op](self._backend, args)
        except PolicyError as e:
            self._log.warning("policy_violation", tool=call.tool, reason=str(e))
            return self._failed(call, str(e))
        except KubeCopilotError as e:
            return self._failed(call, str(e))
        except Exception as e:  # noqa: BLE001
            self._log.exception("tool_error", tool=call.tool)
            return self._failed(call, f"{type(e).__name__}: {e}")

        self._log.info("tool_ok", tool=call.tool)
        return ToolResult(tool=call.tool, args=_echo_args(call), ok=True, result=to_json_friendly(result))

    def _failed(self, call: ToolCall, message: str) -> ToolResult:
        self._log.info("tool_failed", tool=call.tool, reason=message)
        return ToolResult(tool=call.tool, args=_echo_args(call), ok=False, result=message)
