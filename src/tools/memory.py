"""Dict-backed cluster used for offline runs (`--fake`) and tests."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Any

from core.errors import BackendError, ResourceConflictError, ResourceNotFoundError

from .backend import NAMESPACE, ListOptions, ResourceKind


@dataclass(frozen=True, slots=True)
class BackendCall:
    verb: str
    kind: str
    namespace: str | None
    name: str | None


def _matches_labels(obj: dict[str, Any], selector: str | None) -> bool:
    if not selector:
        return True
    labels = (obj.get("metadata") or {}).get("labels") or {}
    for term in selector.split(","):
        term = term.strip()
        if not term:
            continue
        if "!=" in term:
            key, value = term.split("!=", 1)
            if labels.get(key.strip()) == value.strip():
                return False
        elif "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key.strip().rstrip("=")) != value.strip().lstrip("="):
                return False
        elif term not in labels:
            return False
    return True


def _matches_fields(obj: dict[str, Any], selector: str | None) -> bool:
    if not selector:
        return True
    for term in selector.split(","):
        if "=" not in term:
            continue
        path, value = term.split("=", 1)
        cur: Any = obj
        for part in path.strip().split("."):
            cur = cur.get(part) if isinstance(cur, dict) else None
        if str(cur) != value.strip().lstrip("="):
            return False
    return True


def strategic_merge(base: Any, patch: Any) -> Any:
    """Approximation of a strategic merge patch.

    Mappings merge recursively, lists of named objects merge by `name`, any
    other value is replaced. A None value removes the key.
    """

    if isinstance(base, dict) and isinstance(patch, dict):
        out = dict(base)
        for key, value in patch.items():
            if value is None:
                out.pop(key, None)
            elif key in out:
                out[key] = strategic_merge(out[key], value)
            else:
                out[key] = copy.deepcopy(value)
        return out
    if isinstance(base, list) and isinstance(patch, list) and all(
        isinstance(x, dict) and "name" in x for x in base + patch
    ):
        merged = [copy.deepcopy(x) for x in base]
        index = {x["name"]: i for i, x in enumerate(merged)}
        for item in patch:
            if item["name"] in index:
                merged[index[item["name"]]] = strategic_merge(merged[index[item["name"]]], item)
            else:
                merged.append(copy.deepcopy(item))
        return merged
    return copy.deepcopy(patch)


def merge_patch(base: Any, patch: Any) -> Any:
    """RFC 7386 JSON merge patch."""

    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    out = dict(base) if isinstance(base, dict) else {}
    for key, value in patch.items():
        if value is None:
            out.pop(key, None)
        else:
            out[key] = merge_patch(out.get(key), value)
    return out


class InMemoryBackend:
    """A tiny fake API server.

    Objects are stored by (resource, namespace, name). Every invocation is
    appended to `calls` so tests can assert what reached the backend.
    """

    def __init__(self, *, namespaces: list[str] | None = None) -> None:
        self._objects: dict[tuple[str, str | None, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._resource_version = 0
        self.calls: list[BackendCall] = []
        for ns in namespaces or []:
            self._store(NAMESPACE, {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": ns}}, None)

    def seed(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None = None) -> None:
        """Insert an object without recording a backend call."""

        with self._lock:
            self._store(kind, manifest, namespace)

    def mutating_calls(self) -> list[BackendCall]:
        return [c for c in self.calls if c.verb not in {"list", "get"}]

    def _record(self, verb: str, kind: ResourceKind, namespace: str | None, name: str | None) -> None:
        self.calls.append(BackendCall(verb=verb, kind=kind.kind, namespace=namespace, name=name))

    def _key(self, kind: ResourceKind, namespace: str | None, name: str) -> tuple[str, str | None, str]:
        return (kind.resource, namespace if kind.namespaced else None, name)

    def _store(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        obj = copy.deepcopy(manifest)
        meta = obj.setdefault("metadata", {})
        name = meta.get("name")
        if not isinstance(name, str) or not name:
            raise BackendError("metadata.name is required")
        if kind.namespaced:
            if not namespace:
                raise BackendError("namespace is required")
            meta["namespace"] = namespace
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        self._resource_version += 1
        meta["resourceVersion"] = str(self._resource_version)
        if kind.kind == "Deployment":
            replicas = (obj.get("spec") or {}).get("replicas", 1)
            obj["status"] = {"replicas": replicas, "availableReplicas": replicas, "updatedReplicas": replicas}
        self._objects[self._key(kind, namespace, name)] = obj
        return copy.deepcopy(obj)

    def _require_namespace(self, kind: ResourceKind, namespace: str | None) -> None:
        if kind.namespaced and self._key(NAMESPACE, None, namespace or "") not in self._objects:
            raise ResourceNotFoundError(f'namespaces "{namespace}" not found')

    def _require(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]:
        obj = self._objects.get(self._key(kind, namespace, name))
        if obj is None:
            raise ResourceNotFoundError(f'{kind.resource} "{name}" not found')
        return obj

    def list(self, kind: ResourceKind, namespace: str | None, options: ListOptions) -> dict[str, Any]:
        with self._lock:
            self._record("list", kind, namespace, None)
            ns = namespace if kind.namespaced else None
            matched = [
                copy.deepcopy(obj)
                for (resource, obj_ns, _), obj in sorted(self._objects.items(), key=lambda kv: kv[0][2])
                if resource == kind.resource
                and (ns is None or obj_ns == ns)
                and _matches_labels(obj, options.label_selector)
                and _matches_fields(obj, options.field_selector)
            ]

        start = int(options.continue_token) if options.continue_token and options.continue_token.isdigit() else 0
        end = start + options.limit if options.limit else len(matched)
        page = matched[start:end]
        token = str(end) if end < len(matched) else None
        return {"kind": f"{kind.kind}List", "items": page, "metadata": {"continue": token}}

    def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]:
        with self._lock:
            self._record("get", kind, namespace, name)
            return copy.deepcopy(self._require(kind, name, namespace))

    def create(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        name = (manifest.get("metadata") or {}).get("name")
        with self._lock:
            self._record("create", kind, namespace, name)
            self._require_namespace(kind, namespace)
            if self._key(kind, namespace, str(name or "")) in self._objects:
                raise ResourceConflictError(f'{kind.resource} "{name}" already exists')
            return self._store(kind, manifest, namespace)

    def replace(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        name = str((manifest.get("metadata") or {}).get("name") or "")
        with self._lock:
            self._record("replace", kind, namespace, name)
            self._require(kind, name, namespace)
            return self._store(kind, manifest, namespace)

    def patch(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None,
        patch: dict[str, Any],
        *,
        strategy: str = "strategic",
    ) -> dict[str, Any]:
        with self._lock:
            self._record("patch", kind, namespace, name)
            current = self._require(kind, name, namespace)
            merged = strategic_merge(current, patch) if strategy == "strategic" else merge_patch(current, patch)
            merged.setdefault("metadata", {})["name"] = name
            return self._store(kind, merged, namespace)

    def delete(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]:
        with self._lock:
            self._record("delete", kind, namespace, name)
            self._require(kind, name, namespace)
            del self._objects[self._key(kind, namespace, name)]
        return {"status": "Success", "details": {"name": name, "kind": kind.plural}}
