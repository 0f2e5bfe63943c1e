"""ClusterBackend that shells out to `kubectl`.

Authentication and cluster selection are delegated to kubeconfig (optionally
`--context` / `--kubeconfig`). Commands run with `shell=False` and an argument
list; manifests and patches travel as JSON on stdin / argv, never through a
shell. Resource and object names follow a `--` separator so kubectl never
reads them as flags.
"""

from __future__ import annotations

import json
import subprocess
from typing import Any
from urllib.parse import urlencode

from core.config import ClusterConfig
from core.errors import BackendError, ResourceConflictError, ResourceNotFoundError
from observability.logging import get_logger

from .backend import ListOptions, ResourceKind

_PATCH_TYPES = {"strategic": "strategic", "merge": "merge", "json": "json"}


def _classify_error(stderr: str) -> BackendError:
    text = stderr.strip() or "kubectl failed without output"
    lower = text.lower()
    if "notfound" in lower or "not found" in lower:
        return ResourceNotFoundError(text)
    if "alreadyexists" in lower or "already exists" in lower or "conflict" in lower:
        return ResourceConflictError(text)
    if "forbidden" in lower:
        return BackendError(f"Permission denied (check RBAC): {text}")
    if "unable to connect" in lower or "connection refused" in lower:
        return BackendError(f"Cannot connect to the cluster: {text}")
    return BackendError(text)


class KubectlBackend:
    def __init__(
        self,
        *,
        kubectl: str = "kubectl",
        context: str | None = None,
        kubeconfig: str | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._kubectl = kubectl
        self._context = context
        self._kubeconfig = kubeconfig
        self._timeout_s = float(timeout_s)
        self._log = get_logger("kube_copilot.kubectl")

    @classmethod
    def from_config(cls, cfg: ClusterConfig) -> "KubectlBackend":
        return cls(kubectl=cfg.kubectl, context=cfg.context, kubeconfig=cfg.kubeconfig, timeout_s=cfg.timeout_s)

    def _base(self) -> list[str]:
        cmd = [self._kubectl]
        if self._kubeconfig:
            cmd += ["--kubeconfig", self._kubeconfig]
        if self._context:
            cmd += ["--context", self._context]
        return cmd

    def _run(self, args: list[str], *, stdin: str | None = None) -> str:
        command = self._base() + args
        self._log.debug("kubectl_run", argv=command[1:])
        try:
            result = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self._timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise BackendError(f"kubectl timed out after {self._timeout_s:g}s") from e
        except FileNotFoundError as e:
            raise BackendError(f"kubectl executable not found: {self._kubectl}") from e

        if result.returncode != 0:
            raise _classify_error(result.stderr)
        return result.stdout

    def _run_json(self, args: list[str], *, stdin: str | None = None) -> dict[str, Any]:
        out = self._run(args, stdin=stdin)
        try:
            parsed = json.loads(out) if out.strip() else {}
        except json.JSONDecodeError as e:
            raise BackendError("Failed to parse kubectl output") from e
        if not isinstance(parsed, dict):
            raise BackendError("Unexpected kubectl output shape")
        return parsed

    @staticmethod
    def _ns_args(kind: ResourceKind, namespace: str | None) -> list[str]:
        return ["--namespace", namespace] if kind.namespaced and namespace else []

    def list(self, kind: ResourceKind, namespace: str | None, options: ListOptions) -> dict[str, Any]:
        # `get --raw` keeps limit/continue semantics of the API server.
        query: dict[str, str] = {}
        if options.label_selector:
            query["labelSelector"] = options.label_selector
        if options.field_selector:
            query["fieldSelector"] = options.field_selector
        if options.limit:
            query["limit"] = str(options.limit)
        if options.continue_token:
            query["continue"] = options.continue_token
        path = kind.api_path(namespace)
        if query:
            path += "?" + urlencode(query)
        return self._run_json(["get", "--raw", path])

    def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]:
        return self._run_json(["get", *self._ns_args(kind, namespace), "-o", "json", "--", kind.resource, name])

    def create(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        return self._run_json(
            ["create", *self._ns_args(kind, namespace), "-f", "-", "-o", "json"],
            stdin=json.dumps(manifest),
        )

    def replace(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        return self._run_json(
            ["replace", *self._ns_args(kind, namespace), "-f", "-", "-o", "json"],
            stdin=json.dumps(manifest),
        )

    def patch(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None,
        patch: dict[str, Any],
        *,
        strategy: str = "strategic",
    ) -> dict[str, Any]:
        patch_type = _PATCH_TYPES.get(strategy)
        if patch_type is None:
            raise BackendError(f"Unsupported patch strategy: {strategy}")
        return self._run_json(
            [
                "patch",
                *self._ns_args(kind, namespace),
                "--type",
                patch_type,
                "-p",
                json.dumps(patch),
                "-o",
                "json",
                "--",
                kind.resource,
                name,
            ]
        )

    def delete(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]:
        out = self._run(["delete", *self._ns_args(kind, namespace), "-o", "name", "--", kind.resource, name])
        return {"status": "Success", "details": {"name": name, "kind": kind.plural, "deleted": out.strip()}}
