"""Safety policy: namespace allow-set, image prefixes and replica ceiling.

Policy rules:
- Every call that targets a namespace must target a member of the allow-set,
  whether it reads or writes.
- If the allowed image prefix list is empty, any image is allowed; otherwise
  every image a call would set must start with one of the prefixes.
- Any replica count a call would set must not exceed the configured maximum.

Violations are raised as PolicyError; the dispatcher turns them into failed
tool results before the backend is touched.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.errors import InvalidArgumentsError, KubeCopilotError
from core.types import PlannerContext

from .arguments import to_int
from .operations import Operation

# Operations whose `name` argument is itself the target namespace.
_NAMESPACE_BY_NAME = {Operation.CREATE_NAMESPACE, Operation.GET_NAMESPACE}
_CLUSTER_SCOPED = {Operation.LIST_NAMESPACES}
_IMAGE_ARG = {Operation.CREATE_POD, Operation.CREATE_DEPLOYMENT, Operation.UPDATE_DEPLOYMENT_IMAGE}


class PolicyError(KubeCopilotError):
    pass


class NamespaceNotAllowedError(PolicyError):
    pass


class ImageNotAllowedError(PolicyError):
    pass


class ReplicasExceedMaximumError(PolicyError):
    pass


def target_namespace(op: Operation, args: Mapping[str, Any]) -> str | None:
    if op in _CLUSTER_SCOPED:
        return None
    key = "name" if op in _NAMESPACE_BY_NAME else "namespace"
    value = args.get(key)
    return value if isinstance(value, str) else None


def requested_images(op: Operation, args: Mapping[str, Any]) -> list[str]:
    if op in _IMAGE_ARG:
        image = args.get("image")
        return [image] if isinstance(image, str) else []
    if op is Operation.UPDATE_DEPLOYMENT:
        return images_in_patch(args.get("patch"))
    return []


def images_in_patch(patch: Any) -> list[str]:
    pod_spec = _dig(patch, "spec", "template", "spec")
    if not isinstance(pod_spec, dict):
        return []
    images: list[str] = []
    for key in ("containers", "initContainers"):
        containers = pod_spec.get(key)
        if not isinstance(containers, list):
            continue
        for c in containers:
            if isinstance(c, dict) and isinstance(c.get("image"), str):
                images.append(c["image"])
    return images


def requested_replicas(op: Operation, args: Mapping[str, Any]) -> int | None:
    if op is Operation.SCALE_DEPLOYMENT:
        return to_int(args.get("replicas"), "replicas")
    if op is Operation.CREATE_DEPLOYMENT:
        value = args.get("replicas")
        return 1 if value is None else to_int(value, "replicas")
    if op is Operation.UPDATE_DEPLOYMENT:
        value = _dig(args.get("patch"), "spec", "replicas")
        return None if value is None else to_int(value, "patch.spec.replicas")
    return None


def _dig(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


class SafetyPolicy:
    """Evaluate whether a tool call may reach the cluster backend."""

    def __init__(
        self,
        *,
        allowed_namespaces: set[str] | frozenset[str],
        allowed_image_prefixes: list[str] | tuple[str, ...] = (),
        max_replicas: int,
    ) -> None:
        self._namespaces = frozenset(allowed_namespaces)
        self._image_prefixes = tuple(p for p in allowed_image_prefixes if isinstance(p, str) and p)
        self._max_replicas = int(max_replicas)

    @classmethod
    def from_context(cls, ctx: PlannerContext) -> "SafetyPolicy":
        return cls(
            allowed_namespaces=ctx.allowed_namespaces,
            allowed_image_prefixes=ctx.allowed_image_prefixes,
            max_replicas=ctx.max_replicas,
        )

    def check(self, op: Operation, args: Mapping[str, Any]) -> None:
        """Raise a PolicyError if the call is not permitted."""

        namespace = target_namespace(op, args)
        if namespace is not None and namespace not in self._namespaces:
            raise NamespaceNotAllowedError(f"Namespace '{namespace}' is not allowed")

        if self._image_prefixes:
            for image in requested_images(op, args):
                if not image.startswith(self._image_prefixes):
                    raise ImageNotAllowedError(f"Image '{image}' is not allowed")

        replicas = requested_replicas(op, args)
        if replicas is not None:
            if replicas < 0:
                raise InvalidArgumentsError(f"Replicas {replicas} must not be negative")
            if replicas > self._max_replicas:
                raise ReplicasExceedMaximumError(f"Replicas {replicas} exceed maximum {self._max_replicas}")
