from __future__ import annotations

import pytest

from core.errors import InvalidArgumentsError
from core.types import PlannerContext
from tools.operations import Operation
from tools.policy import (
    ImageNotAllowedError,
    NamespaceNotAllowedError,
    ReplicasExceedMaximumError,
    SafetyPolicy,
    images_in_patch,
)


def _policy(**overrides: object) -> SafetyPolicy:
    ctx = PlannerContext(
        default_namespace="dev",
        allowed_namespaces=frozenset({"dev", "qa"}),
        max_replicas=5,
        allowed_image_prefixes=("nginx:",),
    )
    policy = SafetyPolicy.from_context(ctx)
    if overrides:
        policy = SafetyPolicy(
            allowed_namespaces=overrides.get("allowed_namespaces", ctx.allowed_namespaces),  # type: ignore[arg-type]
            allowed_image_prefixes=overrides.get("allowed_image_prefixes", ctx.allowed_image_prefixes),  # type: ignore[arg-type]
            max_replicas=overrides.get("max_replicas", ctx.max_replicas),  # type: ignore[arg-type]
        )
    return policy


def test_allowed_namespace_passes_for_reads_and_writes() -> None:
    policy = _policy()
    policy.check(Operation.LIST_NAMESPACED_POD, {"namespace": "qa"})
    policy.check(Operation.DELETE_DEPLOYMENT, {"namespace": "dev", "name": "web"})


@pytest.mark.parametrize(
    "op, args",
    [
        (Operation.LIST_NAMESPACED_POD, {"namespace": "prod"}),
        (Operation.GET_DEPLOYMENT_STATUS, {"namespace": "prod", "name": "web"}),
        (Operation.SCALE_DEPLOYMENT, {"namespace": "prod", "name": "web", "replicas": 1}),
        (Operation.CREATE_NAMESPACE, {"name": "prod"}),
        (Operation.GET_NAMESPACE, {"name": "prod"}),
    ],
)
def test_namespace_outside_allow_set_is_rejected(op: Operation, args: dict) -> None:
    with pytest.raises(NamespaceNotAllowedError) as ei:
        _policy().check(op, args)
    assert str(ei.value) == "Namespace 'prod' is not allowed"


def test_list_namespaces_is_cluster_scoped() -> None:
    _policy().check(Operation.LIST_NAMESPACES, {})


def test_image_prefix_enforced() -> None:
    policy = _policy()
    policy.check(Operation.CREATE_POD, {"namespace": "dev", "name": "web", "image": "nginx:1.25"})

    with pytest.raises(ImageNotAllowedError) as ei:
        policy.check(Operation.CREATE_POD, {"namespace": "dev", "name": "cache", "image": "redis:latest"})
    assert str(ei.value) == "Image 'redis:latest' is not allowed"

    with pytest.raises(ImageNotAllowedError):
        policy.check(Operation.UPDATE_DEPLOYMENT_IMAGE, {"namespace": "dev", "name": "web", "image": "httpd:2"})


def test_empty_prefix_list_allows_any_image() -> None:
    policy = _policy(allowed_image_prefixes=())
    policy.check(Operation.CREATE_DEPLOYMENT, {"namespace": "dev", "name": "cache", "image": "redis:latest"})


def test_images_inside_deployment_patch_are_checked() -> None:
    patch = {
        "spec": {
            "template": {
                "spec": {
                    "containers": [{"name": "app", "image": "nginx:1.25"}],
                    "initContainers": [{"name": "init", "image": "busybox:1"}],
                }
            }
        }
    }
    assert images_in_patch(patch) == ["nginx:1.25", "busybox:1"]

    with pytest.raises(ImageNotAllowedError):
        _policy().check(Operation.UPDATE_DEPLOYMENT, {"namespace": "dev", "name": "web", "patch": patch})


def test_replica_ceiling() -> None:
    policy = _policy()
    policy.check(Operation.SCALE_DEPLOYMENT, {"namespace": "dev", "name": "web", "replicas": 5})

    with pytest.raises(ReplicasExceedMaximumError) as ei:
        policy.check(Operation.SCALE_DEPLOYMENT, {"namespace": "dev", "name": "web", "replicas": 6})
    assert str(ei.value) == "Replicas 6 exceed maximum 5"

    with pytest.raises(ReplicasExceedMaximumError):
        policy.check(
            Operation.CREATE_DEPLOYMENT,
            {"namespace": "dev", "name": "web", "image": "nginx:1", "replicas": 9},
        )

    with pytest.raises(ReplicasExceedMaximumError):
        policy.check(Operation.UPDATE_DEPLOYMENT, {"namespace": "dev", "name": "web", "patch": {"spec": {"replicas": 50}}})


def test_replicas_must_be_integers() -> None:
    policy = _policy()
    with pytest.raises(InvalidArgumentsError):
        policy.check(Operation.SCALE_DEPLOYMENT, {"namespace": "dev", "name": "web", "replicas": "many"})
    with pytest.raises(InvalidArgumentsError):
        policy.check(Operation.SCALE_DEPLOYMENT, {"namespace": "dev", "name": "web", "replicas": -1})
