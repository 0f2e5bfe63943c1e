"""Cluster backend port and the resource-kind registry it is addressed by."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from core.errors import InvalidArgumentsError


@dataclass(frozen=True, slots=True)
class ResourceKind:
    kind: str
    group: str
    version: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def resource(self) -> str:
        """kubectl resource argument (`pods`, `deployments.apps`, ...)."""

        return f"{self.plural}.{self.group}" if self.group else self.plural

    def api_path(self, namespace: str | None = None, name: str | None = None) -> str:
        base = f"/apis/{self.group}/{self.version}" if self.group else f"/api/{self.version}"
        if self.namespaced and namespace:
            base += f"/namespaces/{namespace}"
        base += f"/{self.plural}"
        if name:
            base += f"/{name}"
        return base


NAMESPACE = ResourceKind("Namespace", "", "v1", "namespaces", namespaced=False)
POD = ResourceKind("Pod", "", "v1", "pods")
EVENT = ResourceKind("Event", "", "v1", "events")
SERVICE = ResourceKind("Service", "", "v1", "services")
CONFIG_MAP = ResourceKind("ConfigMap", "", "v1", "configmaps")
DEPLOYMENT = ResourceKind("Deployment", "apps", "v1", "deployments")

CUSTOM_KINDS: dict[str, ResourceKind] = {
    k.kind.lower(): k
    for k in (
        ResourceKind("VirtualService", "networking.istio.io", "v1beta1", "virtualservices"),
        ResourceKind("DestinationRule", "networking.istio.io", "v1beta1", "destinationrules"),
        ResourceKind("Gateway", "networking.istio.io", "v1beta1", "gateways"),
        ResourceKind("ServiceEntry", "networking.istio.io", "v1beta1", "serviceentries"),
        ResourceKind("AuthorizationPolicy", "security.istio.io", "v1beta1", "authorizationpolicies"),
        ResourceKind("PeerAuthentication", "security.istio.io", "v1beta1", "peerauthentications"),
        ResourceKind("RequestAuthentication", "security.istio.io", "v1beta1", "requestauthentications"),
    )
}


def custom_kind(kind: Any) -> ResourceKind:
    resolved = CUSTOM_KINDS.get(str(kind or "").strip().lower())
    if resolved is None:
        raise InvalidArgumentsError(f"Unsupported custom resource kind: {kind}")
    return resolved


@dataclass(frozen=True, slots=True)
class ListOptions:
    label_selector: str | None = None
    field_selector: str | None = None
    limit: int | None = None
    continue_token: str | None = None


class ClusterBackend(Protocol):
    """Kubernetes verbs over raw API objects.

    Implementations raise BackendError (or a subclass) on failure; they never
    apply safety policy themselves.
    """

    def list(self, kind: ResourceKind, namespace: str | None, options: ListOptions) -> dict[str, Any]: ...

    def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]: ...

    def create(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]: ...

    def replace(self, kind: ResourceKind, manifest: dict[str, Any], namespace: str | None) -> dict[str, Any]: ...

    def patch(
        self,
        kind: ResourceKind,
        name: str,
        namespace: str | None,
        patch: dict[str, Any],
        *,
        strategy: str = "strategic",
    ) -> dict[str, Any]: ...

    def delete(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any]: ...
