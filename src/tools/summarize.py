"""Compact, kind-specific projections of Kubernetes list responses.

List results are fed back into later planning rounds, so each item is reduced
to a handful of fields and the continuation token is kept for paging.
"""

from __future__ import annotations

from typing import Any


def summarize_list(raw: dict[str, Any], kind: str | None = None) -> dict[str, Any]:
    items = raw.get("items") if isinstance(raw, dict) else None
    if not isinstance(items, list):
        items = []
    meta = raw.get("metadata") if isinstance(raw, dict) else None
    meta = meta if isinstance(meta, dict) else {}
    return {
        "items": [summarize_item(i, kind) for i in items if isinstance(i, dict)],
        "continueToken": meta.get("continue") or meta.get("_continue") or None,
    }


def summarize_item(item: dict[str, Any], kind: str | None = None) -> dict[str, Any]:
    kind = kind or item.get("kind")
    meta = item.get("metadata") or {}
    spec = item.get("spec") or {}
    status = item.get("status") or {}
    base: dict[str, Any] = {
        "kind": kind,
        "name": meta.get("name"),
        "namespace": meta.get("namespace"),
        "labels": meta.get("labels"),
    }

    if kind == "Pod":
        base.update(
            phase=status.get("phase"),
            nodeName=spec.get("nodeName") or status.get("nodeName"),
            podIP=status.get("podIP"),
            containers=[{"name": c.get("name"), "image": c.get("image")} for c in spec.get("containers") or []],
        )
    elif kind == "Deployment":
        base.update(
            replicas=spec.get("replicas"),
            availableReplicas=status.get("availableReplicas"),
            updatedReplicas=status.get("updatedReplicas"),
            strategy=(spec.get("strategy") or {}).get("type"),
        )
    elif kind == "Service":
        base.update(
            type=spec.get("type"),
            clusterIP=spec.get("clusterIP"),
            ports=[
                {"port": p.get("port"), "targetPort": p.get("targetPort"), "protocol": p.get("protocol")}
                for p in spec.get("ports") or []
            ],
            selector=spec.get("selector"),
        )
    elif kind == "ConfigMap":
        base.update(
            dataKeys=sorted((item.get("data") or {}).keys()),
            binaryDataKeys=sorted((item.get("binaryData") or {}).keys()),
        )
    elif kind == "Event":
        involved = item.get("involvedObject") or {}
        base.update(
            reason=item.get("reason"),
            message=item.get("message"),
            type=item.get("type"),
            involvedObject={"kind": involved.get("kind"), "name": involved.get("name")},
        )
    else:
        for key in ("hosts", "gateways", "ports", "servers"):
            if isinstance(spec.get(key), list):
                base[key] = spec[key]
        if spec.get("selector"):
            base["selector"] = spec["selector"]
    return base
