from __future__ import annotations

from tools.result_codec import dumps_results, to_json_friendly, truncate
from tools.summarize import summarize_list
from core.types import ToolResult


def test_deployment_projection() -> None:
    raw = {
        "items": [
            {
                "kind": "Deployment",
                "metadata": {"name": "web", "namespace": "dev", "labels": {"app": "web"}, "uid": "x"},
                "spec": {"replicas": 3, "strategy": {"type": "RollingUpdate"}, "template": {}},
                "status": {"availableReplicas": 2, "updatedReplicas": 3},
            }
        ],
        "metadata": {"continue": "next"},
    }

    out = summarize_list(raw, "Deployment")

    assert out == {
        "items": [
            {
                "kind": "Deployment",
                "name": "web",
                "namespace": "dev",
                "labels": {"app": "web"},
                "replicas": 3,
                "availableReplicas": 2,
                "updatedReplicas": 3,
                "strategy": "RollingUpdate",
            }
        ],
        "continueToken": "next",
    }


def test_config_map_keys_only() -> None:
    raw = {"items": [{"metadata": {"name": "cfg"}, "data": {"b": "2", "a": "1"}, "binaryData": {"bin": "AA=="}}]}
    item = summarize_list(raw, "ConfigMap")["items"][0]
    assert item["dataKeys"] == ["a", "b"]
    assert item["binaryDataKeys"] == ["bin"]
    assert "data" not in item


def test_malformed_list_is_empty() -> None:
    assert summarize_list({"items": None}, "Pod") == {"items": [], "continueToken": None}


def test_results_are_truncated_per_payload() -> None:
    results = [ToolResult("listNamespacedPod", {"namespace": "dev"}, True, {"items": ["x" * 100]})]
    text = dumps_results(results, indent=None, max_chars=20)
    assert "...(truncated)" in text
    assert truncate("abc", 0) == "abc"
    assert to_json_friendly({1: (object,)})["1"][0].startswith("<class")
