from __future__ import annotations

from pathlib import Path

import pytest

from core.config import AppConfig, load_config
from core.errors import ConfigError


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "app.yaml"
    p.write_text(text.lstrip(), encoding="utf-8")
    return p


def test_load_config_expands_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KC_TEST_API_KEY", "k_test")
    monkeypatch.setenv("KC_TEST_CONTEXT", "staging")

    p = _write(
        tmp_path,
        """
oracle:
  api_key: ${KC_TEST_API_KEY}
cluster:
  context: ${KC_TEST_CONTEXT}
""",
    )

    cfg = load_config(p)
    assert cfg.oracle.api_key == "k_test"
    assert cfg.cluster.context == "staging"


def test_load_config_missing_env_raises_with_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KC_TEST_MISSING", raising=False)

    p = _write(
        tmp_path,
        """
oracle:
  api_key: ${KC_TEST_MISSING}
""",
    )

    with pytest.raises(ConfigError) as ei:
        load_config(p)

    assert "KC_TEST_MISSING" in str(ei.value)
    assert ei.value.path == "oracle.api_key"


def test_api_key_falls_back_to_openai_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "k_env")
    cfg = load_config(_write(tmp_path, "oracle:\n  model: gpt-4o\n"))
    assert cfg.oracle.api_key == "k_env"
    assert cfg.oracle.model == "gpt-4o"


def test_defaults_match_dataclasses(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    cfg = load_config(_write(tmp_path, "{}\n"))
    default = AppConfig()

    assert cfg.cluster == default.cluster
    assert cfg.agent == default.agent
    assert cfg.policy.default_namespace == "dev"
    assert cfg.policy.allowed_namespaces == ["dev"]
    assert cfg.agent.max_iterations == 10
    assert cfg.agent.on_unrelated_reply == "abandon"


def test_allowed_namespaces_default_to_default_namespace(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, "policy:\n  default_namespace: team-a\n"))
    assert cfg.policy.allowed_namespaces == ["team-a"]

    ctx = cfg.policy.planner_context()
    assert ctx.default_namespace == "team-a"
    assert ctx.allowed_namespaces == frozenset({"team-a"})


def test_policy_section_builds_planner_context(tmp_path: Path) -> None:
    p = _write(
        tmp_path,
        """
policy:
  default_namespace: dev
  allowed_namespaces: [dev, qa]
  max_replicas: 5
  allowed_image_prefixes: ["nginx:", "registry.local/"]
""",
    )

    ctx = load_config(p).policy.planner_context()
    assert ctx.allowed_namespaces == frozenset({"dev", "qa"})
    assert ctx.max_replicas == 5
    assert ctx.allowed_image_prefixes == ("nginx:", "registry.local/")


@pytest.mark.parametrize(
    "text, path",
    [
        ("cluster:\n  backend: helm\n", "cluster.backend"),
        ("agent:\n  on_unrelated_reply: ignore\n", "agent.on_unrelated_reply"),
        ("agent:\n  max_iterations: 0\n", "agent.max_iterations"),
        ("policy:\n  max_replicas: -1\n", "policy.max_replicas"),
        ("policy:\n  allowed_namespaces: dev\n", "policy.allowed_namespaces"),
        ("agent: [1, 2]\n", "agent"),
    ],
)
def test_invalid_values_name_the_offending_key(tmp_path: Path, text: str, path: str) -> None:
    with pytest.raises(ConfigError) as ei:
        load_config(_write(tmp_path, text))
    assert ei.value.path == path


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.yaml")


def test_repo_configs_app_yaml_loadable() -> None:
    root = Path(__file__).resolve().parents[1]
    cfg = load_config(root / "configs" / "app.yaml")
    assert cfg.cluster.backend == "kubectl"
    assert cfg.agent.max_iterations == 10
