from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .types import PlannerContext

# re-export for contract/tests
__all__ = [
    "AgentConfig",
    "AppConfig",
    "ClusterConfig",
    "ConfigError",
    "OracleConfig",
    "PolicyConfig",
    "load_config",
]


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

CLUSTER_BACKENDS = {"kubectl", "memory"}
UNRELATED_REPLY_MODES = {"abandon", "reprompt"}


def _expand_env_in_str(value: str, *, path: str) -> str:
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in os.environ or os.environ[key] == "":
            raise ConfigError(f"environment variable {key!r} is not set", path=path)
        return os.environ[key]

    return _ENV_PATTERN.sub(repl, value)


def _expand_env(obj: Any, *, path: str) -> Any:
    if isinstance(obj, str):
        return _expand_env_in_str(obj, path=path)
    if isinstance(obj, list):
        return [_expand_env(v, path=path) for v in obj]
    if isinstance(obj, dict):
        return {k: _expand_env(v, path=f"{path}.{k}" if path else str(k)) for k, v in obj.items()}
    return obj


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=key)
    return value


def _str_list(value: Any, *, path: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ConfigError("must be a list of strings", path=path)
    return list(value)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class OracleConfig:
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout_s: float = 60.0
    max_retries: int = 2
    temperature: float = 0.0


@dataclass(frozen=True)
class ClusterConfig:
    backend: str = "kubectl"
    kubectl: str = "kubectl"
    context: str | None = None
    kubeconfig: str | None = None
    timeout_s: float = 30.0


@dataclass(frozen=True)
class PolicyConfig:
    default_namespace: str = "dev"
    allowed_namespaces: list[str] = field(default_factory=lambda: ["dev"])
    max_replicas: int = 20
    allowed_image_prefixes: list[str] = field(default_factory=list)

    def planner_context(self) -> PlannerContext:
        return PlannerContext(
            default_namespace=self.default_namespace,
            allowed_namespaces=frozenset(self.allowed_namespaces),
            max_replicas=self.max_replicas,
            allowed_image_prefixes=tuple(self.allowed_image_prefixes),
        )


@dataclass(frozen=True)
class AgentConfig:
    max_iterations: int = 10
    on_unrelated_reply: str = "abandon"
    max_result_chars: int = 4000


@dataclass(frozen=True)
class AppConfig:
    oracle: OracleConfig = field(default_factory=OracleConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)


def load_config(path: str | Path) -> AppConfig:
    """Load YAML config and expand ${ENV_VAR} placeholders."""

    # Local dev: allow injecting secrets from .env (do not commit it).
    load_dotenv(override=False)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("config file does not exist", path=str(config_path))

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except Exception as e:  # noqa: BLE001
        raise ConfigError(f"YAML parse failed: {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("top level must be a YAML mapping", path=str(config_path))

    expanded = _expand_env(raw, path="")
    return AppConfig(
        oracle=_load_oracle(_section(expanded, "oracle")),
        cluster=_load_cluster(_section(expanded, "cluster")),
        policy=_load_policy(_section(expanded, "policy")),
        agent=_load_agent(_section(expanded, "agent")),
    )


def _load_oracle(raw: dict[str, Any]) -> OracleConfig:
    api_key = _optional_str(raw.get("api_key")) or _optional_str(os.getenv("OPENAI_API_KEY"))

    cfg = OracleConfig(
        api_key=api_key,
        base_url=str(raw.get("base_url", OracleConfig.base_url)),
        model=str(raw.get("model", OracleConfig.model)),
        timeout_s=float(raw.get("timeout_s", OracleConfig.timeout_s)),
        max_retries=int(raw.get("max_retries", OracleConfig.max_retries)),
        temperature=float(raw.get("temperature", OracleConfig.temperature)),
    )
    if not cfg.model.strip():
        raise ConfigError("must be a non-empty string", path="oracle.model")
    return cfg


def _load_cluster(raw: dict[str, Any]) -> ClusterConfig:
    cfg = ClusterConfig(
        backend=str(raw.get("backend", ClusterConfig.backend)),
        kubectl=str(raw.get("kubectl", ClusterConfig.kubectl)),
        context=_optional_str(raw.get("context")),
        kubeconfig=_optional_str(raw.get("kubeconfig")),
        timeout_s=float(raw.get("timeout_s", ClusterConfig.timeout_s)),
    )
    if cfg.backend not in CLUSTER_BACKENDS:
        raise ConfigError(f"unsupported backend: {cfg.backend!r}", path="cluster.backend")
    if cfg.timeout_s <= 0:
        raise ConfigError("must be > 0", path="cluster.timeout_s")
    return cfg


def _load_policy(raw: dict[str, Any]) -> PolicyConfig:
    default_namespace = str(raw.get("default_namespace", PolicyConfig.default_namespace))
    allowed = raw.get("allowed_namespaces")
    allowed_namespaces = _str_list(allowed, path="policy.allowed_namespaces") if allowed is not None else [default_namespace]

    cfg = PolicyConfig(
        default_namespace=default_namespace,
        allowed_namespaces=allowed_namespaces,
        max_replicas=int(raw.get("max_replicas", PolicyConfig.max_replicas)),
        allowed_image_prefixes=_str_list(raw.get("allowed_image_prefixes"), path="policy.allowed_image_prefixes"),
    )
    if not cfg.default_namespace.strip():
        raise ConfigError("must be a non-empty string", path="policy.default_namespace")
    if cfg.max_replicas < 0:
        raise ConfigError("must be >= 0", path="policy.max_replicas")
    return cfg


def _load_agent(raw: dict[str, Any]) -> AgentConfig:
    cfg = AgentConfig(
        max_iterations=int(raw.get("max_iterations", AgentConfig.max_iterations)),
        on_unrelated_reply=str(raw.get("on_unrelated_reply", AgentConfig.on_unrelated_reply)),
        max_result_chars=int(raw.get("max_result_chars", AgentConfig.max_result_chars)),
    )
    if cfg.max_iterations < 1:
        raise ConfigError("must be an integer >= 1", path="agent.max_iterations")
    if cfg.on_unrelated_reply not in UNRELATED_REPLY_MODES:
        raise ConfigError(
            f"must be one of {sorted(UNRELATED_REPLY_MODES)}", path="agent.on_unrelated_reply"
        )
    if cfg.max_result_chars < 200:
        raise ConfigError("must be >= 200", path="agent.max_result_chars")
    return cfg
