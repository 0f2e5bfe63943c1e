from __future__ import annotations

import argparse
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from observability.logging import configure_logging, get_logger
from oracle import OpenAIOracle, Oracle, ScriptedOracle
from orchestrator import Orchestrator, SessionStore, TurnOutput, workspace_session_key
from planning import Planner, ResultFormatter
from tools.backend import CONFIG_MAP, DEPLOYMENT, POD, SERVICE, ClusterBackend
from tools.dispatch import ToolExecutor
from tools.kubectl import KubectlBackend
from tools.memory import InMemoryBackend

from .config import AppConfig, load_config
from .errors import ConfigError

DEFAULT_CONFIG = "configs/app.yaml"
EXIT_WORDS = {"exit", "quit", ":q"}


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kube-copilot", description="Natural-language Kubernetes assistant")
    p.add_argument("--config", default=DEFAULT_CONFIG, help="YAML config path")
    p.add_argument("--log-level", default="WARNING", help="Logging level (e.g. DEBUG, INFO, WARNING)")
    p.add_argument("--text", default=None, help="Run a single turn with this text and exit")
    p.add_argument(
        "--fake",
        action="store_true",
        help="Offline mode: scripted oracle (fallback planner) and an in-memory cluster",
    )
    p.add_argument("--session", default=None, help="Session key (defaults to the current directory)")
    return p


def fake_cluster() -> InMemoryBackend:
    """In-memory cluster with a few namespaces and a small demo workload."""

    backend = InMemoryBackend(namespaces=["dev", "qa", "kube-system"])
    labels = {"app": "payments-api"}
    backend.seed(
        DEPLOYMENT,
        {
            "metadata": {"name": "payments-api", "labels": labels},
            "spec": {
                "replicas": 2,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": {"containers": [{"name": "app", "image": "nginx:1.25", "ports": [{"containerPort": 8080}]}]},
                },
            },
        },
        "dev",
    )
    for suffix in ("7c9f6-abcde", "7c9f6-fghij"):
        backend.seed(
            POD,
            {
                "metadata": {"name": f"payments-api-{suffix}", "labels": labels},
                "spec": {"nodeName": "node-1", "containers": [{"name": "app", "image": "nginx:1.25"}]},
                "status": {"phase": "Running"},
            },
            "dev",
        )
    backend.seed(
        SERVICE,
        {"metadata": {"name": "payments-api"}, "spec": {"type": "ClusterIP", "selector": labels, "ports": [{"port": 80, "targetPort": 8080}]}},
        "dev",
    )
    backend.seed(CONFIG_MAP, {"metadata": {"name": "payments-config"}, "data": {"LOG_LEVEL": "info"}}, "dev")
    return backend


def build_orchestrator(cfg: AppConfig, *, fake: bool = False) -> Orchestrator:
    oracle: Oracle = ScriptedOracle() if fake else OpenAIOracle(cfg.oracle)

    backend: ClusterBackend
    if fake or cfg.cluster.backend == "memory":
        backend = fake_cluster()
    else:
        backend = KubectlBackend.from_config(cfg.cluster)

    return Orchestrator(
        planner=Planner(oracle, max_result_chars=cfg.agent.max_result_chars),
        formatter=ResultFormatter(oracle, max_result_chars=cfg.agent.max_result_chars),
        executor=ToolExecutor(backend),
        store=SessionStore(),
        context=cfg.policy.planner_context(),
        max_iterations=cfg.agent.max_iterations,
        on_unrelated_reply=cfg.agent.on_unrelated_reply,
    )


def _load(path: str) -> AppConfig:
    # The default path is optional; an explicit one must exist.
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return AppConfig()
    return load_config(path)


def _write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def run_turn(orch: Orchestrator, session_key: str, text: str) -> TurnOutput:
    """Run one turn on a worker thread; Ctrl-C cancels the in-flight oracle call."""

    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as pool:
        fut = pool.submit(orch.handle_turn, session_key, text, cancel=cancel, on_text=_write)
        try:
            return fut.result()
        except KeyboardInterrupt:
            cancel.set()
            return fut.result()


def repl(orch: Orchestrator, session_key: str) -> None:
    _write("kube-copilot (type 'exit' to quit)\n")
    while True:
        try:
            line = input("\nkube> ")
        except EOFError:
            _write("\n")
            return
        except KeyboardInterrupt:
            _write("\n")
            continue
        if line.strip().lower() in EXIT_WORDS:
            return
        run_turn(orch, session_key, line)
        _write("\n")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(level=args.log_level)
    log = get_logger("kube_copilot.cli")

    try:
        cfg = _load(args.config)
        orch = build_orchestrator(cfg, fake=args.fake)
    except ConfigError as e:
        log.error("config_invalid", error=str(e))
        sys.stderr.write(f"Configuration error: {e}\n")
        return 2

    session_key = args.session or workspace_session_key(str(Path.cwd()))
    log.info("cli_started", fake=args.fake, backend="memory" if args.fake else cfg.cluster.backend)

    if args.text is not None:
        run_turn(orch, session_key, args.text)
        _write("\n")
        return 0

    repl(orch, session_key)
    return 0
