"""Turn orchestration: plan/act loop, confirmation gate and session store."""

from __future__ import annotations

from .graph_orchestrator import ConfirmationPrompt, Orchestrator, SessionState, TurnOutput
from .session import SessionStore, workspace_session_key

__all__ = [
    "ConfirmationPrompt",
    "Orchestrator",
    "SessionState",
    "SessionStore",
    "TurnOutput",
    "workspace_session_key",
]
