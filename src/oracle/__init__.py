"""Reasoning oracle adapters (OpenAI-compatible streaming + offline stub)."""

from __future__ import annotations

from .client import Message, OpenAIOracle, Oracle, ScriptedOracle

__all__ = [
    "Message",
    "OpenAIOracle",
    "Oracle",
    "ScriptedOracle",
]
