from __future__ import annotations

import hashlib
import secrets


def new_trace_id() -> str:
    return secrets.token_hex(16)


def session_log_id(session_key: str) -> str:
    """Stable short id for a session key (workspace paths stay out of logs)."""

    return hashlib.sha256(session_key.encode("utf-8")).hexdigest()[:12]
