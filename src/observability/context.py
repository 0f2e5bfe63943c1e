from __future__ import annotations

from contextvars import ContextVar


_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_turn_id: ContextVar[int | None] = ContextVar("turn_id", default=None)
_state: ContextVar[str | None] = ContextVar("state", default=None)
_iteration: ContextVar[int | None] = ContextVar("iteration", default=None)
_errors: ContextVar[list[str] | None] = ContextVar("errors", default=None)


def bind_context(*, trace_id: str, session_id: str, turn_id: int) -> None:
    _trace_id.set(trace_id)
    _session_id.set(session_id)
    _turn_id.set(turn_id)
    _iteration.set(None)
    _errors.set([])


def set_state(state: str) -> None:
    _state.set(state)


def set_iteration(iteration: int | None) -> None:
    _iteration.set(iteration)


def add_error(message: str) -> None:
    errs = list(_errors.get() or [])
    errs.append(message)
    _errors.set(errs)


def snapshot() -> dict[str, object]:
    """Return the current turn context for log records."""

    out: dict[str, object] = {}
    if (v := _trace_id.get()) is not None:
        out["trace_id"] = v
    if (v := _session_id.get()) is not None:
        out["session_id"] = v
    if (v := _turn_id.get()) is not None:
        out["turn_id"] = v
    if (v := _state.get()) is not None:
        out["state"] = v
    if (v := _iteration.get()) is not None:
        out["iteration"] = v
    out["errors"] = list(_errors.get() or [])
    return out
