from __future__ import annotations

import threading

import pytest

from core.types import PendingAction, Plan, ToolCall
from orchestrator import SessionStore, workspace_session_key


def _pending(text: str) -> PendingAction:
    call = ToolCall("deleteDeployment", {"name": "web"})
    return PendingAction(text, Plan("Delete web", [call], True), [call], [])


def test_workspace_key_defaults_when_no_folder() -> None:
    assert workspace_session_key("/src/app") == "/src/app"
    assert workspace_session_key(None) == workspace_session_key("") == "no-workspace"


def test_put_get_delete_are_isolated_per_key() -> None:
    store = SessionStore()
    store.put("a", _pending("delete web"))

    assert store.get("a") is not None
    assert store.get("b") is None

    store.put("a", _pending("delete api"))
    assert store.get("a").originating_request_text == "delete api"

    store.delete("a")
    store.delete("a")
    assert store.get("a") is None


def test_turn_lock_is_dropped_when_the_turn_ends() -> None:
    store = SessionStore()
    with store.turn("a"):
        with store.turn("b"):
            assert store.active_sessions() == {"a", "b"}
        assert store.active_sessions() == {"a"}
    assert store.active_sessions() == frozenset()


def test_turn_lock_is_dropped_after_an_error() -> None:
    store = SessionStore()
    with pytest.raises(RuntimeError):
        with store.turn("a"):
            raise RuntimeError("boom")
    assert store.active_sessions() == frozenset()


def test_turns_of_one_session_are_serialized() -> None:
    store = SessionStore()
    entered = threading.Event()
    order: list[str] = []

    def second() -> None:
        entered.set()
        with store.turn("a"):
            order.append("second")

    with store.turn("a"):
        worker = threading.Thread(target=second)
        worker.start()
        entered.wait(timeout=5)
        worker.join(timeout=0.1)
        order.append("first")
        assert store.active_sessions() == {"a"}
    worker.join(timeout=5)

    assert order == ["first", "second"]
    assert store.active_sessions() == frozenset()


def test_other_sessions_are_not_blocked() -> None:
    store = SessionStore()
    done = threading.Event()

    def other() -> None:
        with store.turn("b"):
            done.set()

    with store.turn("a"):
        worker = threading.Thread(target=other)
        worker.start()
        assert done.wait(timeout=5)
    worker.join(timeout=5)
