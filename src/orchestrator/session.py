from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from core.types import PendingAction

NO_WORKSPACE = "no-workspace"


def workspace_session_key(path: str | None) -> str:
    """Session key for a workspace folder; all folder-less turns share one key."""

    return path if path else NO_WORKSPACE


class SessionStore:
    """In-memory PendingAction map keyed by session.

    Lives as long as the process. `turn(key)` serializes turns of one
    session; different sessions never share a lock. A session lock exists
    only while a turn for that key is running or waiting.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingAction] = {}
        # key -> (lock, turns holding or waiting on it)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> PendingAction | None:
        with self._guard:
            return self._pending.get(key)

    def put(self, key: str, action: PendingAction) -> None:
        with self._guard:
            self._pending[key] = action

    def delete(self, key: str) -> None:
        with self._guard:
            self._pending.pop(key, None)

    @contextmanager
    def turn(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key) or (threading.Lock(), 0)
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, users = self._locks[key]
                if users == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def active_sessions(self) -> frozenset[str]:
        with self._guard:
            return frozenset(self._locks)
