from __future__ import annotations

import threading
from types import SimpleNamespace
from typing import Any

import openai
import pytest

from core.config import OracleConfig
from core.errors import ConfigError, OracleCancelledError, OracleUnavailableError
from oracle import client as client_mod
from oracle import OpenAIOracle


def _chunk(content: str | None) -> Any:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _FakeStream:
    def __init__(self, events: list[Any]) -> None:
        self._events = events
        self.closed = False

    def __iter__(self):
        for ev in self._events:
            if isinstance(ev, BaseException):
                raise ev
            yield ev

    def close(self) -> None:
        self.closed = True


class _FakeOpenAI:
    instances: list["_FakeOpenAI"] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.requests: list[dict[str, Any]] = []
        self.events: list[Any] = []
        self.error: Exception | None = None
        self.stream: _FakeStream | None = None
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        _FakeOpenAI.instances.append(self)

    def _create(self, **kwargs: Any) -> _FakeStream:
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        self.stream = _FakeStream(self.events)
        return self.stream


@pytest.fixture()
def fake_openai(monkeypatch: pytest.MonkeyPatch) -> type[_FakeOpenAI]:
    _FakeOpenAI.instances = []
    monkeypatch.setattr(client_mod, "OpenAI", _FakeOpenAI)
    return _FakeOpenAI


def _oracle() -> OpenAIOracle:
    return OpenAIOracle(OracleConfig(api_key="sk-test", model="m", timeout_s=5.0, max_retries=1))


def test_missing_key_is_config_error() -> None:
    with pytest.raises(ConfigError) as ei:
        OpenAIOracle(OracleConfig(api_key=None))
    assert ei.value.path == "oracle.api_key"


def test_streams_content_and_skips_empty_chunks(fake_openai: type[_FakeOpenAI]) -> None:
    oracle = _oracle()
    client = oracle._get_client()
    client.events = [_chunk("Hel"), SimpleNamespace(choices=[]), _chunk(None), _chunk("lo")]

    out = list(oracle.stream([{"role": "user", "content": "hi"}]))

    assert out == ["Hel", "lo"]
    assert client.kwargs["api_key"] == "sk-test"
    assert client.kwargs["timeout"] == 5.0
    assert client.kwargs["max_retries"] == 1
    req = client.requests[0]
    assert req["stream"] is True
    assert req["model"] == "m"
    assert client.stream.closed is True


def test_sdk_errors_become_unavailable(fake_openai: type[_FakeOpenAI]) -> None:
    oracle = _oracle()
    oracle._get_client().error = openai.OpenAIError("connection refused")

    with pytest.raises(OracleUnavailableError, match="connection refused"):
        list(oracle.stream([{"role": "user", "content": "hi"}]))


def test_mid_stream_error_closes_stream(fake_openai: type[_FakeOpenAI]) -> None:
    oracle = _oracle()
    client = oracle._get_client()
    client.events = [_chunk("a"), openai.OpenAIError("reset")]

    with pytest.raises(OracleUnavailableError):
        list(oracle.stream([{"role": "user", "content": "hi"}]))
    assert client.stream.closed is True


def test_cancel_between_chunks(fake_openai: type[_FakeOpenAI]) -> None:
    oracle = _oracle()
    client = oracle._get_client()
    client.events = [_chunk("a"), _chunk("b")]
    cancel = threading.Event()

    it = oracle.stream([{"role": "user", "content": "hi"}], cancel=cancel)
    assert next(it) == "a"
    cancel.set()
    with pytest.raises(OracleCancelledError):
        next(it)
    assert client.stream.closed is True
