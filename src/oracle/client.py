from __future__ import annotations

import threading
from typing import Any, Iterator, Protocol

import openai
from openai import OpenAI
from pydantic import SecretStr

from core.config import OracleConfig
from core.errors import ConfigError, OracleCancelledError, OracleUnavailableError
from observability.logging import get_logger

Message = dict[str, str]


class Oracle(Protocol):
    """Streaming text completion over chat messages."""

    def stream(self, messages: list[Message], *, cancel: threading.Event | None = None) -> Iterator[str]: ...


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OracleCancelledError("oracle request cancelled")


class OpenAIOracle:
    """OpenAI-compatible chat completions adapter.

    Constraints:
    - always stream=True; chunks are yielded as they arrive
    - cancellation is observed between chunks (the HTTP stream is closed)
    - SDK errors surface as OracleUnavailableError
    """

    def __init__(self, cfg: OracleConfig) -> None:
        if not cfg.api_key:
            raise ConfigError("missing API key (set oracle.api_key or OPENAI_API_KEY)", path="oracle.api_key")
        self._cfg = cfg
        self._api_key = SecretStr(cfg.api_key)
        self._client: OpenAI | None = None
        self._log = get_logger("kube_copilot.oracle")

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key.get_secret_value(),
                base_url=self._cfg.base_url,
                timeout=self._cfg.timeout_s,
                max_retries=self._cfg.max_retries,
            )
        return self._client

    def stream(self, messages: list[Message], *, cancel: threading.Event | None = None) -> Iterator[str]:
        _check_cancel(cancel)
        try:
            stream_iter = self._get_client().chat.completions.create(
                model=self._cfg.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self._cfg.temperature,
                stream=True,
            )
        except openai.OpenAIError as e:
            self._log.warning("oracle_unavailable", error=type(e).__name__)
            raise OracleUnavailableError(str(e)) from e

        total = 0
        try:
            for ev in stream_iter:
                _check_cancel(cancel)
                choices = getattr(ev, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                content = getattr(delta, "content", None) if delta is not None else None
                if isinstance(content, str) and content:
                    total += len(content)
                    yield content
        except openai.OpenAIError as e:
            self._log.warning("oracle_stream_failed", error=type(e).__name__)
            raise OracleUnavailableError(str(e)) from e
        finally:
            close = getattr(stream_iter, "close", None)
            if callable(close):
                close()

        self._log.debug("oracle_stream_complete", chars=total)


class ScriptedOracle:
    """Offline stub that replays canned responses in order.

    Each entry is either a string (streamed in one chunk, or as given if it is
    a list of chunks) or an exception instance to raise. Once the script runs
    out, every further request yields nothing, which drives the deterministic
    fallback planner.
    """

    def __init__(self, responses: list[Any] | None = None) -> None:
        self._responses = list(responses or [])
        self.requests: list[list[Message]] = []

    def stream(self, messages: list[Message], *, cancel: threading.Event | None = None) -> Iterator[str]:
        self.requests.append([dict(m) for m in messages])
        response = self._responses.pop(0) if self._responses else ""
        return self._replay(response, cancel)

    @staticmethod
    def _replay(response: Any, cancel: threading.Event | None) -> Iterator[str]:
        _check_cancel(cancel)
        if isinstance(response, BaseException):
            raise response
        chunks = response if isinstance(response, list) else [response]
        for chunk in chunks:
            _check_cancel(cancel)
            if chunk:
                yield str(chunk)
