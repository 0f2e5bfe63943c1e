from __future__ import annotations

import threading
from typing import Callable

from core.errors import OracleError
from core.types import ToolResult
from observability.logging import get_logger
from oracle import Oracle
from tools.result_codec import dumps_results

from .prompts import formatter_messages

TextSink = Callable[[str], None]


def raw_results_block(results: list[ToolResult]) -> str:
    return f"```json\n{dumps_results(results)}\n```\n"


class ResultFormatter:
    """Narrate a turn's results through the oracle, streaming chunks to `on_text`.

    Never raises for oracle trouble: if the oracle fails before producing any
    text, or produces nothing, the raw result history is returned as a fenced
    JSON block.
    """

    def __init__(self, oracle: Oracle, *, max_result_chars: int = 4000) -> None:
        self._oracle = oracle
        self._max_result_chars = max_result_chars
        self._log = get_logger("kube_copilot.formatter")

    def format(
        self,
        request_text: str,
        summary: str,
        results: list[ToolResult],
        *,
        on_text: TextSink | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        messages = formatter_messages(request_text, summary, results, max_result_chars=self._max_result_chars)
        parts: list[str] = []
        try:
            for chunk in self._oracle.stream(messages, cancel=cancel):
                parts.append(chunk)
                if on_text is not None:
                    on_text(chunk)
        except OracleError as e:
            self._log.warning("format_oracle_failed", error=type(e).__name__, chars=len("".join(parts)))
            if parts:
                return "".join(parts)

        text = "".join(parts)
        if text.strip():
            return text

        self._log.info("format_raw_fallback", results=len(results))
        block = raw_results_block(results)
        if on_text is not None:
            on_text(block)
        return block
