from __future__ import annotations

import json
from typing import Any, Iterable

from core.types import ToolResult


def _is_json_primitive(obj: Any) -> bool:
    return obj is None or isinstance(obj, (str, int, float, bool))


def to_json_friendly(obj: Any) -> Any:
    """Coerce a backend payload into plain JSON types (unknown objects become repr)."""

    if _is_json_primitive(obj):
        return obj
    if isinstance(obj, (list, tuple)):
        return [to_json_friendly(v) for v in obj]
    if isinstance(obj, dict):
        return {str(k): to_json_friendly(v) for k, v in obj.items()}
    return repr(obj)


def truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + "...(truncated)"


def dumps_results(results: Iterable[ToolResult], *, indent: int | None = 2, max_chars: int = 0) -> str:
    """Serialize a result history as a JSON array.

    With `max_chars`, each result's payload is cut to that many characters so
    a single large listing cannot flood the oracle context.
    """

    items: list[dict[str, Any]] = []
    for r in results:
        d = r.to_dict()
        if max_chars > 0:
            payload = json.dumps(d["result"], ensure_ascii=False)
            if len(payload) > max_chars:
                d["result"] = truncate(payload, max_chars)
        items.append(d)
    return json.dumps(items, ensure_ascii=False, indent=indent)
