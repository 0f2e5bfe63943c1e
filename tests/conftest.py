from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest


def pytest_configure(config: pytest.Config) -> None:
    src = config.rootpath / "src"
    if not src.exists():
        src = Path(__file__).resolve().parents[1] / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


@pytest.fixture()
def plan_text() -> Callable[..., str]:
    """Build a plan document as the oracle would return it."""

    def build(summary: str, calls: list[tuple[str, dict[str, Any]]], done: bool = True) -> str:
        return json.dumps(
            {"summary": summary, "toolCalls": [{"tool": t, "args": a} for t, a in calls], "done": done}
        )

    return build
