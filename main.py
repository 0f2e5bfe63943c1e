"""Run kube-copilot from a source checkout without installing it."""

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"

if __name__ == "__main__":
    if SRC.is_dir():
        sys.path.append(str(SRC))

    from core.cli import main

    raise SystemExit(main())
