"""Root conftest: exports .env.test before alumni_chat.config builds its settings."""
from __future__ import annotations

import os
from pathlib import Path

ENV_FILE = Path(__file__).resolve().parent / ".env.test"


def _load_env(path: Path) -> None:
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        # Real environment wins, so CI can point tests at another database.
        os.environ.setdefault(key.strip(), value.strip())


if ENV_FILE.exists():
    _load_env(ENV_FILE)
