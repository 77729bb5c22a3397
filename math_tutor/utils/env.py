from __future__ import annotations

from pathlib import Path
from typing import List

from dotenv import load_dotenv

_PACKAGE_DIR = Path(__file__).resolve().parents[1]


def dotenv_candidates() -> List[Path]:
    # repo root first; values already in the environment are never overridden
    return [_PACKAGE_DIR.parent / ".env", _PACKAGE_DIR / ".env"]


def load_project_dotenv() -> bool:
    """
    Copy `.env` entries into `os.environ`.

    Settings reads `.env` by itself, but the OpenAI SDK and scripts only see `os.environ`.
    Returns True when at least one file contributed a value.
    """
    loaded = False
    for path in dotenv_candidates():
        if path.is_file():
            loaded = load_dotenv(path, override=False) or loaded
    return loaded
