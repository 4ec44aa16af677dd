from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path so `import truebid.*` works in tests.
ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    from truebid.settings import get_settings

    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("REMOTE_BACKEND", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
