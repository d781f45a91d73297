from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure the repo root is importable (so `import db.*` and `import tests.*` work without an install).
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

_SETTINGS_ENV = [
    "DATABASE_URL",
    "ADMIN_EMAIL",
    "ADMIN_NAME",
    "ADMIN_PASSWORD",
    "ADMIN_PASSWORD_HASH",
    "SQL_HTTP_ENDPOINT",
    "HTTP_TIMEOUT_S",
    "LOG_LEVEL",
]


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    # Keep a developer's shell or .env out of the settings under test.
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENV_PATH", str(tmp_path / "absent.env"))
    return monkeypatch
