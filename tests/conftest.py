from __future__ import annotations

from pathlib import Path

import pytest

import katex_macros.config as macro_config

FIXTURES = Path(__file__).resolve().parent


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the .env reader at a scratch file and clear KATEX_MACROS_* vars."""
    env_file = tmp_path / ".env.test"
    monkeypatch.setattr(macro_config, "_ENV_FILE", env_file)
    for key in ("KATEX_MACROS_MAX_PASSES", "KATEX_MACROS_PORT", "KATEX_MACROS_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    return env_file


@pytest.fixture()
def stylesheet() -> str:
    return (FIXTURES / "macros.sty").read_text(encoding="utf-8")
