"""Settings for the parser and service, from a project .env or the environment."""

from __future__ import annotations

import os
import re
from pathlib import Path

from katex_macros.parse import DEFAULT_MAX_PASSES

# Project root .env (next to pyproject.toml)
_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ENV_LINE = re.compile(r"^\s*([A-Z_][A-Z0-9_]*)=(.*)$")

DEFAULT_PORT = 8770
DEFAULT_HOST = "localhost"
DEFAULT_LOG_LEVEL = "INFO"


def env_path() -> Path:
    """Return the .env file path."""
    return _ENV_FILE


def _env_lines() -> list[str]:
    if not _ENV_FILE.exists():
        return []
    return _ENV_FILE.read_text(encoding="utf-8").splitlines()


def _split_assignment(line: str) -> tuple[str, str] | None:
    """``KEY=value`` -> (KEY, value); comments and other lines -> None."""
    match = _ENV_LINE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2).strip().strip("\"'")


def read_config() -> dict[str, str]:
    """All uppercase assignments in the .env file, later lines winning."""
    pairs = (_split_assignment(line) for line in _env_lines())
    return dict(pair for pair in pairs if pair is not None)


def write_key(key: str, value: str) -> None:
    """Replace every assignment of *key* in .env, appending one if absent."""
    assignment = f"{key}={value}"
    lines = []
    replaced = False
    for line in _env_lines():
        pair = _split_assignment(line)
        if pair is not None and pair[0] == key:
            if not replaced:
                lines.append(assignment)
                replaced = True
            continue
        lines.append(line)
    if not replaced:
        lines.append(assignment)
    _ENV_FILE.write_text("\n".join(lines) + "\n", encoding="utf-8")


def get_key(key: str) -> str | None:
    """A .env value (even an empty one) takes precedence over os.environ."""
    value = read_config().get(key)
    if value is not None:
        return value
    return os.environ.get(key) or None


def _get_int(key: str, default: int, low: int, high: int | None = None) -> int:
    raw = get_key(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value < low or (high is not None and value > high):
        return default
    return value


def get_max_passes(default: int = DEFAULT_MAX_PASSES) -> int:
    """Resolve KATEX_MACROS_MAX_PASSES, falling back on missing or bad values."""
    return _get_int("KATEX_MACROS_MAX_PASSES", default, 1)


def get_port(default: int = DEFAULT_PORT) -> int:
    """Resolve KATEX_MACROS_PORT from config/env, with validation and fallback."""
    return _get_int("KATEX_MACROS_PORT", default, 1, 65535)


def get_log_level() -> str:
    return (get_key("KATEX_MACROS_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()


def get_service_url(host: str = DEFAULT_HOST) -> str:
    """Return the local service base URL using the configured port."""
    return f"http://{host}:{get_port()}"
