"""Tests for .env config helpers."""

from __future__ import annotations

import pytest

import katex_macros.config as macro_config
from katex_macros.parse import DEFAULT_MAX_PASSES


class TestConfig:
    def test_env_path_returns_patched_file(self, isolated_env):
        assert macro_config.env_path() == isolated_env

    def test_read_config_missing_file(self):
        assert macro_config.read_config() == {}

    def test_read_config_parses_and_strips_quotes(self, isolated_env):
        isolated_env.write_text(
            "\n".join(
                [
                    "# comment",
                    "KATEX_MACROS_PORT='9999'",
                    'KATEX_MACROS_LOG_LEVEL="DEBUG"',
                    "INVALID-LINE",
                    "lowercase_key=value",
                ]
            )
            + "\n"
        )

        assert macro_config.read_config() == {
            "KATEX_MACROS_PORT": "9999",
            "KATEX_MACROS_LOG_LEVEL": "DEBUG",
        }

    def test_write_key_creates_and_updates(self, isolated_env):
        macro_config.write_key("KATEX_MACROS_PORT", "9000")
        macro_config.write_key("KATEX_MACROS_PORT", "9001")
        macro_config.write_key("KATEX_MACROS_MAX_PASSES", "50")

        assert isolated_env.read_text().splitlines() == [
            "KATEX_MACROS_PORT=9001",
            "KATEX_MACROS_MAX_PASSES=50",
        ]

    def test_write_key_collapses_repeated_assignments(self, isolated_env):
        isolated_env.write_text(
            "# settings\nKATEX_MACROS_PORT=1\nKATEX_MACROS_LOG_LEVEL=INFO\nKATEX_MACROS_PORT=2\n"
        )
        macro_config.write_key("KATEX_MACROS_PORT", "3")

        assert isolated_env.read_text().splitlines() == [
            "# settings",
            "KATEX_MACROS_PORT=3",
            "KATEX_MACROS_LOG_LEVEL=INFO",
        ]

    def test_get_key_prefers_dotenv_even_when_empty(self, isolated_env, monkeypatch):
        isolated_env.write_text("KATEX_MACROS_LOG_LEVEL=\n")
        monkeypatch.setenv("KATEX_MACROS_LOG_LEVEL", "DEBUG")
        assert macro_config.get_key("KATEX_MACROS_LOG_LEVEL") == ""
        assert macro_config.get_log_level() == "INFO"

    def test_get_key_falls_back_to_os_environ(self, monkeypatch):
        monkeypatch.setenv("KATEX_MACROS_PORT", "7777")
        assert macro_config.get_key("KATEX_MACROS_PORT") == "7777"

    def test_get_key_prefers_dotenv(self, isolated_env, monkeypatch):
        isolated_env.write_text("KATEX_MACROS_MAX_PASSES=7\n")
        monkeypatch.setenv("KATEX_MACROS_MAX_PASSES", "9")
        assert macro_config.get_max_passes() == 7

    def test_max_passes_default(self):
        assert macro_config.get_max_passes() == DEFAULT_MAX_PASSES

    @pytest.mark.parametrize("raw_value", ["abc", "0", "-3"])
    def test_max_passes_invalid_values_fallback(self, isolated_env, raw_value):
        isolated_env.write_text(f"KATEX_MACROS_MAX_PASSES={raw_value}\n")
        assert macro_config.get_max_passes() == DEFAULT_MAX_PASSES

    @pytest.mark.parametrize("raw_value", ["abc", "0", "65536", "-1"])
    def test_get_port_invalid_values_fallback(self, isolated_env, raw_value):
        isolated_env.write_text(f"KATEX_MACROS_PORT={raw_value}\n")
        assert macro_config.get_port(default=8765) == 8765

    def test_log_level_uppercased(self, monkeypatch):
        assert macro_config.get_log_level() == "INFO"
        monkeypatch.setenv("KATEX_MACROS_LOG_LEVEL", "debug")
        assert macro_config.get_log_level() == "DEBUG"

    def test_get_service_url_uses_host_and_configured_port(self, isolated_env):
        isolated_env.write_text("KATEX_MACROS_PORT=9123\n")
        assert macro_config.get_service_url() == "http://localhost:9123"
        assert macro_config.get_service_url(host="127.0.0.1") == "http://127.0.0.1:9123"
