"""Shared pytest fixtures for llmd tests.

Every test gets its own LLMD_HOME and no provider credentials from the
developer's environment. For mock utilities (MockResponse, FakePrompter,
mock_providers) see tests/utils.py.
"""

import os

import pytest

import llmd.config
import llmd.llm_client
from llmd.constants import PROVIDER_ENV_VARS, PROVIDERS


def _settings_env_vars() -> list[str]:
    names = []
    for lookup in PROVIDER_ENV_VARS.values():
        names.extend((lookup,) if isinstance(lookup, str) else lookup)
    names.extend(f"LLMD_{p.upper()}_MODEL" for p in PROVIDERS)
    names.extend([
        "LLMD_DEFAULT_PROVIDER",
        "LLMD_CONFIDENCE_THRESHOLD",
        "LLMD_FALLBACK_MODELS",
        "LLMD_LLM_TIMEOUT",
        "LLMD_MAX_QUERIES_PER_MINUTE",
        "LLMD_LAST_VERSION_CHECK",
    ])
    return names


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point LLMD_HOME at a temp dir and clear llmd settings from the env."""
    home = tmp_path / "llmd-home"
    monkeypatch.setenv("LLMD_HOME", str(home))
    for name in _settings_env_vars():
        monkeypatch.delenv(name, raising=False)
    llmd.config._reset_config_cache()
    llmd.llm_client._rate_limiter = None
    yield home
    llmd.config._reset_config_cache()
    llmd.llm_client._rate_limiter = None


@pytest.fixture
def openai_key(monkeypatch):
    """OpenAI configured through the environment."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    return "test-key"


@pytest.fixture
def config_file(isolated_home):
    """Write KEY=VALUE lines to the config file; returns the writer."""

    def write(text: str, mode: int = 0o600) -> str:
        os.makedirs(isolated_home, exist_ok=True)
        path = isolated_home / "config"
        path.write_text(text)
        os.chmod(path, mode)
        llmd.config._reset_config_cache()
        return str(path)

    return write
