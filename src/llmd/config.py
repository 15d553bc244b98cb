"""Configuration module.

Loads API keys and settings from environment variables and from the
user config file ($LLMD_HOME/config, default ~/.llmd/config). Environment
variables win over the file.

Environment Variables
---------------------
OPENAI_API_KEY, ANTHROPIC_API_KEY, GROQ_API_KEY, OPENROUTER_API_KEY : str
    API key for the matching provider.

GEMINI_API_KEY (or GOOGLE_API_KEY) : str
    API key for Google Gemini.

LLMD_DEFAULT_PROVIDER : str
    Provider used for generation and verification.
    Default: openai. Falls back to the first provider with a key.

LLMD_<PROVIDER>_MODEL : str
    Model name for a provider, e.g. LLMD_OPENAI_MODEL=gpt-4o-mini.

LLMD_CONFIDENCE_THRESHOLD : int
    Verification confidence (0-100) below which clarification is offered.
    Default: 70

LLMD_FALLBACK_MODELS : str
    Comma-separated litellm models (provider/model-name) tried after the
    active provider's model fails. Default: none.

LLMD_LLM_TIMEOUT : int
    Seconds before an LLM request is abandoned. Default: 30

LLMD_MAX_QUERIES_PER_MINUTE : int
    Client-side rate limit for LLM requests. Default: 30

LLMD_HOME : str
    Directory holding the config file, session history and tool
    inventory. Default: ~/.llmd

The config file uses the same names in KEY=VALUE form with # comments.
`llmd setup` and `llmd config ...` write it.
"""

import logging
import os
import stat
import tempfile
import time

from llmd.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_HOME_DIR,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_MAX_QUERIES_PER_MINUTE,
    DEFAULT_MODELS,
    DEFAULT_PROVIDER,
    PROVIDER_ENV_VARS,
    PROVIDERS,
    VERSION_CHECK_INTERVAL_SECONDS,
)
from llmd.models import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_KEY = "LLMD_DEFAULT_PROVIDER"
CONFIDENCE_THRESHOLD_KEY = "LLMD_CONFIDENCE_THRESHOLD"
FALLBACK_MODELS_KEY = "LLMD_FALLBACK_MODELS"
LAST_VERSION_CHECK_KEY = "LLMD_LAST_VERSION_CHECK"

# Module-level cache for config file contents, keyed by path
_config_file_cache: dict[str, dict[str, str]] = {}


# =============================================================================
# Config file handling
# =============================================================================


def get_home_dir() -> str:
    """Directory holding llmd's config and state files."""
    raw = os.environ.get("LLMD_HOME", "")
    if raw and raw.strip():
        return os.path.expanduser(raw.strip())
    return DEFAULT_HOME_DIR


def get_config_path() -> str:
    return os.path.join(get_home_dir(), CONFIG_FILE_NAME)


def _validate_config_file_permissions(path: str) -> tuple[bool, str]:
    """Validate that the config file is not world-writable.

    Args:
        path: Path to the config file.

    Returns:
        Tuple of (is_valid, error_message). If valid, error_message is empty.
    """
    try:
        file_stat = os.stat(path)
    except OSError as e:
        return (False, f"Cannot stat config file {path}: {e}")

    if file_stat.st_mode & stat.S_IWOTH:
        return (False, f"Config file {path} is world-writable. "
                f"Fix with: chmod o-w {path}")

    return (True, "")


def _load_config_file(path: str | None = None) -> dict[str, str]:
    """Load configuration from the config file.

    Parses a simple KEY=VALUE format file with # comments.
    Values can optionally be quoted (single or double quotes are stripped).

    Args:
        path: Path to config file. Defaults to get_config_path().

    Returns:
        Dictionary of key-value pairs from the config file.
        Empty dict if file doesn't exist or can't be read.
    """
    if path is None:
        path = get_config_path()

    if path in _config_file_cache:
        return _config_file_cache[path]

    config: dict[str, str] = {}

    if not os.path.exists(path):
        _config_file_cache[path] = config
        return config

    is_valid, err = _validate_config_file_permissions(path)
    if not is_valid:
        logger.warning("Config file permission check failed: %s", err)
        _config_file_cache[path] = config
        return config

    try:
        with open(path) as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                # Skip empty lines and comments
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    logger.debug("Skipping malformed line %d in %s", line_num, path)
                    continue
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Strip surrounding quotes
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]
                config[key] = value
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", path, e)

    _config_file_cache[path] = config
    return config


def _reset_config_cache() -> None:
    """Reset the config file cache. For testing only."""
    _config_file_cache.clear()


def _write_config_file(values: dict[str, str], path: str | None = None) -> None:
    """Replace the config file with the given values.

    Writes to a temp file in the same directory and renames it over the
    old file, so concurrent readers see either the old or the new file.
    The file holds API keys and is created owner-only (0600).
    """
    if path is None:
        path = get_config_path()

    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)

    lines = ["# llmd configuration (written by `llmd config` / `llmd setup`)"]
    lines.extend(f"{key}={value}" for key, value in sorted(values.items()))

    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".config-")
    try:
        with os.fdopen(fd, "w") as f:
            f.write("\n".join(lines) + "\n")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    finally:
        _config_file_cache.pop(path, None)


def set_config_value(key: str, value: str) -> None:
    """Read-modify-write a single config file entry."""
    values = dict(_load_config_file())
    values[key] = value
    _write_config_file(values)


def _get_setting(key: str, default: str = "") -> str:
    """Environment variable first, then the config file."""
    value = os.environ.get(key)
    if value is not None and value.strip():
        return value
    return _load_config_file().get(key, default)


# =============================================================================
# Providers and credentials
# =============================================================================


def _env_var_names(provider: str) -> tuple[str, ...]:
    lookup = PROVIDER_ENV_VARS.get(provider.lower())
    if lookup is None:
        return ()
    return (lookup,) if isinstance(lookup, str) else lookup


def get_api_key(provider: str) -> str | None:
    """Get the API key for a provider.

    Args:
        provider: Provider name (e.g., "openai", "anthropic", "gemini").

    Returns:
        The API key string with surrounding whitespace (including a stray
        \\r from CRLF files) removed, or None if not set.
    """
    # Support multiple env var names (try in order)
    for env_var in _env_var_names(provider):
        key = _get_setting(env_var)
        if key and key.strip():
            return key.strip()
    return None


def get_provider_model(provider: str) -> str:
    """Model configured for a provider, or that provider's default."""
    model = _get_setting(f"LLMD_{provider.upper()}_MODEL")
    if model and model.strip():
        return model.strip()
    return DEFAULT_MODELS[provider]


def get_default_provider() -> str:
    raw = _get_setting(DEFAULT_PROVIDER_KEY)
    provider = raw.strip().lower()
    if provider in PROVIDERS:
        return provider
    if provider:
        logger.warning(
            "Invalid %s '%s', falling back to '%s'",
            DEFAULT_PROVIDER_KEY,
            raw,
            DEFAULT_PROVIDER,
        )
    return DEFAULT_PROVIDER


def get_available_providers() -> list[str]:
    """Providers with an API key configured, in table order."""
    return [p for p in PROVIDERS if get_api_key(p)]


def has_any_provider() -> bool:
    return bool(get_available_providers())


def get_active_provider_config() -> ProviderConfig | None:
    """Credentials and model of the provider used for this run.

    The default provider if it has a key, otherwise the first provider
    that does. None when nothing is configured.
    """
    default = get_default_provider()
    candidates = [default] + [p for p in PROVIDERS if p != default]
    for name in candidates:
        api_key = get_api_key(name)
        if api_key:
            return ProviderConfig(name=name, model=get_provider_model(name), api_key=api_key)
    return None


def list_providers() -> list[dict]:
    """Status of every supported provider for `llmd config list`."""
    default = get_default_provider()
    return [
        {
            "name": name,
            "configured": get_api_key(name) is not None,
            "is_default": name == default,
            "model": get_provider_model(name),
        }
        for name in PROVIDERS
    ]


# =============================================================================
# Model chain
# =============================================================================


def get_provider_from_model(model: str) -> str:
    """Extract the provider name from a model string.

    Model strings follow LiteLLM format: provider/model-name
    For example: "openai/gpt-4o" -> "openai"

    Returns:
        The provider name (first segment before '/').
        Returns the full string if no '/' is present (invalid format).
    """
    if "/" not in model:
        return model
    return model.split("/")[0]


def is_valid_model_string(model: str) -> bool:
    """Check if a model string follows the provider/model-name format."""
    if "/" not in model:
        return False
    parts = model.split("/", 1)
    return len(parts[0]) > 0 and len(parts[1]) > 0


def get_fallback_models() -> list[str]:
    """Fallback models from LLMD_FALLBACK_MODELS (comma-separated)."""
    raw = _get_setting(FALLBACK_MODELS_KEY)
    return [m.strip() for m in raw.split(",") if m.strip()]


def get_model_chain() -> list[str]:
    """Ordered litellm model strings to try for each chat call.

    The active provider's model first, then fallbacks, duplicates removed.
    """
    chain: list[str] = []
    active = get_active_provider_config()
    if active is not None:
        chain.append(active.litellm_model)
    for model in get_fallback_models():
        if not is_valid_model_string(model):
            logger.warning(
                "Invalid model format '%s': expected 'provider/model-name'. Skipping.",
                model,
            )
            continue
        if model not in chain:
            chain.append(model)
    return chain


# =============================================================================
# Numeric settings
# =============================================================================


def _get_int_setting(key: str, default: int, minimum: int, maximum: int | None = None) -> int:
    raw = _get_setting(key)
    if raw and raw.strip():
        try:
            value = int(raw.strip())
            if value >= minimum and (maximum is None or value <= maximum):
                return value
            logger.debug("Invalid %s '%s' (out of range), falling back to %d", key, raw, default)
        except ValueError:
            logger.debug("Invalid %s '%s' (not an integer), falling back to %d", key, raw, default)
    return default


def get_confidence_threshold() -> int:
    """Confidence (0-100) a verified command must reach to skip clarification."""
    return _get_int_setting(CONFIDENCE_THRESHOLD_KEY, DEFAULT_CONFIDENCE_THRESHOLD, 0, 100)


def get_llm_timeout() -> int:
    """Get the LLM query timeout in seconds. Default: 30."""
    return _get_int_setting("LLMD_LLM_TIMEOUT", DEFAULT_LLM_TIMEOUT, 1)


def get_max_queries_per_minute() -> int:
    return _get_int_setting("LLMD_MAX_QUERIES_PER_MINUTE", DEFAULT_MAX_QUERIES_PER_MINUTE, 1)


# =============================================================================
# Writers (used by the CLI only)
# =============================================================================


def _require_provider(name: str) -> str:
    provider = name.strip().lower()
    if provider not in PROVIDERS:
        raise ValueError(
            f"Invalid provider: {name}. Valid providers: {', '.join(PROVIDERS)}"
        )
    return provider


def set_provider(name: str, api_key: str, model: str | None = None) -> None:
    """Store an API key (and model) for a provider."""
    provider = _require_provider(name)
    if not api_key or not api_key.strip():
        raise ValueError("API key is required")
    values = dict(_load_config_file())
    values[_env_var_names(provider)[0]] = api_key.strip()
    values[f"LLMD_{provider.upper()}_MODEL"] = model or DEFAULT_MODELS[provider]
    _write_config_file(values)


def remove_provider(name: str) -> None:
    provider = _require_provider(name)
    values = dict(_load_config_file())
    for key in (*_env_var_names(provider), f"LLMD_{provider.upper()}_MODEL"):
        values.pop(key, None)
    _write_config_file(values)


def set_default_provider(name: str) -> None:
    provider = _require_provider(name)
    if get_api_key(provider) is None:
        raise ValueError(f"Provider {provider} is not configured")
    set_config_value(DEFAULT_PROVIDER_KEY, provider)


def set_provider_model(name: str, model: str) -> None:
    provider = _require_provider(name)
    if get_api_key(provider) is None:
        raise ValueError(f"Provider {provider} is not configured")
    set_config_value(f"LLMD_{provider.upper()}_MODEL", model)


def set_confidence_threshold(threshold: int) -> None:
    if threshold < 0 or threshold > 100:
        raise ValueError("Threshold must be between 0 and 100")
    set_config_value(CONFIDENCE_THRESHOLD_KEY, str(threshold))


def reset_config() -> None:
    """Delete the config file; every setting returns to its default."""
    path = get_config_path()
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    _config_file_cache.pop(path, None)


# =============================================================================
# Release check bookkeeping
# =============================================================================


def get_last_version_check() -> float | None:
    raw = _load_config_file().get(LAST_VERSION_CHECK_KEY, "")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


def set_last_version_check(timestamp: float) -> None:
    set_config_value(LAST_VERSION_CHECK_KEY, str(int(timestamp)))


def should_check_version(now: float | None = None) -> bool:
    """At most one release check per day."""
    last = get_last_version_check()
    if last is None:
        return True
    if now is None:
        now = time.time()
    return now - last > VERSION_CHECK_INTERVAL_SECONDS
