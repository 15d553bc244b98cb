"""Utility functions for llmd.

Contains helper functions for:
- Prompt tag escaping
- Error message formatting
- Output truncation
"""

import re

from llmd.constants import MAX_OUTPUT_CHARS, TRUNCATION_MARKER

_PROMPT_TAG_RE = re.compile(r"<(/?)(COMMAND|QUERY)>", re.IGNORECASE)
_CREDENTIAL_HINT_RE = re.compile(r"\bapi\b|api[_ ]?key|auth|\b401\b|\b403\b", re.IGNORECASE)


# =============================================================================
# Prompt tag escaping
# =============================================================================


def escape_prompt_tags(text: str) -> str:
    """Escape COMMAND/QUERY XML tags in untrusted text.

    Replaces literal <COMMAND>, </COMMAND>, <QUERY> and </QUERY> with
    backslash-escaped versions so neither the user's request nor a model's
    command can close its block early and inject instructions.
    """
    return _PROMPT_TAG_RE.sub(lambda m: f"<\\{m.group(1)}{m.group(2)}>", text)


# =============================================================================
# Error formatting
# =============================================================================


def friendly_error(model: str, exc: Exception) -> str:
    """Extract a clean, one-line error message from a litellm exception.

    Detects common root causes and returns actionable guidance instead of
    raw tracebacks.

    Args:
        model: The model string that failed.
        exc: The exception raised by litellm.

    Returns:
        A concise, human-readable error string.
    """
    from llmd.config import get_provider_from_model

    msg = str(exc)
    exc_type = type(exc).__name__

    # Trailing \r in API keys (Windows line endings in .env files)
    if "\\r" in msg or "\r" in msg or "Illegal header value" in msg:
        provider = get_provider_from_model(model)
        return (
            f"API key for '{provider}' has a trailing carriage return (\\r). "
            f"Re-run `llmd config set {provider}` or re-export the key "
            f"without Windows-style (CRLF) line endings."
        )

    if "Connection error" in msg or "ConnectionError" in msg:
        return f"Connection error: cannot reach {model}. Check network access and firewall rules."

    if "LLM Provider NOT provided" in msg:
        return (
            f"Unrecognized model format '{model}'. "
            f"litellm could not determine the provider. "
            f"Check the model string follows 'provider/model-name' format."
        )

    if "content_filter" in msg:
        return f"Content filter activated for {model}: model refused to respond."

    # Generic: extract just the first meaningful line, drop tracebacks
    first_line = msg.split("\n")[0].strip()
    # Strip nested litellm prefixes like "litellm.AuthenticationError: AuthenticationError:"
    for prefix in ("litellm.InternalServerError: ", "litellm.BadRequestError: ",
                   "litellm.APIConnectionError: ", "litellm.AuthenticationError: ",
                   "litellm.RateLimitError: ", "litellm.NotFoundError: "):
        if prefix in first_line:
            first_line = first_line.split(prefix, 1)[-1]
    return f"{exc_type}: {first_line}"


def looks_like_credential_error(message: str) -> bool:
    """True when an error message points at API keys or authorization."""
    return bool(_CREDENTIAL_HINT_RE.search(message))


# =============================================================================
# Output truncation
# =============================================================================


def truncate_output(text: str | None, limit: int = MAX_OUTPUT_CHARS) -> str | None:
    """Clip captured output for history storage; None and "" become None."""
    if not text:
        return None
    if len(text) > limit:
        return text[:limit] + TRUNCATION_MARKER
    return text
