"""LLM client module.

Single provider contract for the rest of llmd: ``chat(messages) -> text``,
backed by litellm so every supported provider is called the same way.
The three structured prompts (command generation, verification verdict,
informational-response judgment) are layered on top of it.

Models are tried in chain order (active provider's model, then
LLMD_FALLBACK_MODELS). A model that raises is logged and skipped; when
every model fails the call raises GenerationError.
"""

import logging
import math
import time

import litellm
from litellm import completion

from llmd.config import (
    get_api_key,
    get_llm_timeout,
    get_max_queries_per_minute,
    get_model_chain,
    get_provider_from_model,
)
from llmd.constants import (
    AMBIGUOUS_CONFIDENCE,
    CHAT_MAX_TOKENS,
    CHAT_TEMPERATURE,
    GENERATION_PROMPT,
    INFORMATIONAL_PROMPT,
    INFORMATIONAL_SYSTEM_PROMPT,
    NEUTRAL_CONFIDENCE,
    TOOLS_PROMPT_SECTION,
    UNVERIFIED_ISSUE,
    VERIFICATION_PROMPT,
    VERIFICATION_SYSTEM_PROMPT,
)
from llmd.extractor import extract_command
from llmd.json_utils import JSONExtractionError, parse_json_object
from llmd.models import (
    GeneratedCommand,
    InformationalCheck,
    ShellContext,
    ToolInfo,
    VerificationResult,
)
from llmd.utils import escape_prompt_tags, friendly_error

# Suppress litellm's verbose "Provider List" URL printing
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when no LLM provider is configured."""


class GenerationError(Exception):
    """Raised when no model produced a usable response."""


# =============================================================================
# Provider contract
# =============================================================================


def chat(messages: list[dict]) -> str:
    """Send role-tagged messages to the first model that answers.

    Args:
        messages: List of {"role": "system"|"user"|"assistant", "content": str}.

    Returns:
        The completion text ("" if the model returned no content).

    Raises:
        ConfigurationError: If no model has credentials.
        GenerationError: If every model in the chain failed.
    """
    models_to_try = []
    for model in get_model_chain():
        provider = get_provider_from_model(model)
        if get_api_key(provider):
            models_to_try.append(model)
        else:
            logger.debug("Skipping model %s: no API key for provider %s", model, provider)

    if not models_to_try:
        raise ConfigurationError(
            'No LLM provider configured. Run "llmd setup" to configure a provider.'
        )

    # Over the per-minute limit the call waits rather than fails
    waited = _query_rate_limiter().acquire()
    if waited > 0:
        logger.info("Rate limit: waited %.1f seconds", waited)

    last_error = None
    for model in models_to_try:
        try:
            return _complete(model, messages)
        except Exception as e:
            last_error = friendly_error(model, e)
            logger.warning("Model %s failed (%s), trying next model", model, last_error)

    raise GenerationError(last_error or "All models failed")


def _complete(model: str, messages: list[dict]) -> str:
    """Call a single model through litellm.

    Raises:
        Exception: Whatever litellm raises for the API call.
    """
    response = completion(
        model=model,
        messages=messages,
        api_key=get_api_key(get_provider_from_model(model)),
        temperature=CHAT_TEMPERATURE,
        max_tokens=CHAT_MAX_TOKENS,
        timeout=get_llm_timeout(),
    )
    return response.choices[0].message.content or ""


# =============================================================================
# Command generation
# =============================================================================


def format_tools_section(tools: list[ToolInfo]) -> str:
    """Group scanned tools by category for the generation prompt."""
    if not tools:
        return ""
    by_category: dict[str, list[str]] = {}
    for tool in tools:
        by_category.setdefault(tool.category or "Other", []).append(tool.name)
    tool_lines = "\n".join(
        f"  {category}: {', '.join(names)}"
        for category, names in sorted(by_category.items())
    )
    return TOOLS_PROMPT_SECTION.format(tool_lines=tool_lines)


def build_generation_messages(
    query: str,
    context: ShellContext,
    history: str = "",
    tools: list[ToolInfo] | None = None,
) -> list[dict]:
    system_content = GENERATION_PROMPT.format(
        history=history,
        os=context.os,
        shell=context.shell,
        cwd=context.cwd,
        tools=format_tools_section(tools or []),
    )
    return [
        {"role": "system", "content": system_content},
        {"role": "user", "content": query},
    ]


def generate_command(
    query: str,
    context: ShellContext,
    history: str = "",
    tools: list[ToolInfo] | None = None,
) -> GeneratedCommand:
    """Ask the model for a command fulfilling the query.

    Raises:
        ConfigurationError: If no provider is configured.
        GenerationError: If the call fails or no command can be extracted.
    """
    content = chat(build_generation_messages(query, context, history, tools))
    generated = extract_command(content)
    if not generated.command:
        raise GenerationError("Failed to extract a valid command from the response")
    return generated


# =============================================================================
# Verification verdict
# =============================================================================


def build_verification_messages(command: str, query: str, context: ShellContext) -> list[dict]:
    content = VERIFICATION_PROMPT.format(
        query=escape_prompt_tags(query),
        command=escape_prompt_tags(command),
        os=context.os,
        shell=context.shell,
        cwd=context.cwd,
    )
    return [
        {"role": "system", "content": VERIFICATION_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def neutral_verification() -> VerificationResult:
    """Verdict used when the judgment response cannot be parsed."""
    return VerificationResult(
        confidence=NEUTRAL_CONFIDENCE,
        is_correct=True,
        issues=[UNVERIFIED_ISSUE],
        suggested_questions=[],
    )


def _coerce_confidence(value) -> int:
    """Clamp a reported confidence into [0, 100].

    Missing or non-numeric values map to AMBIGUOUS_CONFIDENCE, never to
    0 or 100.
    """
    if isinstance(value, bool) or value is None:
        return AMBIGUOUS_CONFIDENCE
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return AMBIGUOUS_CONFIDENCE
    if math.isnan(number):
        return AMBIGUOUS_CONFIDENCE
    return int(round(max(0.0, min(100.0, number))))


def _coerce_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def parse_verification(content: str) -> VerificationResult | None:
    """Parse a verification verdict; None if no JSON object is present."""
    try:
        data = parse_json_object(content)
    except JSONExtractionError as e:
        logger.warning("Failed to parse verification response: %s", e)
        return None

    return VerificationResult(
        confidence=_coerce_confidence(data.get("confidence")),
        is_correct=_coerce_bool(data.get("isCorrect"), default=True),
        issues=_string_list(data.get("issues")),
        suggested_questions=_string_list(data.get("suggestedQuestions")),
    )


def request_verification(command: str, query: str, context: ShellContext) -> VerificationResult:
    """Ask the model to judge a command against the query.

    An unparseable verdict degrades to neutral_verification(); provider
    errors propagate.
    """
    content = chat(build_verification_messages(command, query, context))
    result = parse_verification(content)
    if result is None:
        return neutral_verification()
    return result


# =============================================================================
# Informational-response judgment
# =============================================================================


def build_informational_messages(command: str, query: str) -> list[dict]:
    content = INFORMATIONAL_PROMPT.format(
        query=escape_prompt_tags(query),
        command=escape_prompt_tags(command),
    )
    return [
        {"role": "system", "content": INFORMATIONAL_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def check_informational_response(command: str, query: str) -> InformationalCheck:
    """Ask the model whether an echo/printf command is a conversational reply.

    Raises:
        JSONExtractionError: If the judgment cannot be parsed.
        ConfigurationError, GenerationError: If the call fails.
    """
    data = parse_json_object(chat(build_informational_messages(command, query)))
    message = data.get("message")
    return InformationalCheck(
        is_informational=_coerce_bool(data.get("isInformational"), default=False),
        message=str(message) if message else None,
    )


# =============================================================================
# Query pacing
# =============================================================================


class QueryRateLimiter:
    """Paces chat() calls to LLMD_MAX_QUERIES_PER_MINUTE.

    One token per query, refilled continuously at the per-minute rate and
    capped at one minute's worth, so a fresh process may burst up to the
    limit. A query arriving with the bucket empty sleeps until its token
    has refilled instead of failing.
    """

    def __init__(self, queries_per_minute: int, clock=time.monotonic, sleep=time.sleep):
        self.capacity = float(queries_per_minute)
        self.per_second = self.capacity / 60.0
        self.available = self.capacity
        self._clock = clock
        self._sleep = sleep
        self._refilled_at = clock()

    def _refill(self) -> None:
        now = self._clock()
        earned = (now - self._refilled_at) * self.per_second
        self.available = min(self.capacity, self.available + earned)
        self._refilled_at = now

    def acquire(self) -> float:
        """Take one query slot; returns the seconds slept waiting for it."""
        self._refill()
        delay = 0.0
        if self.available < 1.0:
            delay = (1.0 - self.available) / self.per_second
            self._sleep(delay)
            self._refill()
        self.available = max(0.0, self.available - 1.0)
        return delay


# Shared by every chat() call in this process; built on first use
_rate_limiter: QueryRateLimiter | None = None


def _query_rate_limiter() -> QueryRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = QueryRateLimiter(get_max_queries_per_minute())
    return _rate_limiter
