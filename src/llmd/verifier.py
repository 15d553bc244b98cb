"""Command verification module.

Combines the model's structured verdict with the configured confidence
threshold, and separately decides whether a command is only a
conversational reply (an echo answering "who are you") rather than an
operation the user asked for.
"""

import logging

from llmd.config import get_confidence_threshold
from llmd.constants import (
    CONVERSATIONAL_QUERY_RE,
    DISPLAY_COMMAND_RE,
    QUOTED_DISPLAY_RE,
)
from llmd.llm_client import check_informational_response, request_verification
from llmd.models import (
    InformationalCheck,
    ShellContext,
    VerificationOutcome,
    VerificationResult,
)

logger = logging.getLogger(__name__)


def verify_command(command: str, query: str, context: ShellContext) -> VerificationOutcome:
    """Judge a command candidate against the user's query.

    A command passes when the model is at least as confident as the
    configured threshold and reports it correct. A failing command only
    needs clarification when the model also suggested questions; without
    them the caller shows the command normally.

    Raises:
        ConfigurationError, GenerationError: If the verdict request fails.
    """
    threshold = get_confidence_threshold()
    result = request_verification(command, query, context)

    passed = result.confidence >= threshold and result.is_correct
    needs_clarification = not passed and len(result.suggested_questions) > 0

    info = detect_informational(command, query)

    logger.debug(
        "Verification: confidence=%d threshold=%d correct=%s informational=%s",
        result.confidence,
        threshold,
        result.is_correct,
        info.is_informational,
    )

    return VerificationOutcome(
        passed=passed,
        result=result,
        needs_clarification=needs_clarification,
        is_informational_response=info.is_informational,
        extracted_message=info.message,
    )


def detect_informational(command: str, query: str) -> InformationalCheck:
    """Decide whether a command is a display-only reply to a conversation.

    Only echo/printf commands are sent for a model judgment; anything else
    is a real operation. When the judgment fails, falls back to
    informational_heuristic().
    """
    if not DISPLAY_COMMAND_RE.match(command.strip()):
        return InformationalCheck(is_informational=False)

    try:
        return check_informational_response(command, query)
    except Exception as e:
        logger.warning("Informational check failed (%s), using heuristic", e)
        return informational_heuristic(command, query)


def informational_heuristic(command: str, query: str) -> InformationalCheck:
    """Offline fallback: quoted echo/printf text answering a conversational query."""
    match = QUOTED_DISPLAY_RE.match(command.strip())
    if match and CONVERSATIONAL_QUERY_RE.match(query.strip()):
        return InformationalCheck(is_informational=True, message=match.group(2))
    return InformationalCheck(is_informational=False)


def displayed_text(command: str) -> str | None:
    """Quoted argument of an echo/printf command, if it has one."""
    match = QUOTED_DISPLAY_RE.match(command.strip())
    return match.group(2) if match else None


def format_verification_issues(result: VerificationResult) -> list[str]:
    return [f"• {issue}" for issue in result.issues]


def format_suggested_questions(result: VerificationResult) -> list[str]:
    return [f"{i}. {q}" for i, q in enumerate(result.suggested_questions, 1)]
