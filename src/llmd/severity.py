"""Command severity classification.

Scores a command string against the ordered danger-pattern table in
llmd.constants. Classification is purely textual: nothing is parsed or
executed.
"""

import logging

from llmd.constants import (
    CONFIRMATION_LEVELS,
    DANGER_PATTERNS,
    SEVERITY_EMOJI,
    SEVERITY_ORDER,
)
from llmd.models import SeverityCheck

logger = logging.getLogger(__name__)


def severity_rank(level: str) -> int:
    """Position of a level in SEVERITY_ORDER (safe=0 ... critical=4)."""
    return SEVERITY_ORDER.index(level)


def matching_patterns(command: str) -> list[tuple[str, str]]:
    """Return (level, reason) for every table entry matching the command."""
    return [
        (level, reason)
        for pattern, level, reason in DANGER_PATTERNS
        if pattern.search(command)
    ]


def check_severity(command: str) -> SeverityCheck:
    """Classify a command by the worst danger pattern it matches.

    Every pattern is tested. ``level`` is the highest matched level,
    ``reason`` belongs to the first entry (in table order) at that level,
    and ``warnings`` lists the reasons of all matches, deduplicated in
    first-seen order.
    """
    highest = "safe"
    primary_reason = ""
    warnings: list[str] = []

    for level, reason in matching_patterns(command):
        if reason not in warnings:
            warnings.append(reason)
        if severity_rank(level) > severity_rank(highest):
            highest = level
            primary_reason = reason

    if highest != "safe":
        logger.debug("Severity %s for %r: %s", highest, command, primary_reason)

    return SeverityCheck(level=highest, reason=primary_reason, warnings=warnings)


def requires_confirmation(level: str) -> bool:
    """True for levels that need an explicit yes (default no) before running."""
    return level in CONFIRMATION_LEVELS


def severity_emoji(level: str) -> str:
    return SEVERITY_EMOJI.get(level, SEVERITY_EMOJI["safe"])
