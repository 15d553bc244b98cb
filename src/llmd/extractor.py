"""Command extraction module.

Turns raw model output into a clean, single-line command. Models answer
in many shapes: the JSON object we asked for, the same object wrapped in
markdown fences or prose, a JSON string nested inside the ``command``
field, or just a bare command. All of them end up as a
:class:`~llmd.models.GeneratedCommand` whose ``command`` can be handed
straight to a shell.
"""

import json
import logging
import re

from llmd.constants import MAX_UNWRAP_ITERATIONS
from llmd.json_utils import JSONExtractionError, parse_json_object
from llmd.models import GeneratedCommand

logger = logging.getLogger(__name__)

# "command": "..." inside text that is not valid JSON as a whole
_COMMAND_FIELD_RE = re.compile(r'"command"\s*:\s*"((?:[^"\\]|\\.)*)"')
_EXPLANATION_FIELD_RE = re.compile(r'"explanation"\s*:\s*"((?:[^"\\]|\\.)*)"')

_FENCE_OPEN_RE = re.compile(r"```[\w+-]*[ \t]*\n?")
_PROMPT_MARKER_RE = re.compile(r"^[ \t]*[$#>](?:[ \t]+|$)", re.MULTILINE)
_WHITESPACE_RE = re.compile(r"\s+")

_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}
_ESCAPE_RE = re.compile(r'\\([nt"\\])')

FALLBACK_EXPLANATION = "Generated command"


def unescape_json_string(value: str) -> str:
    """Undo the standard escapes of a JSON string body matched by regex."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], value)


def unwrap_nested_command(text: str) -> str:
    """Peel ``{"command": ...}`` wrappers off a command string.

    Runs at most MAX_UNWRAP_ITERATIONS rounds so adversarial input cannot
    loop forever.
    """
    result = text.strip()

    for _ in range(MAX_UNWRAP_ITERATIONS):
        if not (result.startswith("{") and '"command"' in result):
            break
        try:
            parsed = json.loads(result)
        except (json.JSONDecodeError, ValueError):
            match = _COMMAND_FIELD_RE.search(result)
            if not match:
                break
            result = unescape_json_string(match.group(1)).strip()
            continue
        command = parsed.get("command") if isinstance(parsed, dict) else None
        if not isinstance(command, str) or not command:
            break
        result = command.strip()

    return result


def sanitize_command(command: str) -> str:
    """Normalize a command string into a directly executable single line.

    Removes markdown fences, shell prompt markers at line starts and stray
    backticks, then collapses all whitespace (newlines included) into
    single spaces. A command that has none of these is returned unchanged.
    """
    if not command:
        return ""

    sanitized = unwrap_nested_command(command)

    # Remove markdown code blocks (```bash, ```sh, ```, etc.)
    sanitized = _FENCE_OPEN_RE.sub("", sanitized)
    sanitized = sanitized.replace("```", "")

    # "$ ls", "# apt update", "> dir" prompt markers
    sanitized = _PROMPT_MARKER_RE.sub("", sanitized)

    sanitized = sanitized.replace("`", "")

    return _WHITESPACE_RE.sub(" ", sanitized).strip()


def extract_command(response: str) -> GeneratedCommand:
    """Extract the command and its explanation from raw model text.

    Tries, in order: a JSON object with a ``command`` field, a
    ``"command": "..."`` fragment in otherwise broken JSON, and finally the
    whole text as the literal command.

    The returned command may be empty; callers must treat that as a
    generation failure.
    """
    trimmed = (response or "").strip()

    try:
        parsed = parse_json_object(trimmed)
    except JSONExtractionError:
        parsed = None

    if parsed is not None:
        command = parsed.get("command")
        if isinstance(command, str) and command:
            return GeneratedCommand(
                command=sanitize_command(unwrap_nested_command(command)),
                explanation=str(parsed.get("explanation") or ""),
            )

    match = _COMMAND_FIELD_RE.search(trimmed)
    if match:
        logger.debug("Recovered command field from malformed JSON response")
        raw_command = unwrap_nested_command(unescape_json_string(match.group(1)))
        explanation_match = _EXPLANATION_FIELD_RE.search(trimmed)
        explanation = (
            unescape_json_string(explanation_match.group(1))
            if explanation_match
            else ""
        )
        return GeneratedCommand(
            command=sanitize_command(raw_command),
            explanation=explanation,
        )

    return GeneratedCommand(
        command=sanitize_command(trimmed),
        explanation=FALLBACK_EXPLANATION,
    )
