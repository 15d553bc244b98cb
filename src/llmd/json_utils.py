"""JSON extraction utilities for parsing LLM responses.

Handles common LLM response quirks: markdown fences, double braces,
and extra text surrounding JSON objects.
"""

import json
import re

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


class JSONExtractionError(ValueError):
    """Raised when no JSON object can be recovered from model text."""


def find_balanced_json(text: str) -> str | None:
    """Find and extract the first balanced JSON object from text.

    Handles:
    - Markdown ```json fences: strips fence wrapper, extracts JSON inside
    - Raw JSON: finds first { and tracks balanced braces, ignoring braces
      inside string literals

    Args:
        text: Raw text potentially containing a JSON object.

    Returns:
        The extracted JSON string, or None if no balanced JSON found.
    """
    if not text or not text.strip():
        return None

    text = text.strip()

    # Strip markdown code fences first
    fence_match = _FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i, char in enumerate(text[start:], start):
        if escape:
            escape = False
            continue
        if char == "\\":
            escape = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def parse_json_object(text: str) -> dict:
    """Parse the first JSON object found in model text.

    Some models wrap their answer in template-style ``{{...}}``; that form
    is only normalized after the verbatim text fails to parse, so nested
    objects that legitimately end in ``}}`` are left alone.

    Raises:
        JSONExtractionError: If no JSON object can be parsed.
    """
    candidates = [text]
    if text and "{{" in text:
        candidates.append(text.replace("{{", "{").replace("}}", "}"))

    for candidate in candidates:
        extracted = find_balanced_json(candidate)
        if extracted is None:
            continue
        try:
            data = json.loads(extracted)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data

    raise JSONExtractionError("No valid JSON object found in response")
