"""Tolerant parsing of structured generator output."""

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class MalformedOutputError(ValueError):
    """Raised when generator output cannot be parsed into a JSON object."""

    pass


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the text unchanged."""
    match = _FENCE_RE.search(text)
    return match.group(1) if match else text


def outermost_object(text: str) -> str | None:
    """Slice the first balanced ``{...}`` span out of text.

    Braces inside JSON string literals are ignored. If the object is never
    closed, everything from the opening brace to the last closing brace is
    returned so that json.loads can report the problem.

    Args:
        text: Text that may contain a JSON object surrounded by prose.

    Returns:
        The object slice, or None when text has no opening brace.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    end = text.rfind("}")
    return text[start : end + 1] if end > start else text[start:]


def parse_json_loose(text: str) -> dict[str, Any]:
    """Parse a JSON object out of an LLM response.

    Strips code fencing if present, locates the outermost balanced braces and
    parses that slice.

    Args:
        text: Raw generator output.

    Returns:
        The parsed object.

    Raises:
        MalformedOutputError: If no JSON object can be recovered.
    """
    body = strip_code_fence(text or "")
    candidate = outermost_object(body)
    if candidate is None:
        raise MalformedOutputError("No JSON object found in generator output")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Invalid JSON in generator output: {e}") from e

    if not isinstance(data, dict):
        raise MalformedOutputError(f"Expected a JSON object, got {type(data).__name__}")
    return data
