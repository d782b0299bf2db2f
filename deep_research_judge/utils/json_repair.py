"""Staged repair pipeline for the JSON-ish text LLM judges return.

Each stage is a standalone, string-aware function so it can be tested
against adversarial fixtures on its own:

    extract -> strip_line_comments -> strip_block_comments
            -> remove_trailing_commas -> escape_control_chars -> json.loads

Raw text is always tried first; repair only runs when that fails.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}


class JudgeResponseError(ValueError):
    """A judge response held no parsable JSON payload."""


# --- Payload location ---


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _match_balanced(text: str, start: int, open_ch: str, close_ch: str) -> str:
    """Slice from start to the matching close bracket, ignoring brackets in strings."""
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
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    # No matching close: return from start (will surface as a truncation error)
    return text[start:]


def extract_json_object(text: str) -> str:
    """Locate the first JSON object in a response (fenced block or prose-wrapped)."""
    cleaned = _strip_fence(text)
    start = cleaned.find("{")
    if start == -1:
        return ""
    return _match_balanced(cleaned, start, "{", "}")


def extract_json_array(text: str) -> str:
    """Locate the first JSON array in a response (fenced block or prose-wrapped)."""
    cleaned = _strip_fence(text)
    start = cleaned.find("[")
    if start == -1:
        return ""
    return _match_balanced(cleaned, start, "[", "]")


# --- Repair stages ---


def strip_line_comments(text: str) -> str:
    """Remove // comments outside string literals (URLs inside strings survive)."""
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
        elif ch == "/" and text.startswith("//", i):
            newline = text.find("\n", i)
            if newline == -1:
                break
            i = newline
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def strip_block_comments(text: str) -> str:
    """Remove /* ... */ comments outside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
        elif ch == "/" and text.startswith("/*", i):
            close = text.find("*/", i + 2)
            if close == -1:
                break
            i = close + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing } or ] (outside strings)."""
    out: list[str] = []
    in_string = False
    escaped = False
    n = len(text)
    for i, ch in enumerate(text):
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "}]":
                continue
        out.append(ch)
    return "".join(out)


def escape_control_chars(text: str) -> str:
    """Escape raw control characters that appear inside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ord(ch) < 0x20:
                out.append(_CONTROL_ESCAPES.get(ch, f"\\u{ord(ch):04x}"))
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def repair_json(text: str) -> str:
    """Run every repair stage in order."""
    repaired = strip_line_comments(text)
    repaired = strip_block_comments(repaired)
    repaired = remove_trailing_commas(repaired)
    return escape_control_chars(repaired)


# --- Parsing ---


def _loads_with_repair(payload: str, raw: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_json(payload))
    except json.JSONDecodeError as e:
        stripped = payload.rstrip()
        if stripped and stripped[-1] not in ("}", "]"):
            raise JudgeResponseError(
                f"Truncated JSON in judge response (ends at char {len(payload)}). "
                f"Raw tail: ...{raw[-200:]}"
            ) from e
        raise JudgeResponseError(f"Failed to parse judge JSON: {e}\nRaw: {raw[:500]}") from e


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract, repair if needed, and parse the first JSON object in text."""
    payload = extract_json_object(text)
    if not payload:
        raise JudgeResponseError("No JSON object found in judge response")
    data = _loads_with_repair(payload, text)
    if not isinstance(data, dict):
        raise JudgeResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_json_array(text: str) -> list[Any]:
    """Extract, repair if needed, and parse the first JSON array in text."""
    payload = extract_json_array(text)
    if not payload:
        raise JudgeResponseError("No JSON array found in judge response")
    data = _loads_with_repair(payload, text)
    if not isinstance(data, list):
        raise JudgeResponseError(f"Expected a JSON array, got {type(data).__name__}")
    return data
