"""
Step response parsing for raw Oracle output.

Pipeline
1) strip_code_fences(): drop surrounding markdown fences
2) extract_first_json(): isolate exactly one JSON object with a string-aware brace scan
3) escape_control_chars(): escape literal newlines/tabs that occur inside strings
4) parse_step(): decode into a Step, or None when the text is not a step

The scanners are explicit state machines (outside a string, inside a string,
just after a backslash) because the input is malformed by construction.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from taskagent.tools import Step

logger = logging.getLogger(__name__)

_OUTSIDE = 0
_IN_STRING = 1
_ESCAPED = 2

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}


def strip_code_fences(text: str) -> str:
    """Trim whitespace and remove a surrounding ```json / ``` fence."""
    cleaned = text.strip()
    for prefix in ("```json", "```JSON", "```"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
            break
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _advance(state: int, ch: str) -> int:
    """Transition of the string/escape state machine for one character."""
    if state == _ESCAPED:
        return _IN_STRING
    if state == _IN_STRING:
        if ch == "\\":
            return _ESCAPED
        if ch == '"':
            return _OUTSIDE
        return _IN_STRING
    if ch == '"':
        return _IN_STRING
    return _OUTSIDE


def extract_first_json(text: str) -> str:
    """
    Return the first complete JSON object in `text`, or "" if there is none.

    Braces inside string literals are ignored, so concatenated objects and
    trailing prose are cut off at the brace that closes the first object.
    """
    start = text.find("{")
    if start < 0:
        return ""

    depth = 0
    state = _OUTSIDE
    for idx in range(start, len(text)):
        ch = text[idx]
        if state == _OUTSIDE:
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start: idx + 1]
        state = _advance(state, ch)

    return ""


def escape_control_chars(text: str) -> str:
    """Rewrite literal CR/LF/TAB inside JSON strings as escapes; leave the rest untouched."""
    out = []
    state = _OUTSIDE
    for ch in text:
        if state == _IN_STRING and ch in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[ch])
            continue
        out.append(ch)
        state = _advance(state, ch)
    return "".join(out)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value) if isinstance(value, (dict, list)) else str(value)


def parse_step(response: str) -> Optional[Step]:
    """
    Convert raw Oracle text into a Step.

    Returns
    -------
    Optional[Step]
        The decoded step, or None when no well-formed object could be recovered.
    """
    cleaned = strip_code_fences(response or "")
    candidate = extract_first_json(cleaned)
    if not candidate:
        logger.debug("No complete JSON object in response (%d chars)", len(cleaned))
        return None

    repaired = escape_control_chars(candidate)
    try:
        payload = json.loads(repaired)
    except (ValueError, RecursionError) as exc:
        logger.debug("Failed to decode step JSON: %s", exc)
        return None

    if not isinstance(payload, dict):
        return None

    parameters = payload.get("parameters")
    if not isinstance(parameters, dict):
        parameters = {}

    return Step(
        reasoning=_as_text(payload.get("reasoning")),
        tool=_as_text(payload.get("tool")),
        parameters=parameters,
    )
