"""JSON extraction from generation service responses.

Models wrap JSON in markdown fences or surrounding prose often enough that
every collaborator goes through these helpers.
"""

import json
import re
from typing import Any

# Precompiled regex for JSON extraction
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Lenient decoder that allows control characters (raw newlines, tabs) inside
# JSON strings; models frequently produce these instead of proper \n escapes.
_LENIENT_DECODER = json.JSONDecoder(strict=False)


def _try_loads(text: str) -> Any:
    """Try parsing JSON, first strictly then leniently."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    return _LENIENT_DECODER.decode(text)


def _extract_json(text: str, brackets: list[tuple[str, str]]) -> Any:
    text = text.strip()

    try:
        return _try_loads(text)
    except json.JSONDecodeError:
        pass

    match = _JSON_FENCE_RE.search(text)
    if match:
        try:
            return _try_loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass

    for start_char, end_char in brackets:
        start = text.find(start_char)
        end = text.rfind(end_char)
        if start != -1 and end != -1 and end > start:
            try:
                return _try_loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Failed to parse JSON from response: {text[:200]}...")


def parse_json_response(text: str) -> dict:
    """Extract a JSON object from response text.

    Raises:
        ValueError: If no JSON object can be found.
    """
    result = _extract_json(text, [("{", "}")])
    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
    return result


def parse_json_array(text: str, key: str = "") -> list:
    """Extract a JSON array from response text.

    If the response is an object, the list under `key` is returned instead.

    Raises:
        ValueError: If no JSON array can be found.
    """
    result = _extract_json(text, [("[", "]"), ("{", "}")])
    if isinstance(result, dict) and key and isinstance(result.get(key), list):
        return result[key]
    if not isinstance(result, list):
        raise ValueError(f"Expected a JSON array, got {type(result).__name__}")
    return result
