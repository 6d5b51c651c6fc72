"""Decoding of JSON embedded in LLM prose.

Models frequently wrap their JSON in a Markdown fence. `strip_code_fence`
removes a ```json or bare ``` wrapper (first fenced block only) and
`parse_json_payload` decodes the remainder.
"""

import json
import re
from typing import Any

from workflow_builder.core.exceptions import LLMResponseError

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_BARE_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
_JSON_TAG = re.compile(r"```json", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """Return the contents of the first fenced block, or the trimmed text.

    An unterminated fence yields everything after the opening marker.
    """
    text = text.strip()
    if _JSON_TAG.search(text):
        match = _JSON_FENCE.search(text)
        if match:
            return match.group(1).strip()
        return _JSON_TAG.split(text, maxsplit=1)[1].split("```", 1)[0].strip()
    if "```" in text:
        match = _BARE_FENCE.search(text)
        if match:
            return match.group(1).strip()
        return text.split("```", 2)[1].strip()
    return text


def parse_json_payload(payload: Any) -> Any:
    """Decode an LLM payload that may be fenced JSON text.

    Non-string payloads (already-decoded JSON) are returned unchanged.

    Raises:
        LLMResponseError: If the text is not valid JSON or nests too deeply.
    """
    if not isinstance(payload, str):
        return payload

    try:
        return json.loads(strip_code_fence(payload))
    except ValueError as e:
        # JSONDecodeError, or an integer beyond the interpreter's digit limit.
        raise LLMResponseError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise LLMResponseError("Invalid JSON: nesting too deep") from e


def parse_json_object(payload: Any, *, what: str = "payload") -> dict[str, Any]:
    """Decode a payload and require a JSON object.

    Raises:
        LLMResponseError: If decoding fails or the value is not an object.
    """
    parsed = parse_json_payload(payload)
    if not isinstance(parsed, dict):
        raise LLMResponseError(f"Parsed {what} is not an object")
    return parsed
