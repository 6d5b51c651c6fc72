"""Null-safe access into LLM call results.

Every LLM call result is either ``{"candidates": [{"content": {"parts":
[{"text": ...}]}}]}`` or ``{"error": {...}}``. Nothing about the shape is
trusted: any level may be missing, null, or of the wrong type.
"""

from collections.abc import Mapping, Sequence
from typing import Any


def _first(value: Any) -> Any:
    if isinstance(value, Sequence) and not isinstance(value, str | bytes) and value:
        return value[0]
    return None


def _get(value: Any, key: str) -> Any:
    return value.get(key) if isinstance(value, Mapping) else None


def extract_response_payload(llm_output: Any) -> Any:
    """Return ``candidates[0].content.parts[0].text`` or None when any hop is absent.

    The value is returned as-is; callers decide what to do with non-strings.
    """
    candidate = _first(_get(llm_output, "candidates"))
    part = _first(_get(_get(candidate, "content"), "parts"))
    return _get(part, "text")


def extract_response_text(llm_output: Any) -> str | None:
    """Like `extract_response_payload` but only yields non-empty strings."""
    text = extract_response_payload(llm_output)
    return text if isinstance(text, str) and text else None


def candidate_stats(llm_output: Any) -> dict[str, Any]:
    """Diagnostics describing why no text could be found."""
    candidates = _get(llm_output, "candidates")
    count = (
        len(candidates)
        if isinstance(candidates, Sequence) and not isinstance(candidates, str)
        else 0
    )
    return {
        "candidatesCount": count,
        "hasContent": bool(_get(_first(candidates), "content")),
    }


def upstream_error(llm_output: Any) -> Any:
    """Return the upstream ``error`` value when the LLM call reported one.

    Any present ``error`` counts, including an empty object; only a missing,
    null, false, zero or empty-string value means no error.
    """
    error = _get(llm_output, "error")
    if error is None or error == "" or error == 0:
        return None
    return error


def upstream_error_message(llm_output: Any, default: str = "Unknown error") -> str:
    """Resolve a human-readable message for an upstream error.

    Looks at ``error.message``, then ``error`` itself when it is a string,
    then a top-level ``message``.
    """
    error = _get(llm_output, "error")
    for candidate in (
        _get(error, "message"),
        error if isinstance(error, str) else None,
        _get(llm_output, "message"),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return default
