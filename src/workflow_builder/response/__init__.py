"""LLM response access and decoding."""

from .extraction import (
    candidate_stats,
    extract_response_payload,
    extract_response_text,
    upstream_error,
    upstream_error_message,
)
from .parsing import parse_json_object, parse_json_payload, strip_code_fence

__all__ = [
    "candidate_stats",
    "extract_response_payload",
    "extract_response_text",
    "parse_json_object",
    "parse_json_payload",
    "strip_code_fence",
    "upstream_error",
    "upstream_error_message",
]
