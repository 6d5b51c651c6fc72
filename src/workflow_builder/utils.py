"""Small helpers shared across stages."""

from datetime import UTC, datetime
import json
from typing import Any


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compact_json(value: Any) -> str:
    """Serialize without whitespace; non-JSON values fall back to ``str``."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def truncate(text: Any, limit: int) -> str | None:
    """Return the first ``limit`` characters of a string, or None for non-strings."""
    if not isinstance(text, str):
        return None
    return text[:limit]
