"""Helpers shared by the LLM-backed stages."""

from collections.abc import Mapping
import logging
from typing import Any

from workflow_builder.core.types import ErrorEnvelope, Failure, SourceKind
from workflow_builder.utils import utc_timestamp

log = logging.getLogger(__name__)


def fail(
    stage: str,
    message: str,
    *,
    client_email: str | None,
    source: Any,
    fallback_email: str,
    **extra: Any,
) -> Failure[ErrorEnvelope]:
    """Build and log a `Failure` carrying a fresh `ErrorEnvelope`."""
    log.warning("Stage %s failed: %s", stage, message)
    return Failure(
        ErrorEnvelope(
            message=message,
            stage=stage,
            client_email=client_email or fallback_email,
            source=str(source or SourceKind.UNKNOWN),
            timestamp=utc_timestamp(),
            extra=extra,
        )
    )


def type_name(value: Any) -> str:
    """Wire-friendly name of a value's JSON-ish type."""
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, list | tuple):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__
