"""The pipeline stages, in execution order."""

from .context import prepare_context
from .error_reporter import report_error
from .formatter import format_artifact, parse_workflow
from .normalizer import (
    is_valid_brief,
    is_valid_email,
    normalize,
    sanitize_email,
    sanitize_text,
)
from .qa import QAVerdict, report_validation

__all__ = [
    "QAVerdict",
    "format_artifact",
    "is_valid_brief",
    "is_valid_email",
    "normalize",
    "parse_workflow",
    "prepare_context",
    "report_error",
    "report_validation",
    "sanitize_email",
    "sanitize_text",
]
