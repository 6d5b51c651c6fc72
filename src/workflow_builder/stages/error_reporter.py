"""Error Reporter: the terminal stage for every failure.

`report_error` accepts whatever the failing stage produced and always returns
a `FinalErrorReport`. If building the report itself goes wrong, a fixed,
pre-escaped fragment addressed to the support contact is returned instead.
"""

from collections.abc import Mapping
import logging
from typing import Any

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.types import ErrorEnvelope, FinalErrorReport, NormalizedRequest
from workflow_builder.rendering import (
    FALLBACK_ERROR_HTML,
    escape_html,
    render_error_report,
)
from workflow_builder.stages.normalizer import is_valid_email, sanitize_email
from workflow_builder.utils import utc_timestamp

log = logging.getLogger(__name__)

ERROR_SUBJECT = "Workflow Generation Failed"
CRITICAL_SUBJECT = "Critical: Error Handler Failure"
CRITICAL_SOURCE = "error-handler-failure"
DEFAULT_MESSAGE = "Unknown error occurred"
DEFAULT_SUPPORT_EMAIL = "support@example.com"


def _as_mapping(value: Any, fallback_email: str) -> Mapping[str, Any]:
    if isinstance(value, ErrorEnvelope):
        return value.to_dict()
    if isinstance(value, NormalizedRequest):
        if value.error:
            return ErrorEnvelope.from_normalized(
                value, fallback_email=fallback_email
            ).to_dict()
        return value.to_dict()
    if isinstance(value, Mapping):
        return value
    return {}


def _text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def _sub_errors(data: Mapping[str, Any]) -> list[dict[str, str]] | None:
    errors = data.get("errors")
    if not isinstance(errors, list):
        return None
    items = []
    for err in errors:
        err = err if isinstance(err, Mapping) else {}
        items.append(
            {
                "code": _text(err.get("code"), "UNKNOWN"),
                "message": _text(err.get("message"), ""),
                "severity": _text(err.get("severity"), "unknown"),
            }
        )
    return items


def _error_code(data: Mapping[str, Any]) -> str:
    errors = data.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        if errors[0].get("code"):
            return _text(errors[0]["code"], "UNKNOWN_ERROR")
    return _text(data.get("code"), "UNKNOWN_ERROR")


def report_error(
    error: Any,
    normalized: NormalizedRequest | Mapping[str, Any] | None = None,
    *,
    settings: PipelineSettings | None = None,
) -> FinalErrorReport:
    """Render a client-facing error report for any stage failure.

    Args:
        error: An `ErrorEnvelope`, a failed `NormalizedRequest`, a wire-form
            mapping, or anything else (including None).
        normalized: The normalizer's output, used when ``error`` lacks the
            client address or source.
        settings: Optional settings override.

    Returns:
        A `FinalErrorReport`. The client address is either a validated
        address or the support contact.
    """
    support_email = DEFAULT_SUPPORT_EMAIL
    try:
        settings = resolve_settings(settings)
        support_email = settings.support_email

        data = _as_mapping(error, settings.fallback_email)
        stored = _as_mapping(normalized, settings.fallback_email)

        stage = _text(data.get("stage"), "unknown")
        message = _text(data.get("message") or data.get("errorMessage"), DEFAULT_MESSAGE)
        source = _text(data.get("source") or stored.get("source"), "unknown")
        candidate = (
            data.get("clientEmail") or stored.get("clientEmail") or settings.fallback_email
        )
        client_email = (
            sanitize_email(candidate) if is_valid_email(candidate) else support_email
        )
        timestamp = utc_timestamp()
        error_code = _error_code(data)
        sub_errors = _sub_errors(data)

        html = render_error_report(
            stage=stage,
            timestamp=timestamp,
            source=source,
            error_code=error_code,
            message=message,
            errors=sub_errors or (),
        )

        details: dict[str, Any] = {
            "stage": escape_html(stage),
            "message": escape_html(message),
            "source": escape_html(source),
            "timestamp": timestamp,
            "errorCode": escape_html(error_code),
        }
        if sub_errors is not None:
            details["errorCount"] = len(sub_errors)
            details["errors"] = [
                {key: escape_html(value) for key, value in item.items()}
                for item in sub_errors
            ]

        log.warning("Reporting %s failure to client: %s", stage, error_code)
        return FinalErrorReport(
            client_email=client_email,
            subject=ERROR_SUBJECT,
            email_html=html,
            source=source,
            timestamp=timestamp,
            error_details=details,
            original_error=data if data else error,
        )
    except Exception as e:
        log.error("Error report could not be built", exc_info=True)
        return FinalErrorReport(
            client_email=support_email,
            subject=CRITICAL_SUBJECT,
            email_html=FALLBACK_ERROR_HTML,
            source=CRITICAL_SOURCE,
            timestamp=utc_timestamp(),
            critical_error=True,
            error_message=str(e),
        )
