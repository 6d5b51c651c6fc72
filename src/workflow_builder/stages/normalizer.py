"""Input Normalizer: classify and validate an untrusted inbound request.

Three shapes are recognized, checked in this order:

* email: carries ``id``, ``threadId`` and ``labelIds``
* form: carries a ``Client Brief`` or ``Your Email`` field
* anything else is an unknown source; a degraded extraction is attempted but
  the request is still marked as failed

`normalize` never raises. Every problem becomes an `ErrorDetail`, and
unexpected exceptions become ``UNEXPECTED_ERROR``.
"""

from collections.abc import Mapping
import logging
import re
from typing import Any

from workflow_builder.config import EMAIL_PATTERN, PipelineSettings, resolve_settings
from workflow_builder.core.types import (
    ErrorDetail,
    NormalizedRequest,
    Severity,
    SourceKind,
)
from workflow_builder.utils import compact_json, utc_timestamp

log = logging.getLogger(__name__)

FORM_BRIEF_FIELD = "Client Brief"
FORM_EMAIL_FIELD = "Your Email"

_UNKNOWN_BRIEF_FIELDS = ("brief", "description", "message")
_UNKNOWN_EMAIL_FIELDS = ("email", "from")

_BRIEF_BLOCK = re.compile(r"\[BRIEF\]([\s\S]*?)(?:\[END\]|\Z)", re.IGNORECASE)
_BRIEF_LINE = re.compile(r"Brief:([\s\S]*?)(?:\n\n|\Z)", re.IGNORECASE)
_SIGNATURES = (
    re.compile(r"--\s*[\r\n][\s\S]*\Z", re.MULTILINE),
    re.compile(r"Best regards,[\s\S]*\Z", re.IGNORECASE),
    re.compile(r"Sent from[\s\S]*\Z", re.IGNORECASE),
    re.compile(r"Get Outlook for[\s\S]*\Z", re.IGNORECASE),
)
_WHITESPACE = re.compile(r"\s+")


# --- Validation ---


def is_valid_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return EMAIL_PATTERN.match(email.strip()) is not None


def is_valid_brief(brief: Any, min_length: int = 10) -> bool:
    if not brief or not isinstance(brief, str):
        return False
    return len(brief.strip()) >= min_length


# --- Sanitization ---


def sanitize_text(text: Any, max_length: int = 5000) -> str:
    """Collapse whitespace runs, trim, and truncate. Non-strings become ``""``."""
    if not text or not isinstance(text, str):
        return ""
    return _WHITESPACE.sub(" ", text).strip()[:max_length]


def sanitize_email(email: Any) -> str:
    """Trim and lower-case. Non-strings become ``""``."""
    if not email or not isinstance(email, str):
        return ""
    return email.strip().lower()


# --- Email helpers ---


def sender_address(payload: Mapping[str, Any]) -> Any:
    """Return ``from.value[0].address`` when present, else the flat ``from`` field."""
    sender = payload.get("from")
    if isinstance(sender, Mapping):
        values = sender.get("value")
        if isinstance(values, list) and values and isinstance(values[0], Mapping):
            address = values[0].get("address")
            if address:
                return address
    return sender or ""


def extract_brief(body: str, subject: str = "") -> str:
    """Pull the workflow brief out of an email body.

    Prefers a ``[BRIEF] ... [END]`` block, then a ``Brief:`` paragraph, then
    the whole body. Trailing signatures are removed and the subject is used
    when nothing is left.
    """
    brief = body
    if "[BRIEF]" in body:
        match = _BRIEF_BLOCK.search(body)
        if match:
            brief = match.group(1).strip()
    elif "Brief:" in body:
        match = _BRIEF_LINE.search(body)
        if match:
            brief = match.group(1).strip()

    for signature in _SIGNATURES:
        brief = signature.sub("", brief, count=1)
    brief = brief.strip()

    return brief or subject


def _text_field(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


# --- Branches ---


def _normalize_email(
    payload: Mapping[str, Any], settings: PipelineSettings, errors: list[ErrorDetail]
) -> tuple[str | None, str | None, dict[str, Any]]:
    subject = _text_field(payload, "subject")
    body = _text_field(payload, "text") or _text_field(payload, "snippet")
    metadata = {
        "emailId": payload.get("id"),
        "threadId": payload.get("threadId"),
        "subject": subject,
    }

    email = None
    sender = sender_address(payload)
    if is_valid_email(sender):
        email = sanitize_email(sender)
    else:
        errors.append(
            ErrorDetail(
                code="INVALID_EMAIL_ADDRESS",
                message="Invalid or missing sender email address",
                field="from",
            )
        )

    brief = None
    content = extract_brief(body, subject)
    if is_valid_brief(content, settings.min_brief_length):
        brief = sanitize_text(content, settings.max_text_length)
    else:
        errors.append(
            ErrorDetail(
                code="INVALID_BRIEF_LENGTH",
                message=(
                    "Email must contain a workflow description "
                    f"(minimum {settings.min_brief_length} characters)"
                ),
                field="brief",
                context={"actualLength": len(content.strip())},
            )
        )

    return brief, email, metadata


def _normalize_form(
    payload: Mapping[str, Any], settings: PipelineSettings, errors: list[ErrorDetail]
) -> tuple[str | None, str | None, dict[str, Any]]:
    form_brief = payload.get(FORM_BRIEF_FIELD)
    form_email = payload.get(FORM_EMAIL_FIELD)

    email = None
    if is_valid_email(form_email):
        email = sanitize_email(form_email)
    else:
        errors.append(
            ErrorDetail(
                code="INVALID_EMAIL_FORMAT",
                message="Valid email address is required",
                field="email",
            )
        )

    brief = None
    if is_valid_brief(form_brief, settings.min_brief_length):
        brief = sanitize_text(form_brief, settings.max_text_length)
    else:
        errors.append(
            ErrorDetail(
                code="MISSING_CLIENT_BRIEF",
                message=(
                    "Client Brief is required and must be at least "
                    f"{settings.min_brief_length} characters"
                ),
                field="brief",
            )
        )

    return brief, email, {"submittedAt": utc_timestamp()}


def _normalize_unknown(
    payload: Mapping[str, Any], settings: PipelineSettings, errors: list[ErrorDetail]
) -> tuple[str | None, str | None, dict[str, Any]]:
    errors.append(
        ErrorDetail(
            code="UNKNOWN_INPUT_SOURCE",
            message="Unrecognized input format. Expected email or form data.",
            context={"availableFields": [str(k) for k in payload]},
        )
    )

    # Degraded extraction for the error report only; it does not pass validation.
    brief_source = next(
        (payload[k] for k in _UNKNOWN_BRIEF_FIELDS if payload.get(k)),
        None,
    ) or compact_json(payload)
    email_source = next(
        (payload[k] for k in _UNKNOWN_EMAIL_FIELDS if payload.get(k)),
        settings.fallback_email,
    )
    brief = sanitize_text(brief_source, settings.max_text_length) or None
    email = sanitize_email(email_source) or None
    return brief, email, {}


def _is_email_payload(payload: Mapping[str, Any]) -> bool:
    return bool(payload.get("id") and payload.get("threadId") and payload.get("labelIds"))


def _is_form_payload(payload: Mapping[str, Any]) -> bool:
    return FORM_BRIEF_FIELD in payload or FORM_EMAIL_FIELD in payload


def normalize(
    raw: Any, *, settings: PipelineSettings | None = None
) -> NormalizedRequest:
    """Classify, validate and sanitize an inbound request."""
    timestamp = utc_timestamp()

    if not isinstance(raw, Mapping):
        detail = ErrorDetail(
            code="INVALID_INPUT",
            message="Input is null, undefined, or not an object",
        )
        log.warning("Rejected inbound request of type %s", type(raw).__name__)
        return NormalizedRequest(
            client_brief=None,
            client_email=None,
            source=SourceKind.ERROR,
            timestamp=timestamp,
            errors=(detail,),
            error_message=detail.message,
            original_input=raw,
        )

    try:
        settings = resolve_settings(settings)
        errors: list[ErrorDetail] = []

        if _is_email_payload(raw):
            source = SourceKind.EMAIL
            brief, email, metadata = _normalize_email(raw, settings, errors)
        elif _is_form_payload(raw):
            source = SourceKind.FORM
            brief, email, metadata = _normalize_form(raw, settings, errors)
        else:
            source = SourceKind.UNKNOWN
            brief, email, metadata = _normalize_unknown(raw, settings, errors)

        error_message = (
            "; ".join(e.message for e in errors if e.severity is Severity.CRITICAL)
            or None
        )
        if errors:
            log.warning(
                "Inbound %s request failed validation: %s",
                source,
                ", ".join(e.code for e in errors),
            )
        else:
            log.debug("Inbound %s request normalized", source)

        return NormalizedRequest(
            client_brief=brief,
            client_email=email,
            source=source,
            timestamp=timestamp,
            errors=tuple(errors),
            error_message=error_message,
            metadata=metadata,
            original_input=raw,
        )
    except Exception as e:
        log.exception("Data normalization failed")
        return NormalizedRequest(
            client_brief=None,
            client_email=None,
            source=SourceKind.ERROR,
            timestamp=timestamp,
            errors=(
                ErrorDetail(
                    code="UNEXPECTED_ERROR",
                    message=f"Data normalization failed: {e}",
                ),
            ),
            error_message=f"Unexpected error: {e}",
            original_input=raw,
        )
