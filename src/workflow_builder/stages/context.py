"""Context Preparer: turn the architect call's output into a `StageSpec`."""

from collections.abc import Mapping
import logging
from typing import Any

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.exceptions import LLMResponseError
from workflow_builder.core.types import (
    NormalizedRequest,
    Result,
    Stage,
    StageSpec,
    Success,
)
from workflow_builder.knowledge.base import LESSONS_LEARNED
from workflow_builder.response import (
    candidate_stats,
    extract_response_text,
    parse_json_object,
    upstream_error,
    upstream_error_message,
)
from workflow_builder.stages.common import fail, type_name
from workflow_builder.utils import truncate

log = logging.getLogger(__name__)


def prepare_context(
    llm_output: Any,
    normalized: NormalizedRequest | None,
    *,
    settings: PipelineSettings | None = None,
) -> Result[StageSpec]:
    """Parse the architect response into a structured specification.

    Args:
        llm_output: The raw architect call result.
        normalized: The successful Input Normalizer output for this request.
        settings: Optional settings override.

    Returns:
        `Success` with the `StageSpec`, or `Failure` with an envelope whose
        stage names the check that failed.

    Raises:
        ConfigurationError: If no settings are given and the
            ``WORKFLOW_BUILDER_*`` environment is invalid. This is a deployment
            error, not a request failure, so it is not turned into an envelope.
    """
    settings = resolve_settings(settings)

    if not isinstance(normalized, NormalizedRequest):
        return fail(
            Stage.PREPARE_CONTEXT,
            "Missing normalized request data",
            client_email=None,
            source=None,
            fallback_email=settings.fallback_email,
            recoverable=False,
        )

    email = normalized.client_email
    source = normalized.source
    fallback = settings.fallback_email

    error = upstream_error(llm_output)
    if error is not None:
        return fail(
            Stage.ARCHITECT,
            f"Architect failed: {upstream_error_message(llm_output)}",
            client_email=email,
            source=source,
            fallback_email=fallback,
            upstreamError=error,
        )

    if not isinstance(llm_output, Mapping):
        return fail(
            Stage.ARCHITECT_VALIDATION,
            "Invalid architect output: expected an object",
            client_email=email,
            source=source,
            fallback_email=fallback,
            receivedType=type_name(llm_output),
        )

    text = extract_response_text(llm_output)
    if text is None:
        return fail(
            Stage.ARCHITECT_RESPONSE,
            "Architect returned no response text",
            client_email=email,
            source=source,
            fallback_email=fallback,
            **candidate_stats(llm_output),
        )

    try:
        architect_spec = parse_json_object(text, what="architect output")
    except LLMResponseError as e:
        return fail(
            Stage.ARCHITECT_PARSE,
            f"Failed to parse architect output: {e}",
            client_email=email,
            source=source,
            fallback_email=fallback,
            parseError=str(e),
            rawResponsePreview=truncate(text, settings.parse_preview_chars),
        )

    log.debug("Architect spec prepared with %d top-level keys", len(architect_spec))
    return Success(
        StageSpec(
            architect_spec=architect_spec,
            lessons_learned=LESSONS_LEARNED,
            client_brief=normalized.client_brief,
            client_email=email,
            source=str(source),
            timestamp=normalized.timestamp,
            metadata={
                "normalizerMetadata": normalized.metadata,
                "architectResponseSize": len(text),
            },
        )
    )
