"""Validation Reporter: interpret the QA call and render the client report.

This stage is user-facing, so it always returns a `ValidationReport` with a
renderable ``qa_html`` fragment. A missing knowledge base, an upstream error,
an empty or unparsable response all produce ``qa_validation_failed=True``
rather than an exception.
"""

from collections.abc import Mapping
import logging
import math
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.exceptions import LLMResponseError
from workflow_builder.core.types import (
    ErrorEnvelope,
    SourceKind,
    Stage,
    ValidationReport,
)
from workflow_builder.knowledge.base import KnowledgeBasePayload
from workflow_builder.knowledge.rules import evaluate_rules
from workflow_builder.rendering import escape_html, render_qa_notice, render_qa_report
from workflow_builder.response import (
    extract_response_text,
    parse_json_payload,
    upstream_error,
    upstream_error_message,
)
from workflow_builder.utils import compact_json, truncate, utc_timestamp

log = logging.getLogger(__name__)

NO_SUMMARY = "No summary provided"


class QAVerdict(BaseModel):
    """Defensively coerced validator verdict.

    Every field accepts any input and falls back to a safe default, so
    validation only fails on programming errors.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    valid: bool = False
    # Missing values also go through the validator to pick up the configured default.
    confidence: float = Field(default=None, validate_default=True)
    issues: list[Any] = Field(default_factory=list)
    summary: str = NO_SUMMARY
    corrected_artifact: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("correctedArtifact", "correctedWorkflow"),
    )

    @field_validator("valid", mode="before")
    @classmethod
    def coerce_valid(cls, v: Any) -> bool:
        return v is True

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any, info: ValidationInfo) -> float:
        if isinstance(v, int | float) and not isinstance(v, bool):
            try:
                number = float(v)
            except OverflowError:
                number = math.nan
            if math.isfinite(number):
                return number
        context = info.context or {}
        return context.get("default_confidence", 0.95)

    @field_validator("issues", mode="before")
    @classmethod
    def coerce_issues(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []

    @field_validator("summary", mode="before")
    @classmethod
    def coerce_summary(cls, v: Any) -> str:
        if not v:
            return NO_SUMMARY
        return v if isinstance(v, str) else compact_json(v)

    @field_validator("corrected_artifact", mode="before")
    @classmethod
    def coerce_corrected_artifact(cls, v: Any) -> dict[str, Any] | None:
        # Only a complete workflow can replace the formatter's output.
        if (
            isinstance(v, dict)
            and isinstance(v.get("nodes"), list)
            and v["nodes"]
            and isinstance(v.get("connections"), dict)
        ):
            return v
        return None

    def issue_texts(self) -> list[str]:
        """Issues as plain strings: strings as-is, else description, else JSON."""
        texts = []
        for issue in self.issues:
            if isinstance(issue, str):
                texts.append(issue)
            elif isinstance(issue, Mapping) and issue.get("description"):
                texts.append(str(issue["description"]))
            else:
                texts.append(compact_json(issue))
        return texts


def coerce_verdict(parsed: Any, *, default_confidence: float = 0.95) -> QAVerdict:
    """Coerce a decoded validator response into a `QAVerdict`.

    Raises:
        LLMResponseError: If the decoded value is not a JSON object.
    """
    if not isinstance(parsed, dict):
        raise LLMResponseError("QA results is not an object")
    return QAVerdict.model_validate(
        parsed, context={"default_confidence": default_confidence}
    )


def _failed(
    payload: KnowledgeBasePayload,
    html: str,
    **fields: Any,
) -> ValidationReport:
    log.warning("QA validation failed for %s request", payload.source)
    return ValidationReport(
        payload=payload,
        qa_html=html,
        qa_validation_failed=True,
        **fields,
    )


def report_validation(
    llm_output: Any,
    kb_payload: KnowledgeBasePayload | None,
    *,
    settings: PipelineSettings | None = None,
) -> ValidationReport:
    """Build the QA report and choose the final workflow.

    Args:
        llm_output: The raw validator call result.
        kb_payload: Formatter output merged with the knowledge base.
        settings: Optional settings override.

    Raises:
        ConfigurationError: If no settings are given and the environment is
            invalid. Every problem with the validator response is reported in
            the returned `ValidationReport` instead.
    """
    settings = resolve_settings(settings)

    if not isinstance(kb_payload, KnowledgeBasePayload):
        message = "Failed to retrieve knowledge base data"
        log.warning("QA validation skipped: %s", message)
        return ValidationReport(
            envelope=ErrorEnvelope(
                message=message,
                stage=Stage.FORMAT_QA,
                client_email=settings.fallback_email,
                source=SourceKind.UNKNOWN,
                timestamp=utc_timestamp(),
            ),
            qa_html=render_qa_notice("QA validation failed", message, detail_label="Reason: "),
            qa_validation_failed=True,
            qa_error_message=message,
        )

    if upstream_error(llm_output) is not None:
        message = upstream_error_message(llm_output, default="QA validation API error")
        return _failed(
            kb_payload,
            render_qa_notice(
                "QA validation could not complete", message, detail_label="Reason: "
            ),
            qa_error_message=message,
        )

    text = extract_response_text(llm_output)
    if text is None:
        return _failed(
            kb_payload,
            render_qa_notice("QA validation returned no response", css_class="qa-warning"),
        )

    try:
        parsed = parse_json_payload(text)
    except LLMResponseError as e:
        preview = truncate(text, settings.qa_preview_chars)
        return _failed(
            kb_payload,
            render_qa_notice("Failed to parse QA results", str(e), preview=preview),
            qa_parse_error=str(e),
            raw_response=escape_html(preview),
        )

    try:
        return _verdict_report(parsed, kb_payload, settings)
    except (LLMResponseError, ValidationError) as e:
        message = str(e)
    except Exception as e:
        log.exception("QA verdict could not be processed")
        message = str(e) or type(e).__name__
    return _failed(
        kb_payload,
        render_qa_notice("QA processing error:", message),
        qa_error_message=message,
    )


def _verdict_report(
    parsed: Any, kb_payload: KnowledgeBasePayload, settings: PipelineSettings
) -> ValidationReport:
    verdict = coerce_verdict(parsed, default_confidence=settings.default_confidence)
    final_workflow = verdict.corrected_artifact or kb_payload.artifact.workflow_json
    rule_results = evaluate_rules(final_workflow, kb_payload.knowledge_base.validation_rules)
    issues = verdict.issue_texts()

    html = render_qa_report(
        valid=verdict.valid,
        confidence=verdict.confidence,
        issues=issues,
        summary=verdict.summary,
        source=kb_payload.source or "unknown",
        rule_results=rule_results,
    )
    log.debug(
        "QA verdict valid=%s confidence=%.3f issues=%d",
        verdict.valid,
        verdict.confidence,
        len(issues),
    )
    return ValidationReport(
        payload=kb_payload,
        qa_html=html,
        qa_validation_failed=False,
        qa_validation_complete=True,
        qa_results=parsed,
        final_workflow_json=final_workflow,
        rule_results=rule_results,
        metadata={
            "qaConfidence": verdict.confidence,
            "qaIssueCount": len(issues),
            "qaValid": verdict.valid,
        },
    )
