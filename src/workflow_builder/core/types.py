"""Core data types that flow through the pipeline.

This module defines the immutable records each stage produces. A stage owns
the record it constructs; downstream stages receive it by value and embed its
wire form (`to_dict`) into their own output to preserve provenance. Failures
travel as `Failure[ErrorEnvelope]` values instead of exceptions so a
human-facing error report can always be produced.
"""

from __future__ import annotations

import copy
import dataclasses
import enum
from types import MappingProxyType
import typing

if typing.TYPE_CHECKING:
    from workflow_builder.knowledge.base import KnowledgeBasePayload
    from workflow_builder.knowledge.rules import RuleOutcome

# --- Minimal guard helpers ---


def _freeze_mapping(
    m: typing.Mapping[str, typing.Any] | None,
) -> typing.Mapping[str, typing.Any]:
    """Return an immutable mapping view, treating None as empty."""
    if isinstance(m, MappingProxyType):
        return m
    return MappingProxyType(dict(m or {}))


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


def plain_copy(value: typing.Any) -> typing.Any:
    """Deep-copy a value into plain dict/list form for wire output."""
    if isinstance(value, typing.Mapping):
        return {k: plain_copy(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [plain_copy(v) for v in value]
    return copy.copy(value)


# --- Enumerations ---


class Severity(enum.StrEnum):
    """How serious an error detail or validation rule is."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class SourceKind(enum.StrEnum):
    """Where an inbound request came from."""

    EMAIL = "email"
    FORM = "form"
    UNKNOWN = "unknown"
    ERROR = "error"


class Stage(enum.StrEnum):
    """Stage labels carried by error envelopes."""

    NORMALIZE = "normalize"
    PREPARE_CONTEXT = "prepare-context"
    ARCHITECT = "architect"
    ARCHITECT_VALIDATION = "architect-validation"
    ARCHITECT_RESPONSE = "architect-response"
    ARCHITECT_PARSE = "architect-parse"
    FORMAT_CONTEXT = "format-context"
    SYNTHESIS = "synthesis"
    SYNTHESIS_VALIDATION = "synthesis-validation"
    SYNTHESIS_PARSE = "synthesis-parse"
    KB_LOAD = "kb-load"
    FORMAT_QA = "format-qa"
    UNKNOWN = "unknown"


# --- Result Monad ---
# Stages return Success | Failure so the orchestrator can pattern-match on the
# outcome instead of checking an ``error`` flag ad hoc.


@dataclasses.dataclass(frozen=True, slots=True)
class Success[TSuccess]:
    """A successful stage result."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure[TFailure]:
    """A failed stage result, carrying the error envelope."""

    error: TFailure


type Result[T] = Success[T] | Failure[ErrorEnvelope]

# --- Error records ---


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorDetail:
    """A single validation or processing problem.

    Created by whichever stage detects the problem and never mutated
    afterwards. ``context`` holds extra wire fields such as ``actualLength``
    or ``availableFields``.
    """

    code: str
    message: str
    severity: Severity = Severity.CRITICAL
    field: str | None = None
    context: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        """Validate and freeze the detail."""
        _require(
            condition=isinstance(self.code, str) and self.code != "",
            message="must be a non-empty str",
            field_name="code",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.message, str),
            message="must be str",
            field_name="message",
            exc=TypeError,
        )
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "context", _freeze_mapping(self.context))

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_dict(self) -> dict[str, typing.Any]:
        data: dict[str, typing.Any] = {
            "code": self.code,
            "message": self.message,
            "severity": str(self.severity),
        }
        if self.field is not None:
            data["field"] = self.field
        for key, value in self.context.items():
            data.setdefault(key, plain_copy(value))
        return data


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorEnvelope:
    """The universal failure record passed between stages.

    Every failing stage produces exactly one envelope. ``extra`` carries
    diagnostics such as truncated raw-text previews or the upstream error.
    """

    message: str
    stage: str
    client_email: str
    source: str
    timestamp: str
    extra: typing.Mapping[str, typing.Any] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate and freeze the envelope."""
        _require(
            condition=isinstance(self.message, str) and self.message != "",
            message="must be a non-empty str",
            field_name="message",
            exc=TypeError,
        )
        _require(
            condition=isinstance(self.stage, str) and self.stage != "",
            message="must be a non-empty str",
            field_name="stage",
            exc=TypeError,
        )
        object.__setattr__(self, "extra", _freeze_mapping(self.extra))

    @classmethod
    def from_normalized(
        cls, normalized: NormalizedRequest, *, fallback_email: str
    ) -> ErrorEnvelope:
        """Lift a failed `NormalizedRequest` into an envelope for the Error Reporter."""
        return cls(
            message=normalized.error_message or "Input validation failed",
            stage=Stage.NORMALIZE,
            client_email=normalized.client_email or fallback_email,
            source=str(normalized.source),
            timestamp=normalized.timestamp,
            extra={"errors": [detail.to_dict() for detail in normalized.errors]},
        )

    def to_dict(self) -> dict[str, typing.Any]:
        data = {key: plain_copy(value) for key, value in self.extra.items()}
        data.update(
            {
                "error": True,
                "message": self.message,
                "stage": str(self.stage),
                "clientEmail": self.client_email,
                "source": str(self.source),
                "timestamp": self.timestamp,
            }
        )
        return data


# --- Stage records ---


@dataclasses.dataclass(frozen=True, slots=True)
class NormalizedRequest:
    """Canonical form of an inbound request (Input Normalizer output).

    ``error`` is derived from ``errors`` so the two can never disagree.
    """

    client_brief: str | None
    client_email: str | None
    source: SourceKind
    timestamp: str
    errors: tuple[ErrorDetail, ...] = ()
    error_message: str | None = None
    metadata: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )
    original_input: typing.Any = None

    def __post_init__(self) -> None:
        """Enforce the error/success invariants."""
        object.__setattr__(self, "source", SourceKind(self.source))
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))
        if self.errors:
            _require(
                condition=any(e.is_critical for e in self.errors),
                message="a failed request needs at least one critical error",
                field_name="errors",
            )
            _require(
                condition=bool(self.error_message),
                message="must be non-empty when errors are present",
                field_name="error_message",
            )
        else:
            _require(
                condition=bool(self.client_brief) and bool(self.client_email),
                message="brief and email are required when there are no errors",
                field_name="client_brief/client_email",
            )

    @property
    def error(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "clientBrief": self.client_brief,
            "clientEmail": self.client_email,
            "source": str(self.source),
            "error": self.error,
            "errors": [e.to_dict() for e in self.errors],
            "errorMessage": self.error_message,
            "timestamp": self.timestamp,
            "metadata": plain_copy(self.metadata),
            "originalInput": plain_copy(self.original_input),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class StageSpec:
    """Structured architect specification (Context Preparer output)."""

    architect_spec: typing.Mapping[str, typing.Any]
    lessons_learned: typing.Mapping[str, typing.Any]
    client_brief: str | None
    client_email: str | None
    source: str
    timestamp: str
    metadata: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        """Freeze the mapping fields."""
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "architectSpec": plain_copy(self.architect_spec),
            "lessonsLearned": plain_copy(self.lessons_learned),
            "clientBrief": self.client_brief,
            "clientEmail": self.client_email,
            "source": str(self.source),
            "timestamp": self.timestamp,
            "metadata": plain_copy(self.metadata),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class ArtifactResult:
    """The parsed workflow plus its escaped summary (Artifact Formatter output)."""

    client_email: str | None
    client_brief: str | None
    source: str
    workflow_json: typing.Mapping[str, typing.Any]
    workflow_summary: str
    timestamp: str
    metadata: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )
    qa_validation_pending: bool = True

    def __post_init__(self) -> None:
        """Validate the workflow shape and freeze metadata."""
        nodes = self.workflow_json.get("nodes")
        _require(
            condition=isinstance(nodes, list) and len(nodes) > 0,
            message="must contain a non-empty nodes list",
            field_name="workflow_json",
        )
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    @property
    def workflow_name(self) -> str:
        name = self.workflow_json.get("name")
        return name if isinstance(name, str) and name.strip() else "Custom Workflow"

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "success": True,
            "clientEmail": self.client_email,
            "clientBrief": self.client_brief,
            "source": str(self.source),
            "workflowJson": plain_copy(self.workflow_json),
            "workflowSummary": self.workflow_summary,
            "timestamp": self.timestamp,
            "qaValidationPending": self.qa_validation_pending,
            "metadata": plain_copy(self.metadata),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationReport:
    """Validation Reporter output.

    Always renderable: even when the knowledge base is missing or the
    validator misbehaves, ``qa_html`` holds an escaped fragment.
    """

    qa_html: str
    qa_validation_failed: bool
    payload: KnowledgeBasePayload | None = None
    envelope: ErrorEnvelope | None = None
    qa_validation_complete: bool = False
    qa_results: typing.Mapping[str, typing.Any] | None = None
    qa_error_message: str | None = None
    qa_parse_error: str | None = None
    raw_response: str | None = None
    final_workflow_json: typing.Mapping[str, typing.Any] | None = None
    rule_results: tuple[RuleOutcome, ...] = ()
    metadata: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )

    @property
    def qa_error(self) -> bool:
        return self.qa_error_message is not None

    def to_dict(self) -> dict[str, typing.Any]:
        if self.payload is not None:
            data = self.payload.to_dict()
        elif self.envelope is not None:
            data = self.envelope.to_dict()
        else:
            data = {}

        data["qaResults"] = plain_copy(self.qa_results)
        data["qaHtml"] = self.qa_html
        data["qaValidationFailed"] = self.qa_validation_failed
        if self.qa_validation_complete:
            data["qaValidationComplete"] = True
        if self.qa_error_message is not None:
            data["qaError"] = True
            data["qaErrorMessage"] = self.qa_error_message
        if self.qa_parse_error is not None:
            data["qaParseError"] = self.qa_parse_error
        if self.raw_response is not None:
            data["rawResponse"] = self.raw_response
        if self.final_workflow_json is not None:
            data["finalWorkflowJson"] = plain_copy(self.final_workflow_json)
        if self.rule_results:
            data["ruleResults"] = [r.to_dict() for r in self.rule_results]
        if self.metadata:
            data["metadata"] = {**data.get("metadata", {}), **plain_copy(self.metadata)}
        return data


@dataclasses.dataclass(frozen=True, slots=True)
class FinalErrorReport:
    """Error Reporter output, ready for the notification sender."""

    client_email: str
    subject: str
    email_html: str
    source: str
    timestamp: str
    error_details: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )
    original_error: typing.Any = None
    critical_error: bool = False
    error_message: str | None = None

    def to_dict(self) -> dict[str, typing.Any]:
        data: dict[str, typing.Any] = {
            "error": True,
            "clientEmail": self.client_email,
            "subject": self.subject,
            "emailHtml": self.email_html,
            "source": self.source,
            "timestamp": self.timestamp,
            "errorDetails": plain_copy(self.error_details),
            "originalError": plain_copy(self.original_error),
        }
        if self.critical_error:
            data["criticalError"] = True
            data["errorMessage"] = self.error_message
        return data


@dataclasses.dataclass(frozen=True, slots=True)
class SuccessNotification:
    """Successful pipeline output, ready for the notification sender."""

    client_email: str
    subject: str
    workflow_summary: str
    qa_html: str
    final_workflow_json: typing.Mapping[str, typing.Any]
    source: str
    qa_validation_failed: bool = False

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "clientEmail": self.client_email,
            "subject": self.subject,
            "workflowSummary": self.workflow_summary,
            "qaHtml": self.qa_html,
            "finalWorkflowJson": plain_copy(self.final_workflow_json),
            "source": self.source,
            "qaValidationFailed": self.qa_validation_failed,
        }
