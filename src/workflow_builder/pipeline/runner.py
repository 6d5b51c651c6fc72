"""Sequential orchestrator for the six stages.

The runner owns the only side effects in the pipeline: it calls the injected
LLM function between stages and hands every upstream payload to the next stage
explicitly. Any `Failure` diverts to the Error Reporter.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import logging
import re
from time import perf_counter
from typing import Any, Protocol

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.types import (
    ErrorEnvelope,
    Failure,
    FinalErrorReport,
    NormalizedRequest,
    Success,
    SuccessNotification,
    ValidationReport,
)
from workflow_builder.knowledge.base import attach_knowledge_base, load_rules
from workflow_builder.pipeline.prompts import (
    PromptBundle,
    build_architect_prompt,
    build_qa_prompt,
    build_synthesis_prompt,
)
from workflow_builder.stages import (
    format_artifact,
    normalize,
    prepare_context,
    report_error,
    report_validation,
)

log = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class GenerateFn(Protocol):
    """An LLM call: takes a prompt, returns the candidates/error response dict."""

    def __call__(self, prompt: PromptBundle) -> Mapping[str, Any]: ...


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineRun:
    """Outcome of one request together with per-stage durations in seconds."""

    outcome: SuccessNotification | FinalErrorReport
    durations: Mapping[str, float]
    report: ValidationReport | None = None

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, SuccessNotification)


def build_success_notification(report: ValidationReport) -> SuccessNotification:
    """Assemble the client notification for a completed run.

    Raises:
        ValueError: If the report carries no formatter payload.
    """
    if report.payload is None:
        raise ValueError("report: has no workflow payload")

    artifact = report.payload.artifact
    final_workflow = report.final_workflow_json or artifact.workflow_json
    name = final_workflow.get("name")
    if not isinstance(name, str) or not name.strip():
        name = artifact.workflow_name
    # Single line so the subject cannot carry extra headers.
    subject = f"Workflow Ready: {_WHITESPACE.sub(' ', name).strip()}"

    return SuccessNotification(
        client_email=artifact.client_email or "",
        subject=subject,
        workflow_summary=artifact.workflow_summary,
        qa_html=report.qa_html,
        final_workflow_json=final_workflow,
        source=str(artifact.source),
        qa_validation_failed=report.qa_validation_failed,
    )


class WorkflowPipeline:
    """Runs inbound requests through normalize, architect, synthesis and QA.

    Example:
        pipeline = WorkflowPipeline(GeminiGenerator())
        run = pipeline.run({"Client Brief": "...", "Your Email": "..."})
    """

    def __init__(
        self, generate: GenerateFn, *, settings: PipelineSettings | None = None
    ) -> None:
        self._generate = generate
        self._settings = settings

    def _call_llm(self, stage: str, prompt: PromptBundle) -> Mapping[str, Any]:
        try:
            return self._generate(prompt)
        except Exception as e:
            log.warning("LLM call for %s raised %s", stage, type(e).__name__)
            return {"error": {"message": str(e) or type(e).__name__}}

    def run(self, raw: Any) -> PipelineRun:
        """Process one inbound request; never raises for pipeline failures.

        Settings are resolved once here and passed to every stage.

        Raises:
            ConfigurationError: If no settings were given and the environment
                is invalid.
        """
        settings = resolve_settings(self._settings)
        durations: dict[str, float] = {}

        def timed(name: str, fn: Any, *args: Any) -> Any:
            start = perf_counter()
            try:
                return fn(*args)
            finally:
                durations[name] = perf_counter() - start

        def failed(error: Any, normalized: NormalizedRequest | None) -> PipelineRun:
            outcome = timed(
                "report-error",
                lambda: report_error(error, normalized, settings=settings),
            )
            return PipelineRun(outcome=outcome, durations=durations)

        normalized = timed("normalize", lambda: normalize(raw, settings=settings))
        if normalized.error:
            envelope = ErrorEnvelope.from_normalized(
                normalized, fallback_email=settings.fallback_email
            )
            return failed(envelope, normalized)

        architect = timed(
            "architect",
            self._call_llm,
            "architect",
            build_architect_prompt(normalized),
        )
        match timed(
            "prepare-context",
            lambda: prepare_context(architect, normalized, settings=settings),
        ):
            case Failure(error=envelope):
                return failed(envelope, normalized)
            case Success(value=context):
                pass

        synthesis = timed(
            "synthesis",
            self._call_llm,
            "synthesis",
            build_synthesis_prompt(context),
        )
        match timed(
            "format-artifact",
            lambda: format_artifact(synthesis, context, settings=settings),
        ):
            case Failure(error=envelope):
                return failed(envelope, normalized)
            case Success(value=artifact):
                pass

        kb = load_rules(settings.knowledge_base_version)
        match attach_knowledge_base(artifact, kb, fallback_email=settings.fallback_email):
            case Failure(error=envelope):
                return failed(envelope, normalized)
            case Success(value=payload):
                pass

        qa = timed("qa", self._call_llm, "qa", build_qa_prompt(payload))
        report = timed(
            "report-validation",
            lambda: report_validation(qa, payload, settings=settings),
        )
        if report.envelope is not None:
            return failed(report.envelope, normalized)

        notification = build_success_notification(report)
        log.info(
            "Workflow delivered for %s request in %.3fs",
            normalized.source,
            sum(durations.values()),
        )
        return PipelineRun(outcome=notification, durations=durations, report=report)
