"""Artifact Formatter: parse the synthesis output into the final workflow.

The workflow name comes from the LLM, which in turn saw the untrusted client
brief, so the summary is only ever produced through `render_workflow_summary`.
"""

from collections.abc import Mapping
import dataclasses
import logging
from typing import Any

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.exceptions import ArtifactStructureError, LLMResponseError
from workflow_builder.core.types import (
    ArtifactResult,
    Result,
    Stage,
    StageSpec,
    Success,
)
from workflow_builder.knowledge.rules import is_trigger_node, iter_nodes
from workflow_builder.rendering import render_workflow_summary
from workflow_builder.response import (
    extract_response_text,
    parse_json_object,
    upstream_error,
    upstream_error_message,
)
from workflow_builder.stages.common import fail, type_name
from workflow_builder.utils import compact_json, truncate, utc_timestamp

log = logging.getLogger(__name__)


def parse_workflow(text: str | None) -> dict[str, Any]:
    """Decode and structurally check a generated workflow.

    Raises:
        LLMResponseError: If there is no text or it is not a JSON object.
        ArtifactStructureError: If ``nodes`` or ``connections`` are unusable.
    """
    if text is None:
        raise LLMResponseError("No response from synthesis")

    workflow = parse_json_object(text, what="workflow")
    if not isinstance(workflow.get("nodes"), list):
        raise ArtifactStructureError("Workflow missing nodes array")
    if not isinstance(workflow.get("connections"), dict):
        raise ArtifactStructureError("Workflow missing connections object")
    if not workflow["nodes"]:
        raise ArtifactStructureError("Workflow has no nodes")
    return workflow


def workflow_stats(workflow: Mapping[str, Any]) -> dict[str, int]:
    nodes = list(iter_nodes(workflow))
    return {
        "nodeCount": len(nodes),
        "connectionCount": len(workflow.get("connections") or {}),
        "size": len(compact_json(workflow)),
        "credentialsRequired": sum(1 for n in nodes if n.get("credentials")),
        "triggerCount": sum(1 for n in nodes if is_trigger_node(n)),
    }


def format_artifact(
    llm_output: Any,
    context: StageSpec | None,
    *,
    settings: PipelineSettings | None = None,
) -> Result[ArtifactResult]:
    """Turn the synthesis response into an `ArtifactResult` with a safe summary.

    Raises:
        ConfigurationError: If no settings are given and the environment is invalid.
    """
    settings = resolve_settings(settings)
    fallback = settings.fallback_email

    if not isinstance(context, StageSpec):
        return fail(
            Stage.FORMAT_CONTEXT,
            "Missing context from Context Preparer",
            client_email=None,
            source=None,
            fallback_email=fallback,
            recoverable=False,
        )

    email = context.client_email
    source = context.source

    error = upstream_error(llm_output)
    if error is not None:
        return fail(
            Stage.SYNTHESIS,
            f"Synthesis failed: {upstream_error_message(llm_output)}",
            client_email=email,
            source=source,
            fallback_email=fallback,
            upstreamError=error,
        )

    if not isinstance(llm_output, Mapping):
        return fail(
            Stage.SYNTHESIS_VALIDATION,
            "Invalid synthesis output: expected an object",
            client_email=email,
            source=source,
            fallback_email=fallback,
            receivedType=type_name(llm_output),
        )

    text = extract_response_text(llm_output)
    try:
        workflow = parse_workflow(text)
    except LLMResponseError as e:
        return fail(
            Stage.SYNTHESIS_PARSE,
            f"Failed to parse workflow JSON: {e}",
            client_email=email,
            source=source,
            fallback_email=fallback,
            parseError=str(e),
            responsePreview=truncate(text, settings.parse_preview_chars),
        )

    stats = workflow_stats(workflow)
    artifact = ArtifactResult(
        client_email=email,
        client_brief=context.client_brief,
        source=source,
        workflow_json=workflow,
        workflow_summary="",
        timestamp=context.timestamp,
        metadata=stats,
    )
    summary = render_workflow_summary(
        name=artifact.workflow_name,
        node_count=stats["nodeCount"],
        connection_count=stats["connectionCount"],
        source=source or "unknown",
        generated_at=utc_timestamp(),
    )
    log.debug(
        "Workflow formatted: %d nodes, %d connections",
        stats["nodeCount"],
        stats["connectionCount"],
    )
    return Success(dataclasses.replace(artifact, workflow_summary=summary))
