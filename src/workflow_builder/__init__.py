"""Staged LLM workflow generation with validation and safe reporting."""

import importlib.metadata
import logging

from workflow_builder.config import PipelineSettings, config_scope, get_ambient_settings
from workflow_builder.core.exceptions import (
    ArtifactStructureError,
    ConfigurationError,
    LLMResponseError,
    WorkflowBuilderError,
)
from workflow_builder.core.types import (
    ArtifactResult,
    ErrorDetail,
    ErrorEnvelope,
    Failure,
    FinalErrorReport,
    NormalizedRequest,
    Result,
    Severity,
    SourceKind,
    Stage,
    StageSpec,
    Success,
    SuccessNotification,
    ValidationReport,
)
from workflow_builder.knowledge import (
    KnowledgeBase,
    KnowledgeBasePayload,
    RuleId,
    attach_knowledge_base,
    load_rules,
)
from workflow_builder.pipeline import (
    GenerateFn,
    PipelineRun,
    PromptBundle,
    WorkflowPipeline,
    build_success_notification,
)
from workflow_builder.rendering import escape_html
from workflow_builder.stages import (
    format_artifact,
    normalize,
    prepare_context,
    report_error,
    report_validation,
)

# Version handling
try:
    __version__ = importlib.metadata.version("workflow-builder")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logger stays silent unless the application configures logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Public API
__all__ = [  # noqa: RUF022
    # Pipeline
    "WorkflowPipeline",
    "PipelineRun",
    "GenerateFn",
    "PromptBundle",
    "build_success_notification",
    # Stages
    "normalize",
    "prepare_context",
    "format_artifact",
    "load_rules",
    "attach_knowledge_base",
    "report_validation",
    "report_error",
    "escape_html",
    # Configuration
    "PipelineSettings",
    "config_scope",
    "get_ambient_settings",
    # Core Types
    "Result",
    "Success",
    "Failure",
    "Severity",
    "SourceKind",
    "Stage",
    "ErrorDetail",
    "ErrorEnvelope",
    "NormalizedRequest",
    "StageSpec",
    "ArtifactResult",
    "KnowledgeBase",
    "KnowledgeBasePayload",
    "RuleId",
    "ValidationReport",
    "FinalErrorReport",
    "SuccessNotification",
    # Exceptions
    "WorkflowBuilderError",
    "ConfigurationError",
    "LLMResponseError",
    "ArtifactStructureError",
]
