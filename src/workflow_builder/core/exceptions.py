"""Exceptions raised inside pipeline stages.

Stages never let these escape: each one is caught at the stage boundary and
turned into an `ErrorEnvelope` so the Error Reporter can always render it.
"""


class WorkflowBuilderError(Exception):
    """Base exception for workflow builder errors."""


class ConfigurationError(WorkflowBuilderError):
    """Raised when pipeline settings cannot be resolved or are invalid."""


class LLMResponseError(WorkflowBuilderError):
    """Raised when an LLM response cannot be decoded into the expected shape."""


class ArtifactStructureError(LLMResponseError):
    """Raised when a decoded workflow lacks its nodes or connections."""
