"""Static knowledge base: validation rules, best practices and node patterns.

Everything here is literal data assembled in memory; loading performs no I/O
and always yields the same content for a given version.
"""

from __future__ import annotations

from collections.abc import Mapping
import dataclasses
import logging
from typing import Any

from workflow_builder.core.types import (
    ArtifactResult,
    ErrorEnvelope,
    Failure,
    Result,
    Severity,
    SourceKind,
    Stage,
    Success,
    plain_copy,
)
from workflow_builder.knowledge.rules import ValidationRule, default_rules
from workflow_builder.utils import utc_timestamp

log = logging.getLogger(__name__)

KNOWLEDGE_BASE_VERSION = "2.0.0"

# Guidance forwarded to the synthesis prompt by the Context Preparer.
LESSONS_LEARNED: Mapping[str, tuple[str, ...]] = {
    "httpRequests": (
        'Use contentType: "raw" for dynamic expression bodies',
        "Include proper authentication headers",
        "Set continueOnFail: true for error handling",
    ),
    "codeNodes": (
        "Always return array of objects: [{json: {...}}]",
        "Implement try-catch error handling",
        "Validate input before processing",
    ),
    "credentials": (
        "Use OAuth2 for Gmail integration",
        "Store API keys in environment variables",
        "Never hardcode sensitive data",
    ),
    "workflow": (
        "Use unique node IDs",
        "Set proper node positions",
        "Validate connections between nodes",
    ),
}


@dataclasses.dataclass(frozen=True, slots=True)
class PracticeCategory:
    category: str
    practices: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "practices": list(self.practices)}


@dataclasses.dataclass(frozen=True, slots=True)
class NodePattern:
    name: str
    category: str
    nodes: tuple[str, ...]
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "nodes": list(self.nodes),
            "description": self.description,
        }


BEST_PRACTICES = (
    PracticeCategory(
        "Error Handling",
        (
            "Use continueOnFail: true on HTTP nodes",
            "Implement error branches with IF nodes",
            "Add error handler nodes for critical paths",
            "Log errors for debugging",
        ),
    ),
    PracticeCategory(
        "Code Nodes",
        (
            "Always return [{json: {...}}] format",
            "Wrap logic in try-catch blocks",
            "Validate input data before processing",
            "Use helper functions for complex logic",
        ),
    ),
    PracticeCategory(
        "HTTP Requests",
        (
            'Use contentType: "raw" for dynamic bodies',
            "Include proper headers",
            "Handle rate limiting",
            "Use authentication nodes",
        ),
    ),
    PracticeCategory(
        "Security",
        (
            "Store credentials in credential manager",
            "Use environment variables for API keys",
            "Sanitize user inputs",
            "Escape HTML output",
        ),
    ),
)

NODE_PATTERNS = (
    NodePattern(
        name="Webhook Response Pattern",
        category="webhook",
        nodes=("Webhook", "Process Data", "Respond to Webhook"),
        description="Standard pattern for responding to webhooks",
    ),
    NodePattern(
        name="API Integration Pattern",
        category="integration",
        nodes=("HTTP Request", "Transform Data", "Error Handler"),
        description="Pattern for external API calls",
    ),
    NodePattern(
        name="Scheduled Task Pattern",
        category="scheduled",
        nodes=("Schedule Trigger", "Fetch Data", "Process", "Store/Send"),
        description="Pattern for scheduled automation",
    ),
)


@dataclasses.dataclass(frozen=True, slots=True)
class KnowledgeBase:
    """Immutable rule set and guidance for one pipeline run."""

    version: str
    validation_rules: tuple[ValidationRule, ...]
    best_practices: tuple[PracticeCategory, ...]
    node_patterns: tuple[NodePattern, ...]

    @property
    def stats(self) -> dict[str, int]:
        return {
            "validationRules": len(self.validation_rules),
            "bestPractices": sum(len(c.practices) for c in self.best_practices),
            "practiceCategories": len(self.best_practices),
            "patterns": len(self.node_patterns),
        }

    def rule(self, rule_id: str) -> ValidationRule | None:
        return next((r for r in self.validation_rules if r.id == rule_id), None)

    def summary(self) -> dict[str, Any]:
        return {"version": self.version, "stats": self.stats, "readyForValidation": True}

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "validationRules": [r.to_dict() for r in self.validation_rules],
            "bestPractices": [c.to_dict() for c in self.best_practices],
            "nodePatterns": [p.to_dict() for p in self.node_patterns],
            "stats": self.stats,
        }


def load_rules(version: str = KNOWLEDGE_BASE_VERSION) -> KnowledgeBase:
    """Build the static knowledge base."""
    return KnowledgeBase(
        version=version,
        validation_rules=default_rules(),
        best_practices=BEST_PRACTICES,
        node_patterns=NODE_PATTERNS,
    )


def patterns_by_category(kb: KnowledgeBase, category: str) -> tuple[NodePattern, ...]:
    return tuple(p for p in kb.node_patterns if p.category == category)


def rules_by_severity(
    kb: KnowledgeBase, severity: Severity | str
) -> tuple[ValidationRule, ...]:
    return tuple(r for r in kb.validation_rules if r.severity == severity)


@dataclasses.dataclass(frozen=True, slots=True)
class KnowledgeBasePayload:
    """An `ArtifactResult` extended with the knowledge base.

    The wire form spreads the artifact first and only adds keys, so nothing the
    formatter set is ever overwritten.
    """

    artifact: ArtifactResult
    knowledge_base: KnowledgeBase
    loaded_at: str

    @property
    def source(self) -> str:
        return str(self.artifact.source)

    def to_dict(self) -> dict[str, Any]:
        data = self.artifact.to_dict()
        additions = {
            "knowledgeBase": self.knowledge_base.to_dict(),
            "knowledgeBaseReady": True,
            "qaValidationStarting": True,
            "kbStats": self.knowledge_base.stats,
            "kbVersion": self.knowledge_base.version,
            "kbLoadedAt": self.loaded_at,
        }
        for key, value in additions.items():
            data.setdefault(key, plain_copy(value))
        return data


def attach_knowledge_base(
    previous: Any,
    kb: KnowledgeBase,
    *,
    fallback_email: str = "unknown@example.com",
) -> Result[KnowledgeBasePayload]:
    """Merge ``kb`` into the formatter's output."""
    if not isinstance(previous, ArtifactResult):
        log.warning("Knowledge base merge received %s", type(previous).__name__)
        return Failure(
            ErrorEnvelope(
                message="Knowledge base load failed: Invalid input data",
                stage=Stage.KB_LOAD,
                client_email=getattr(previous, "client_email", None) or fallback_email,
                source=str(getattr(previous, "source", None) or SourceKind.UNKNOWN),
                timestamp=utc_timestamp(),
                extra={"receivedType": type(previous).__name__},
            )
        )

    log.debug("Knowledge base %s attached", kb.version)
    return Success(
        KnowledgeBasePayload(artifact=previous, knowledge_base=kb, loaded_at=utc_timestamp())
    )
