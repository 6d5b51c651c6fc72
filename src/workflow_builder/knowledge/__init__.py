"""Static knowledge base and structural validation rules."""

from .base import (
    KNOWLEDGE_BASE_VERSION,
    LESSONS_LEARNED,
    KnowledgeBase,
    KnowledgeBasePayload,
    NodePattern,
    PracticeCategory,
    attach_knowledge_base,
    load_rules,
    patterns_by_category,
    rules_by_severity,
)
from .rules import RuleId, RuleOutcome, ValidationRule, default_rules, evaluate_rules

__all__ = [
    "KNOWLEDGE_BASE_VERSION",
    "LESSONS_LEARNED",
    "KnowledgeBase",
    "KnowledgeBasePayload",
    "NodePattern",
    "PracticeCategory",
    "RuleId",
    "RuleOutcome",
    "ValidationRule",
    "attach_knowledge_base",
    "default_rules",
    "evaluate_rules",
    "load_rules",
    "patterns_by_category",
    "rules_by_severity",
]
