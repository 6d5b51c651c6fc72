"""
Unit tests for the LLM prompt builders
"""

import pytest

from workflow_builder.pipeline.prompts import (
    JSON_ONLY,
    PromptBundle,
    build_architect_prompt,
    build_qa_prompt,
    build_synthesis_prompt,
)

pytestmark = pytest.mark.unit


def test_bundle_requires_user_text():
    """An empty user prompt is a programming error."""
    with pytest.raises(ValueError, match="user"):
        PromptBundle(user="  ")


def test_architect_prompt_fences_the_brief(normalized):
    """The brief should be enclosed as data."""
    bundle = build_architect_prompt(normalized)

    assert (
        f"<client_request>\n{normalized.client_brief}\n</client_request>" in bundle.user
    )
    assert bundle.user.endswith(JSON_ONLY)
    assert bundle.system


def test_builders_are_deterministic(normalized, stage_spec, kb_payload):
    """The same inputs should yield the same prompts."""
    assert build_architect_prompt(normalized) == build_architect_prompt(normalized)
    assert build_synthesis_prompt(stage_spec) == build_synthesis_prompt(stage_spec)
    assert build_qa_prompt(kb_payload) == build_qa_prompt(kb_payload)


def test_synthesis_prompt_carries_spec_and_lessons(stage_spec):
    """The plan and the lessons should both reach the model."""
    bundle = build_synthesis_prompt(stage_spec)

    assert '"name": "Order Sync"' in bundle.user
    assert "Use unique node IDs" in bundle.user


def test_qa_prompt_lists_rules_and_workflow(kb_payload):
    """Every rule and the workflow under review should be in the prompt."""
    bundle = build_qa_prompt(kb_payload)

    assert "- [critical] unique-node-ids: All node IDs must be unique" in bundle.user
    for rule in kb_payload.knowledge_base.validation_rules:
        assert str(rule.id) in bundle.user
    assert '"Fetch Orders"' in bundle.user
    assert "correctedWorkflow" in bundle.user
