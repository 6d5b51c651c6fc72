"""
Global test configuration with support for different test types.
"""

from collections.abc import Callable, Iterable, Mapping
import copy
import json
import os
from typing import Any

import pytest

from workflow_builder.config import PipelineSettings
from workflow_builder.core.types import (
    ArtifactResult,
    NormalizedRequest,
    SourceKind,
    StageSpec,
)
from workflow_builder.knowledge.base import (
    LESSONS_LEARNED,
    KnowledgeBasePayload,
    load_rules,
)
from workflow_builder.pipeline.prompts import PromptBundle

TIMESTAMP = "2025-01-01T00:00:00.000Z"


# --- Environment Isolation (Autouse) ---
@pytest.fixture(autouse=True)
def isolate_workflow_env(request, monkeypatch):
    """Ensure a clean WORKFLOW_BUILDER_* environment for each test.

    Escape hatch: @pytest.mark.allow_env_pollution keeps the current env.
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith("WORKFLOW_BUILDER_"):
            monkeypatch.delenv(key, raising=False)


def pytest_configure(config):
    """Configure custom markers for test organization."""
    markers = [
        "unit: Fast, isolated unit tests",
        "contract: Invariants every stage must uphold",
        "integration: Full pipeline runs with a scripted LLM",
        "allow_env_pollution: Keep WORKFLOW_BUILDER_* variables for this test",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


# --- LLM response builders ---


def _llm_text(text: Any) -> dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def llm_text() -> Callable[[Any], dict[str, Any]]:
    """Factory for a successful LLM call result carrying ``text``."""
    return _llm_text


@pytest.fixture
def llm_json(llm_text) -> Callable[..., dict[str, Any]]:
    """Factory for an LLM result whose text is ``value`` as (optionally fenced) JSON."""

    def _build(value: Any, *, fenced: bool = False) -> dict[str, Any]:
        text = json.dumps(value)
        if fenced:
            text = f"```json\n{text}\n```"
        return llm_text(text)

    return _build


@pytest.fixture
def llm_error() -> Callable[[str], dict[str, Any]]:
    """Factory for an LLM result that reports an upstream error."""

    def _build(message: str = "quota exceeded") -> dict[str, Any]:
        return {"error": {"message": message, "code": 429}}

    return _build


# --- Domain samples ---


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def form_payload() -> dict[str, Any]:
    return {
        "Client Brief": "Sync Shopify orders to Airtable daily",
        "Your Email": "Test@Example.COM",
    }


@pytest.fixture
def email_payload() -> dict[str, Any]:
    return {
        "id": "msg-1",
        "threadId": "thread-1",
        "labelIds": ["INBOX"],
        "from": {"value": [{"address": "Client@Example.com", "name": "Client"}]},
        "subject": "New automation",
        "text": (
            "Hello,\n\n[BRIEF]\nWhen a Typeform is submitted, add a row to "
            "Google Sheets and notify Slack.\n[END]\n\nThanks"
        ),
    }


@pytest.fixture
def workflow() -> dict[str, Any]:
    """A small, structurally valid workflow."""
    return {
        "name": "Order Sync",
        "nodes": [
            {
                "id": "1",
                "name": "Schedule Trigger",
                "type": "n8n-nodes-base.scheduleTrigger",
                "typeVersion": 1,
                "position": [0, 0],
                "parameters": {},
            },
            {
                "id": "2",
                "name": "Fetch Orders",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 4,
                "position": [200, 0],
                "parameters": {"url": "https://shop.example.com/orders"},
                "credentials": {"httpHeaderAuth": {"id": "c1"}},
            },
            {
                "id": "3",
                "name": "Store Rows",
                "type": "n8n-nodes-base.airtable",
                "typeVersion": 2,
                "position": [400, 0],
                "parameters": {},
            },
        ],
        "connections": {
            "Schedule Trigger": {"main": [[{"node": "Fetch Orders", "type": "main", "index": 0}]]},
            "Fetch Orders": {"main": [[{"node": "Store Rows", "type": "main", "index": 0}]]},
        },
    }


@pytest.fixture
def normalized() -> NormalizedRequest:
    return NormalizedRequest(
        client_brief="Sync Shopify orders to Airtable daily",
        client_email="test@example.com",
        source=SourceKind.FORM,
        timestamp=TIMESTAMP,
        metadata={"submittedAt": TIMESTAMP},
    )


@pytest.fixture
def stage_spec() -> StageSpec:
    return StageSpec(
        architect_spec={"name": "Order Sync", "steps": []},
        lessons_learned=LESSONS_LEARNED,
        client_brief="Sync Shopify orders to Airtable daily",
        client_email="test@example.com",
        source="form",
        timestamp=TIMESTAMP,
    )


@pytest.fixture
def make_artifact(workflow) -> Callable[..., ArtifactResult]:
    def _build(**overrides: Any) -> ArtifactResult:
        fields: dict[str, Any] = {
            "client_email": "test@example.com",
            "client_brief": "Sync Shopify orders to Airtable daily",
            "source": "form",
            "workflow_json": copy.deepcopy(workflow),
            "workflow_summary": "<div>summary</div>",
            "timestamp": TIMESTAMP,
            "metadata": {"nodeCount": 3},
        }
        fields.update(overrides)
        return ArtifactResult(**fields)

    return _build


@pytest.fixture
def kb_payload(make_artifact) -> KnowledgeBasePayload:
    return KnowledgeBasePayload(
        artifact=make_artifact(),
        knowledge_base=load_rules(),
        loaded_at=TIMESTAMP,
    )


# --- Scripted LLM ---


class ScriptedLLM:
    """A `GenerateFn` that replays queued responses and records prompts."""

    def __init__(self, responses: Iterable[Mapping[str, Any] | Exception]):
        self.responses = list(responses)
        self.prompts: list[PromptBundle] = []

    def __call__(self, prompt: PromptBundle) -> Mapping[str, Any]:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def scripted_llm() -> Callable[..., ScriptedLLM]:
    def _build(*responses: Mapping[str, Any] | Exception) -> ScriptedLLM:
        return ScriptedLLM(responses)

    return _build
