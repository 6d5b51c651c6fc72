"""
Unit tests for the Context Preparer stage
"""

import pytest

from workflow_builder.config import PipelineSettings
from workflow_builder.core.types import Failure, Stage, StageSpec, Success
from workflow_builder.knowledge.base import LESSONS_LEARNED
from workflow_builder.stages import prepare_context


@pytest.mark.unit
class TestPrepareContext:
    """Architect response handling"""

    def test_success_forwards_request_fields(self, llm_json, normalized):
        """A parsed spec should carry the normalized request forward unchanged"""
        spec = {"name": "Order Sync", "steps": [{"name": "fetch"}]}
        result = prepare_context(llm_json(spec, fenced=True), normalized)

        assert isinstance(result, Success)
        value = result.value
        assert isinstance(value, StageSpec)
        assert value.architect_spec == spec
        assert value.client_brief == normalized.client_brief
        assert value.client_email == normalized.client_email
        assert value.source == "form"
        assert value.timestamp == normalized.timestamp
        assert value.lessons_learned == LESSONS_LEARNED
        assert value.metadata["normalizerMetadata"] == normalized.metadata
        assert value.metadata["architectResponseSize"] > 0

    def test_wire_form(self, llm_json, normalized):
        """The wire form should use camelCase and plain lists"""
        result = prepare_context(llm_json({"a": 1}), normalized)
        data = result.value.to_dict()

        assert data["architectSpec"] == {"a": 1}
        assert data["lessonsLearned"]["workflow"][0] == "Use unique node IDs"
        assert data["metadata"]["normalizerMetadata"] == {"submittedAt": normalized.timestamp}

    def test_missing_normalized_request(self, llm_json):
        """A missing dependency should be a non-recoverable prepare-context failure"""
        result = prepare_context(llm_json({"a": 1}), None)

        assert isinstance(result, Failure)
        data = result.error.to_dict()
        assert data["stage"] == Stage.PREPARE_CONTEXT
        assert data["recoverable"] is False
        assert data["clientEmail"] == "unknown@example.com"
        assert data["error"] is True

    def test_upstream_error(self, llm_error, normalized):
        """An upstream error should short-circuit with the architect stage"""
        result = prepare_context(llm_error("quota exceeded"), normalized)

        assert isinstance(result, Failure)
        envelope = result.error
        assert envelope.stage == Stage.ARCHITECT
        assert envelope.message == "Architect failed: quota exceeded"
        assert envelope.client_email == "test@example.com"
        assert envelope.to_dict()["upstreamError"] == {"message": "quota exceeded", "code": 429}

    @pytest.mark.parametrize("output", [None, "text", ["a"]])
    def test_non_object_output(self, output, normalized):
        """A non-object LLM result should fail validation with its type"""
        result = prepare_context(output, normalized)

        assert result.error.stage == Stage.ARCHITECT_VALIDATION
        assert result.error.extra["receivedType"] in {"null", "string", "array"}

    def test_missing_text(self, normalized):
        """A result without text should report candidate stats"""
        result = prepare_context({"candidates": []}, normalized)

        data = result.error.to_dict()
        assert data["stage"] == Stage.ARCHITECT_RESPONSE
        assert data["candidatesCount"] == 0
        assert data["hasContent"] is False

    def test_malformed_json(self, llm_text, normalized):
        """Unparsable text should fail with a bounded preview"""
        raw = "{not json " + "x" * 500
        result = prepare_context(llm_text(raw), normalized)

        data = result.error.to_dict()
        assert data["stage"] == Stage.ARCHITECT_PARSE
        assert data["message"].startswith("Failed to parse architect output: Invalid JSON")
        assert data["parseError"].startswith("Invalid JSON")
        assert data["rawResponsePreview"] == raw[:200]

    def test_non_object_json(self, llm_text, normalized):
        """A JSON array is not a usable specification"""
        result = prepare_context(llm_text("[1, 2, 3]"), normalized)

        assert result.error.stage == Stage.ARCHITECT_PARSE
        assert result.error.extra["parseError"] == "Parsed architect output is not an object"

    def test_preview_length_follows_settings(self, llm_text, normalized):
        """The preview length should come from settings"""
        result = prepare_context(
            llm_text("nope" * 100),
            normalized,
            settings=PipelineSettings(parse_preview_chars=8),
        )
        assert result.error.extra["rawResponsePreview"] == "nopenope"

    def test_deeply_nested_json(self, llm_text, normalized):
        """Pathologically nested text should be a parse failure, not a crash"""
        text = "[" * 100_000
        result = prepare_context(llm_text(text), normalized)

        assert isinstance(result, Failure)
        data = result.error.to_dict()
        assert data["stage"] == Stage.ARCHITECT_PARSE
        assert data["parseError"] == "Invalid JSON: nesting too deep"
        assert data["rawResponsePreview"] == "[" * 200

    def test_empty_error_object_is_upstream_failure(self, normalized):
        """An empty error object still means the architect call failed"""
        result = prepare_context({"error": {}}, normalized)

        assert result.error.stage == Stage.ARCHITECT
        assert result.error.message == "Architect failed: Unknown error"
        assert result.error.extra["upstreamError"] == {}
