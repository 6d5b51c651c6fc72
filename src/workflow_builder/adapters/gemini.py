"""Google Gemini backed LLM callable for `WorkflowPipeline`."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from workflow_builder.config import PipelineSettings, resolve_settings
from workflow_builder.core.exceptions import ConfigurationError
from workflow_builder.pipeline.prompts import PromptBundle

log = logging.getLogger(__name__)


class GeminiGenerator:
    """Calls ``models.generate_content`` and returns the response as a plain dict.

    The returned dict has the ``{"candidates": [{"content": {"parts": [...]}}]}``
    shape the stages read. Transport errors propagate; the pipeline runner
    turns them into upstream-error payloads.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        *,
        client: genai.Client | None = None,
    ) -> None:
        self.settings = resolve_settings(settings)
        if client is None:
            if not self.settings.api_key:
                raise ConfigurationError(
                    "A Gemini API key is required (WORKFLOW_BUILDER_API_KEY)"
                )
            client = genai.Client(api_key=self.settings.api_key)
        self.client = client

        log.debug("GeminiGenerator initialized with model '%s'.", self.settings.model)

    def __call__(self, prompt: PromptBundle) -> dict[str, Any]:
        config = types.GenerateContentConfig(
            system_instruction=prompt.system,
            response_mime_type="application/json",
        )
        response = self.client.models.generate_content(
            model=self.settings.model,
            contents=prompt.user,
            config=config,
        )
        return response.model_dump(mode="json", exclude_none=True)
