"""Orchestration: prompt builders and the sequential runner."""

from .prompts import (
    PromptBundle,
    build_architect_prompt,
    build_qa_prompt,
    build_synthesis_prompt,
)
from .runner import GenerateFn, PipelineRun, WorkflowPipeline, build_success_notification

__all__ = [
    "GenerateFn",
    "PipelineRun",
    "PromptBundle",
    "WorkflowPipeline",
    "build_architect_prompt",
    "build_qa_prompt",
    "build_success_notification",
    "build_synthesis_prompt",
]
