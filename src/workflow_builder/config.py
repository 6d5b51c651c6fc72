"""Configuration for the workflow builder pipeline.

Settings are validated by Pydantic and read from ``WORKFLOW_BUILDER_*``
environment variables. A scoped override can be installed for the current
execution context with `config_scope`, which keeps concurrent pipeline runs
isolated from one another.
"""

from collections.abc import Generator
from contextlib import contextmanager
import contextvars
import re
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from workflow_builder.core.exceptions import ConfigurationError

# Shared with the normalizer so contact addresses obey the same rule as input.
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.IGNORECASE)


class PipelineSettings(BaseSettings):
    """Pydantic settings schema for the pipeline.

    Handles validation, type coercion and defaults for every tunable the
    stages use. Environment variables use the ``WORKFLOW_BUILDER_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_BUILDER_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # --- Input normalization ---

    max_text_length: int = Field(
        default=5000,
        description="Maximum length of sanitized free text",
        ge=1,
    )

    min_brief_length: int = Field(
        default=10,
        description="Minimum number of trimmed characters in a client brief",
        ge=1,
    )

    # --- Contacts ---

    fallback_email: str = Field(
        default="unknown@example.com",
        description="Address used when no client address is known",
    )

    support_email: str = Field(
        default="support@example.com",
        description="Address substituted for invalid client addresses in error reports",
    )

    # --- Diagnostics ---

    parse_preview_chars: int = Field(
        default=200,
        description="Raw LLM text kept in parse-failure envelopes",
        ge=1,
    )

    qa_preview_chars: int = Field(
        default=500,
        description="Raw validator text kept when the QA verdict cannot be parsed",
        ge=1,
    )

    # --- Validation reporting ---

    default_confidence: float = Field(
        default=0.95,
        description="Confidence assumed when the validator omits a numeric value",
        ge=0.0,
        le=1.0,
    )

    knowledge_base_version: str = Field(
        default="2.0.0",
        description="Version stamped into the loaded knowledge base",
        min_length=1,
    )

    # --- Optional Gemini adapter ---

    api_key: str | None = Field(
        default=None,
        description="Google Gemini API key",
        repr=False,
    )

    model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model identifier",
        min_length=1,
    )

    @field_validator("fallback_email", "support_email")
    @classmethod
    def validate_contact(cls, v: str) -> str:
        """Contact addresses must pass the same check applied to client input."""
        candidate = v.strip().lower()
        if not EMAIL_PATTERN.match(candidate):
            raise ValueError(f"Invalid contact address: {v!r}")
        return candidate

    def redacted(self) -> dict[str, Any]:
        """Return the settings as a dict with the API key masked."""
        data = self.model_dump()
        if data.get("api_key"):
            data["api_key"] = "***"
        return data


# --- Ambient Settings Resolution ---

_ambient_settings_var: contextvars.ContextVar[PipelineSettings] = (
    contextvars.ContextVar("workflow_builder_settings")
)


def get_ambient_settings() -> PipelineSettings:
    """Resolve settings from the current context or the environment.

    Precedence:
    1. Settings installed by `config_scope`.
    2. ``WORKFLOW_BUILDER_*`` environment variables over built-in defaults.

    Raises:
        ConfigurationError: If the environment holds invalid values.
    """
    try:
        return _ambient_settings_var.get()
    except LookupError:
        pass

    try:
        return PipelineSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline settings: {e}") from e


def resolve_settings(settings: PipelineSettings | None) -> PipelineSettings:
    """Return ``settings`` when given, otherwise the ambient settings."""
    return settings if settings is not None else get_ambient_settings()


@contextmanager
def config_scope(settings: PipelineSettings) -> Generator[None]:
    """Temporarily use different settings in the current context.

    Example:
        with config_scope(PipelineSettings(min_brief_length=20)):
            normalized = normalize(payload)
    """
    token = _ambient_settings_var.set(settings)
    try:
        yield
    finally:
        _ambient_settings_var.reset(token)
