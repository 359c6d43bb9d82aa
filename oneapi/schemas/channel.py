from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from oneapi.logging_config import logger


class ChannelType(str, Enum):
    OPENAI = "openai"
    AZURE_OPENAI = "azure-openai"
    CLAUDE = "claude"
    CLAUDE_TO_OPENAI = "claude-to-openai"
    OPENAI_RESPONSES = "openai-responses"
    AZURE_OPENAI_RESPONSES = "azure-openai-responses"


RESPONSES_CHANNEL_TYPES: frozenset[str] = frozenset(
    {ChannelType.OPENAI_RESPONSES.value, ChannelType.AZURE_OPENAI_RESPONSES.value}
)


class ModelPricing(BaseModel):
    """Cost per token in quota units (1,000,000 units = $1.00)."""

    input: float
    output: float
    cache: float | None = None


class ChannelConfig(BaseModel):
    # Unknown fields written by newer admin tooling are kept untouched.
    model_config = ConfigDict(extra="allow")

    name: str = ""
    # Kept as a plain string so an unknown type surfaces as "not supported"
    # at routing time rather than as a validation failure.
    type: str | None = None
    endpoint: str = ""
    api_key: str = ""
    api_version: str | None = None
    deployment_mapper: dict[str, str] = Field(default_factory=dict)
    model_pricing: dict[str, ModelPricing] | None = None

    @field_validator("model_pricing", mode="before")
    @classmethod
    def _drop_invalid_pricing(cls, value: Any) -> Any:
        # A bad price only disables billing for that model; the channel stays routable.
        if value is None:
            return None
        if not isinstance(value, dict):
            logger.warning("Ignoring channel model_pricing that is not an object: %r", value)
            return None
        pricing: dict[str, ModelPricing] = {}
        for model, entry in value.items():
            try:
                pricing[model] = ModelPricing.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Ignoring invalid channel pricing entry for model=%s: %s", model, exc)
        return pricing


class Channel(BaseModel):
    key: str
    config: ChannelConfig


__all__ = [
    "Channel",
    "ChannelConfig",
    "ChannelType",
    "ModelPricing",
    "RESPONSES_CHANNEL_TYPES",
]
