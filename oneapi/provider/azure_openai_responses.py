from __future__ import annotations

from typing import Any

import httpx

from oneapi.schemas import ChannelConfig, ChannelType

from .azure_openai import azure_url
from .base import ProxyContext
from .openai_responses import OpenAIResponsesAdapter


class AzureOpenAIResponsesAdapter(OpenAIResponsesAdapter):
    """Azure hosts the responses API at /openai/responses; the deployment travels in `model`."""

    channel_type = ChannelType.AZURE_OPENAI_RESPONSES

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        operation = ctx.path.replace("/v1/", "", 1).lstrip("/")
        return azure_url(config.endpoint, f"openai/{operation}", config.api_version)

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {"api-key": config.api_key}


__all__ = ["AzureOpenAIResponsesAdapter"]
