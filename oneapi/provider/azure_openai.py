from __future__ import annotations

from typing import Any

import httpx

from oneapi.schemas import ChannelConfig, ChannelType

from .base import ProxyContext
from .openai import OpenAIAdapter


def _operation_path(caller_path: str) -> str:
    return caller_path.replace("/v1/", "", 1).lstrip("/")


def azure_url(endpoint: str, route: str, api_version: str | None) -> httpx.URL:
    """
    Append `route` to the endpoint path and set `api-version`.

    An endpoint ending in `#` is taken as the complete target and its path is
    left alone.
    """
    if endpoint.endswith("#"):
        url = httpx.URL(endpoint[:-1])
    else:
        url = httpx.URL(endpoint)
        url = url.copy_with(path=f"{url.path.rstrip('/')}/{route}")
    if api_version:
        url = url.copy_set_param("api-version", api_version)
    return url


class AzureOpenAIAdapter(OpenAIAdapter):
    channel_type = ChannelType.AZURE_OPENAI

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        route = f"openai/deployments/{body['model']}/{_operation_path(ctx.path)}"
        return azure_url(config.endpoint, route, config.api_version)

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {"api-key": config.api_key}


__all__ = ["AzureOpenAIAdapter", "azure_url"]
