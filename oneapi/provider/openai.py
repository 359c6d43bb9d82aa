from __future__ import annotations

from typing import Any

import httpx

from oneapi.schemas import ChannelConfig, ChannelType, Usage
from oneapi.usage import normalize_usage

from .base import ProviderAdapter, ProxyContext, endpoint_with_path
from .streaming import StreamUsageCollector


class ChatUsageCollector(StreamUsageCollector):
    """Chat completions streams carry usage on a trailing chunk once include_usage is set."""

    def handle_event(self, event: dict[str, Any]) -> Usage | None:
        usage = event.get("usage")
        if isinstance(usage, dict) and usage:
            return normalize_usage(usage)
        return None


def with_stream_usage(body: dict[str, Any]) -> dict[str, Any]:
    """Ask the upstream to append a usage chunk, keeping caller-provided options."""
    stream_options = body.get("stream_options")
    merged = dict(stream_options) if isinstance(stream_options, dict) else {}
    merged["include_usage"] = True
    return {**body, "stream_options": merged}


class OpenAIAdapter(ProviderAdapter):
    channel_type = ChannelType.OPENAI

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        return endpoint_with_path(config.endpoint, ctx.path)

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def prepare_body(self, body: dict[str, Any], stream: bool) -> dict[str, Any]:
        return with_stream_usage(body) if stream else body

    def stream_collector(self, request_body: dict[str, Any]) -> StreamUsageCollector | None:
        return ChatUsageCollector()


__all__ = ["ChatUsageCollector", "OpenAIAdapter", "with_stream_usage"]
