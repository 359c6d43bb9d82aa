from __future__ import annotations

from typing import Any

import httpx

from oneapi.schemas import ChannelConfig, ChannelType, Usage
from oneapi.settings import settings
from oneapi.usage import normalize_usage

from .base import ProviderAdapter, ProxyContext, endpoint_with_path
from .streaming import StreamUsageCollector


class ClaudeUsageCollector(StreamUsageCollector):
    """
    Claude splits usage across events: input on message_start, output on
    message_delta. A message_complete event carrying full usage wins;
    otherwise the accumulated counts are reported when the stream ends.
    """

    def __init__(self) -> None:
        super().__init__()
        self._usage: dict[str, int] = {}

    def _merge(self, usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        for name in ("input_tokens", "output_tokens", "cache_read_input_tokens"):
            value = usage.get(name)
            if isinstance(value, int) and not isinstance(value, bool):
                self._usage[name] = value

    def handle_event(self, event: dict[str, Any]) -> Usage | None:
        event_type = event.get("type")
        message = event.get("message") if isinstance(event.get("message"), dict) else {}
        if event_type == "message_start":
            self._merge(message.get("usage"))
        elif event_type == "message_delta":
            self._merge(event.get("usage"))
        elif event_type == "message_complete":
            return normalize_usage(message.get("usage"))
        return None

    def finish(self) -> Usage | None:
        if not self._usage:
            return None
        return normalize_usage(self._usage)


class ClaudeAdapter(ProviderAdapter):
    channel_type = ChannelType.CLAUDE

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        return endpoint_with_path(config.endpoint, ctx.path)

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {
            "x-api-key": config.api_key,
            "anthropic-version": config.api_version or settings.anthropic_default_version,
        }

    def usage_from_json(self, request_body: dict[str, Any], payload: Any) -> Usage | None:
        if not isinstance(payload, dict):
            return None
        return normalize_usage(payload.get("usage"))

    def stream_collector(self, request_body: dict[str, Any]) -> StreamUsageCollector | None:
        return ClaudeUsageCollector()


__all__ = ["ClaudeAdapter", "ClaudeUsageCollector"]
