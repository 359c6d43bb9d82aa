from __future__ import annotations

from typing import Any

import httpx

from oneapi.schemas import ChannelConfig, ChannelType, Usage
from oneapi.settings import settings
from oneapi.usage import estimate_usage_from_bodies, extract_usage_from_response

from .base import ProviderAdapter, ProxyContext, endpoint_with_path
from .streaming import StreamUsageCollector


class ResponsesUsageCollector(StreamUsageCollector):
    """
    Saves usage from `response.completed`; if the stream never reports it,
    estimates from the request JSON and the streamed output text.
    """

    def __init__(self, request_body: dict[str, Any], *, char_limit: int | None = None) -> None:
        super().__init__()
        self._request_body = request_body
        self._char_limit = settings.responses_output_char_limit if char_limit is None else char_limit
        self._output_parts: list[str] = []
        self._output_chars = 0

    @property
    def output_text(self) -> str:
        return "".join(self._output_parts)

    def _append_output(self, text: str) -> None:
        room = self._char_limit - self._output_chars
        if room <= 0 or not text:
            return
        piece = text[:room]
        self._output_parts.append(piece)
        self._output_chars += len(piece)

    def handle_event(self, event: dict[str, Any]) -> Usage | None:
        event_type = event.get("type")
        if event_type == "response.output_text.delta":
            text = event.get("delta") if isinstance(event.get("delta"), str) else event.get("text")
            if isinstance(text, str):
                self._append_output(text)
        elif event_type == "response.completed":
            return extract_usage_from_response(event.get("response"))
        return None

    def finish(self) -> Usage | None:
        return estimate_usage_from_bodies(self._request_body, None, self.output_text)


class OpenAIResponsesAdapter(ProviderAdapter):
    channel_type = ChannelType.OPENAI_RESPONSES

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        return endpoint_with_path(config.endpoint, ctx.path)

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def usage_from_json(self, request_body: dict[str, Any], payload: Any) -> Usage | None:
        usage = extract_usage_from_response(payload)
        if usage is None:
            usage = estimate_usage_from_bodies(request_body, payload)
        return usage

    def stream_collector(self, request_body: dict[str, Any]) -> StreamUsageCollector | None:
        return ResponsesUsageCollector(request_body)


__all__ = ["OpenAIResponsesAdapter", "ResponsesUsageCollector"]
