from __future__ import annotations

from typing import Any
from urllib.parse import urljoin

import httpx
from fastapi.responses import JSONResponse, Response

from oneapi.logging_config import logger
from oneapi.schemas import ChannelConfig, ChannelType, SaveUsage, Usage
from oneapi.translation import (
    ClaudeStreamTransformer,
    claude_request_to_openai,
    openai_response_to_claude,
)
from oneapi.usage import normalize_usage

from .base import ProviderAdapter, ProxyContext, relay_response_headers, with_headers
from .openai import with_stream_usage
from .streaming import ChunkTransform


class ClaudeToOpenAIAdapter(ProviderAdapter):
    """
    Serves Claude /v1/messages callers from an OpenAI-compatible upstream.

    Requests are translated to chat completions; responses and streams are
    translated back into Claude's shapes.
    """

    channel_type = ChannelType.CLAUDE_TO_OPENAI

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        return httpx.URL(urljoin(config.endpoint, "v1/chat/completions"))

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"}

    def build_headers(self, ctx: ProxyContext, config: ChannelConfig) -> dict[str, str]:
        headers = super().build_headers(ctx, config)
        return {
            name: value for name, value in headers.items() if not name.lower().startswith("anthropic-")
        }

    def prepare_body(self, body: dict[str, Any], stream: bool) -> dict[str, Any]:
        openai_body = claude_request_to_openai(body)
        return with_stream_usage(openai_body) if stream else openai_body

    def usage_from_json(self, request_body: dict[str, Any], payload: Any) -> Usage | None:
        if not isinstance(payload, dict):
            return None
        return normalize_usage(payload.get("usage"))

    def stream_transform(self, save_usage: SaveUsage) -> ChunkTransform | None:
        return ClaudeStreamTransformer(save_usage)

    def stream_headers(self, upstream: httpx.Response) -> list[tuple[str, str]]:
        headers = [
            (name, value)
            for name, value in relay_response_headers(upstream.headers)
            if name.lower() != "content-type"
        ]
        headers.append(("content-type", "text/event-stream; charset=utf-8"))
        return headers

    async def relay_json(
        self, upstream: httpx.Response, request_body: dict[str, Any], save_usage: SaveUsage
    ) -> Response:
        content, payload = await self.read_json(upstream)
        headers = relay_response_headers(upstream.headers)
        if not isinstance(payload, dict):
            return with_headers(Response(content=content, status_code=upstream.status_code), headers)

        usage = self.usage_from_json(request_body, payload)
        if usage is not None:
            await save_usage(usage)

        try:
            claude_payload = openai_response_to_claude(payload)
        except Exception:
            logger.exception("Failed to translate OpenAI response into Claude format")
            return with_headers(Response(content=content, status_code=upstream.status_code), headers)

        return with_headers(
            JSONResponse(content=claude_payload, status_code=upstream.status_code),
            [(name, value) for name, value in headers if name.lower() != "content-type"],
        )


__all__ = ["ClaudeToOpenAIAdapter"]
