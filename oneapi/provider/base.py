from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, TypeVar

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse

from oneapi.background import background_tasks
from oneapi.errors import DeploymentNotMappedError, UpstreamUnavailableError
from oneapi.logging_config import logger
from oneapi.schemas import ChannelConfig, ChannelType, SaveUsage, Usage
from oneapi.usage import extract_usage_from_response

from .streaming import ChunkTransform, StreamTee, StreamUsageCollector

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

# Caller credentials never leave the gateway; each adapter sets its own.
_CREDENTIAL_HEADERS = frozenset({"authorization", "x-api-key", "api-key"})
_DROPPED_REQUEST_HEADERS = (
    HOP_BY_HOP_HEADERS
    | _CREDENTIAL_HEADERS
    | {"host", "content-length", "accept-encoding", "content-type"}
)
# httpx already decoded the body, so length and encoding no longer apply.
_DROPPED_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}


@dataclass
class ProxyContext:
    """The parts of the inbound request an adapter needs."""

    path: str
    headers: Mapping[str, str]
    client: httpx.AsyncClient
    method: str = "POST"

    @classmethod
    def from_request(cls, request: Request, client: httpx.AsyncClient) -> ProxyContext:
        return cls(
            path=request.url.path,
            headers=dict(request.headers),
            client=client,
            method=request.method,
        )


def forward_request_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in _DROPPED_REQUEST_HEADERS
    }


def relay_response_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    # Pairs, not a dict: repeated headers such as set-cookie must all survive.
    return [
        (name, value)
        for name, value in headers.multi_items()
        if name.lower() not in _DROPPED_RESPONSE_HEADERS
    ]


ResponseT = TypeVar("ResponseT", bound=Response)


def with_headers(response: ResponseT, headers: Iterable[tuple[str, str]]) -> ResponseT:
    for name, value in headers:
        response.headers.append(name, value)
    return response


def endpoint_with_path(endpoint: str, path: str) -> httpx.URL:
    """Keep the endpoint's scheme, host and query but use the caller's path."""
    return httpx.URL(endpoint).copy_with(path=path)


class ProviderAdapter:
    """
    One upstream wire protocol.

    Subclasses describe how to reach the provider (`build_url`,
    `auth_headers`, `prepare_body`) and where its usage lives
    (`usage_from_json`, `stream_collector`); `fetch()` owns the relay.
    """

    channel_type: ClassVar[ChannelType]

    def build_url(self, ctx: ProxyContext, config: ChannelConfig, body: dict[str, Any]) -> httpx.URL:
        raise NotImplementedError

    def auth_headers(self, config: ChannelConfig) -> dict[str, str]:
        raise NotImplementedError

    def build_headers(self, ctx: ProxyContext, config: ChannelConfig) -> dict[str, str]:
        headers = forward_request_headers(ctx.headers)
        headers.update(self.auth_headers(config))
        headers["Content-Type"] = "application/json"
        return headers

    def prepare_body(self, body: dict[str, Any], stream: bool) -> dict[str, Any]:
        return body

    def usage_from_json(self, request_body: dict[str, Any], payload: Any) -> Usage | None:
        return extract_usage_from_response(payload)

    def stream_collector(self, request_body: dict[str, Any]) -> StreamUsageCollector | None:
        return None

    def stream_transform(self, save_usage: SaveUsage) -> ChunkTransform | None:
        return None

    def stream_headers(self, upstream: httpx.Response) -> list[tuple[str, str]]:
        return relay_response_headers(upstream.headers)

    async def fetch(
        self,
        ctx: ProxyContext,
        config: ChannelConfig,
        body: dict[str, Any],
        save_usage: SaveUsage,
    ) -> Response:
        if not body.get("model"):
            raise DeploymentNotMappedError(
                f"No deployment mapped for {self.channel_type.value} channel {config.name!r}"
            )

        stream = bool(body.get("stream"))
        payload = self.prepare_body(body, stream)
        upstream = await self.send(ctx, config, payload)

        if not upstream.is_success:
            return await self.relay_error(upstream)
        if stream:
            return self.relay_stream(upstream, payload, save_usage)
        return await self.relay_json(upstream, payload, save_usage)

    async def send(
        self, ctx: ProxyContext, config: ChannelConfig, payload: dict[str, Any]
    ) -> httpx.Response:
        url = self.build_url(ctx, config, payload)
        request = ctx.client.build_request(
            ctx.method,
            url,
            headers=self.build_headers(ctx, config),
            content=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
        )
        logger.info(
            "Forwarding %s %s to %s%s (model=%s, stream=%s)",
            ctx.method,
            ctx.path,
            url.host,
            url.path,
            payload.get("model"),
            bool(payload.get("stream")),
        )
        try:
            return await ctx.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("Upstream request to %s failed: %s", url.host, exc)
            raise UpstreamUnavailableError("Upstream request failed") from exc

    async def relay_error(self, upstream: httpx.Response) -> Response:
        try:
            content = await upstream.aread()
        finally:
            await upstream.aclose()
        logger.warning(
            "Upstream %s returned status=%s: %.500s",
            upstream.url.host,
            upstream.status_code,
            content.decode("utf-8", errors="replace"),
        )
        return with_headers(
            Response(content=content, status_code=upstream.status_code),
            relay_response_headers(upstream.headers),
        )

    async def read_json(self, upstream: httpx.Response) -> tuple[bytes, Any]:
        try:
            content = await upstream.aread()
        finally:
            await upstream.aclose()
        try:
            return content, json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Upstream %s returned a non-JSON body; usage not recorded", upstream.url.host)
            return content, None

    async def relay_json(
        self, upstream: httpx.Response, request_body: dict[str, Any], save_usage: SaveUsage
    ) -> Response:
        content, payload = await self.read_json(upstream)
        if payload is not None:
            usage = self.usage_from_json(request_body, payload)
            if usage is not None:
                await save_usage(usage)
        return with_headers(
            Response(content=content, status_code=upstream.status_code),
            relay_response_headers(upstream.headers),
        )

    def relay_stream(
        self, upstream: httpx.Response, request_body: dict[str, Any], save_usage: SaveUsage
    ) -> StreamingResponse:
        transform = self.stream_transform(save_usage)
        collector = None if transform is not None else self.stream_collector(request_body)
        tee = StreamTee(upstream, transform=transform, usage_branch=collector is not None)

        background_tasks.spawn(tee.pump(), name=f"{self.channel_type.value}-stream-pump")
        if collector is not None:
            background_tasks.spawn(
                collector.consume(tee.usage_stream(), save_usage),
                name=f"{self.channel_type.value}-stream-usage",
            )

        return with_headers(
            StreamingResponse(tee.client_stream(), status_code=upstream.status_code),
            self.stream_headers(upstream),
        )


__all__ = [
    "HOP_BY_HOP_HEADERS",
    "ProviderAdapter",
    "ProxyContext",
    "endpoint_with_path",
    "forward_request_headers",
    "relay_response_headers",
    "with_headers",
]
