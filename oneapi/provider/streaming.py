"""
Fan one upstream SSE body out to the client and to a usage consumer.

`StreamTee.pump()` is the only reader of the upstream response. It runs as a
detached background task and pushes every chunk into two unbounded queues,
so a slow usage consumer never holds back the client relay and a client
that goes away does not stop the upstream from being drained.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Protocol

import httpx

from oneapi.logging_config import logger
from oneapi.schemas import SaveUsage, Usage
from oneapi.sse import SSELineBuffer, parse_data_line


class ChunkTransform(Protocol):
    def process_chunk(self, chunk: bytes) -> list[bytes]: ...

    def finalize(self) -> list[bytes]: ...

    async def complete(self) -> None: ...


class StreamTee:
    def __init__(
        self,
        response: httpx.Response,
        *,
        transform: ChunkTransform | None = None,
        usage_branch: bool = True,
    ) -> None:
        self._response = response
        self._transform = transform
        self._client_queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._usage_queue: asyncio.Queue[bytes | None] | None = (
            asyncio.Queue() if usage_branch else None
        )
        self._client_attached = True

    def _send_to_client(self, chunks: list[bytes]) -> None:
        if not self._client_attached:
            return
        for chunk in chunks:
            if chunk:
                self._client_queue.put_nowait(chunk)

    async def pump(self) -> None:
        """Read the upstream body to EOF, whether or not the client is still there."""
        try:
            async for chunk in self._response.aiter_bytes():
                if not chunk:
                    continue
                if self._usage_queue is not None:
                    self._usage_queue.put_nowait(chunk)
                if self._transform is not None:
                    self._send_to_client(self._transform.process_chunk(chunk))
                else:
                    self._send_to_client([chunk])
        except httpx.HTTPError as exc:
            logger.warning("Upstream stream from %s ended early: %s", self._response.url.host, exc)
        finally:
            await self._response.aclose()
            try:
                if self._transform is not None:
                    self._send_to_client(self._transform.finalize())
            finally:
                self._client_queue.put_nowait(None)
                if self._usage_queue is not None:
                    self._usage_queue.put_nowait(None)

        if self._transform is not None:
            await self._transform.complete()

    async def client_stream(self) -> AsyncIterator[bytes]:
        try:
            while (chunk := await self._client_queue.get()) is not None:
                yield chunk
        finally:
            # Client finished or disconnected; stop buffering for it.
            self._client_attached = False

    async def usage_stream(self) -> AsyncIterator[bytes]:
        if self._usage_queue is None:
            raise RuntimeError("StreamTee was created without a usage branch")
        while (chunk := await self._usage_queue.get()) is not None:
            yield chunk


class StreamUsageCollector:
    """
    Parses the usage branch of a stream and saves usage at most once.

    Subclasses look at one decoded JSON event at a time in `handle_event()`
    and may return a fallback from `finish()` when the stream ended without
    a usable usage event.
    """

    def __init__(self) -> None:
        self._lines = SSELineBuffer()
        self.saved = False

    def handle_event(self, event: dict[str, Any]) -> Usage | None:
        raise NotImplementedError

    def finish(self) -> Usage | None:
        return None

    async def _save(self, usage: Usage, save_usage: SaveUsage) -> None:
        if self.saved:
            return
        self.saved = True
        await save_usage(usage)

    async def _handle_line(self, line: str, save_usage: SaveUsage) -> None:
        if self.saved:
            return
        data = parse_data_line(line)
        if not data or data == "[DONE]":
            return
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON stream payload: %.200s", data)
            return
        if not isinstance(event, dict) or not event:
            return
        usage = self.handle_event(event)
        if usage is not None:
            await self._save(usage, save_usage)

    async def consume(self, chunks: AsyncIterator[bytes], save_usage: SaveUsage) -> None:
        try:
            async for chunk in chunks:
                for line in self._lines.feed(chunk):
                    await self._handle_line(line, save_usage)
            for line in self._lines.flush():
                await self._handle_line(line, save_usage)
            if not self.saved:
                usage = self.finish()
                if usage is not None:
                    await self._save(usage, save_usage)
        except Exception:
            logger.exception("Failed to extract usage from upstream stream")
            # Keep draining so the pump never buffers for a dead consumer.
            async for _ in chunks:
                pass


__all__ = ["ChunkTransform", "StreamTee", "StreamUsageCollector"]
