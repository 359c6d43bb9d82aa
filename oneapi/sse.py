"""Server-Sent-Events helpers shared by usage collectors and stream translation."""

from __future__ import annotations

import codecs
import json
from typing import Any


class SSELineBuffer:
    """
    Accumulates bytes across reads and hands back complete lines only.

    UTF-8 sequences split across reads are held by the incremental decoder
    and anything after the last newline stays buffered for the next `feed()`
    or the final `flush()`.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> list[str]:
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        return [rest] if rest.strip() else []


def parse_data_line(line: str) -> str | None:
    """Return the payload of a `data:` line, or None for any other line."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[len("data:") :].strip()


def encode_sse_event(event: str, payload: dict[str, Any]) -> bytes:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n".encode()


__all__ = ["SSELineBuffer", "encode_sse_event", "parse_data_line"]
