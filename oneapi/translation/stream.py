from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from oneapi.logging_config import logger
from oneapi.schemas import SaveUsage, Usage
from oneapi.sse import SSELineBuffer, encode_sse_event, parse_data_line
from oneapi.usage import normalize_usage

from .claude_openai import map_finish_reason_to_claude


@dataclass
class _ToolBlock:
    content_index: int
    id: str
    name: str


class ClaudeStreamTransformer:
    """
    Rewrites an OpenAI chat completions SSE stream into Claude message events.

    Feed raw upstream bytes through `process_chunk()`, call `finalize()` once
    the upstream is exhausted, then `await complete()` to report usage.
    Blocks are opened lazily: the text block on the first text delta and one
    tool_use block per OpenAI tool-call index. Finishing is idempotent and
    nothing is emitted after `message_stop`, although usage carried by
    later chunks is still recorded.
    """

    def __init__(self, save_usage: SaveUsage | None = None) -> None:
        self._lines = SSELineBuffer()
        self._save_usage = save_usage
        self._usage_saved = False
        self.started = False
        self.stopped = False
        self.message_id = ""
        self.model = ""
        self.stop_reason: str | None = None
        self.output_tokens = 0
        self.usage: Usage | None = None
        self._text_block_index: int | None = None
        self._next_content_index = 0
        self._tool_blocks: dict[int, _ToolBlock] = {}
        self._open_blocks: list[int] = []

    def _start_message(self, outputs: list[bytes], chunk: dict[str, Any] | None = None) -> None:
        if self.started:
            return
        if chunk is not None:
            self.message_id = chunk.get("id") or self.message_id
            self.model = chunk.get("model") or self.model
        self.started = True
        outputs.append(
            encode_sse_event(
                "message_start",
                {
                    "type": "message_start",
                    "message": {
                        "id": self.message_id,
                        "type": "message",
                        "role": "assistant",
                        "model": self.model,
                        "content": [],
                        "stop_reason": None,
                        "stop_sequence": None,
                        "usage": {"input_tokens": 0, "output_tokens": 0},
                    },
                },
            )
        )

    def _start_block(self, outputs: list[bytes], index: int, content_block: dict[str, Any]) -> None:
        if index not in self._open_blocks:
            self._open_blocks.append(index)
        outputs.append(
            encode_sse_event(
                "content_block_start",
                {"type": "content_block_start", "index": index, "content_block": content_block},
            )
        )

    def _ensure_text_block(self, outputs: list[bytes]) -> int:
        if self._text_block_index is None:
            self._text_block_index = self._next_content_index
            self._next_content_index += 1
            self._start_block(outputs, self._text_block_index, {"type": "text", "text": ""})
        return self._text_block_index

    def _ensure_tool_block(self, outputs: list[bytes], tool_index: int, tool_id: str, name: str) -> int:
        existing = self._tool_blocks.get(tool_index)
        if existing is not None:
            existing.id = existing.id or tool_id
            existing.name = existing.name or name
            return existing.content_index

        block = _ToolBlock(content_index=self._next_content_index, id=tool_id, name=name)
        self._next_content_index += 1
        self._tool_blocks[tool_index] = block
        self._start_block(
            outputs,
            block.content_index,
            {"type": "tool_use", "id": tool_id, "name": name, "input": {}},
        )
        return block.content_index

    def _finish(self, outputs: list[bytes], finish_reason: str | None) -> None:
        if self.stopped:
            return
        self._start_message(outputs)
        if finish_reason is not None:
            self.stop_reason = map_finish_reason_to_claude(finish_reason)

        for index in self._open_blocks:
            outputs.append(
                encode_sse_event("content_block_stop", {"type": "content_block_stop", "index": index})
            )
        outputs.append(
            encode_sse_event(
                "message_delta",
                {
                    "type": "message_delta",
                    "delta": {"stop_reason": self.stop_reason},
                    "usage": {"output_tokens": self.output_tokens},
                },
            )
        )
        outputs.append(encode_sse_event("message_stop", {"type": "message_stop"}))
        self.stopped = True

    def _process_line(self, line: str, outputs: list[bytes]) -> None:
        data = parse_data_line(line)
        if not data:
            return
        if data == "[DONE]":
            self._finish(outputs, None)
            return

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping unparsable OpenAI stream chunk: %.200s", data)
            return
        if not isinstance(chunk, dict):
            return

        usage = normalize_usage(chunk.get("usage"))
        if usage is not None:
            self.usage = usage
            if usage.completion_tokens is not None:
                self.output_tokens = usage.completion_tokens

        if self.stopped:
            return

        choices = chunk.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else None
        if choice is None:
            return

        delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}
        content = delta.get("content")
        tool_calls = delta.get("tool_calls")
        if delta.get("role") == "assistant" or content or tool_calls:
            self._start_message(outputs, chunk)

        if content:
            parts = content if isinstance(content, list) else [{"type": "text", "text": content}]
            for part in parts:
                text = part.get("text") if isinstance(part, dict) else None
                if not isinstance(text, str) or not text:
                    continue
                index = self._ensure_text_block(outputs)
                outputs.append(
                    encode_sse_event(
                        "content_block_delta",
                        {
                            "type": "content_block_delta",
                            "index": index,
                            "delta": {"type": "text_delta", "text": text},
                        },
                    )
                )

        if isinstance(tool_calls, list):
            for tool_call in tool_calls:
                if not isinstance(tool_call, dict):
                    continue
                function = tool_call.get("function") if isinstance(tool_call.get("function"), dict) else {}
                tool_index = tool_call.get("index") if isinstance(tool_call.get("index"), int) else 0
                index = self._ensure_tool_block(
                    outputs,
                    tool_index,
                    tool_call.get("id") if isinstance(tool_call.get("id"), str) else "",
                    function.get("name") if isinstance(function.get("name"), str) else "",
                )
                arguments = function.get("arguments")
                if isinstance(arguments, str) and arguments:
                    outputs.append(
                        encode_sse_event(
                            "content_block_delta",
                            {
                                "type": "content_block_delta",
                                "index": index,
                                "delta": {"type": "input_json_delta", "partial_json": arguments},
                            },
                        )
                    )

        if choice.get("finish_reason"):
            self._finish(outputs, choice["finish_reason"])

    def process_chunk(self, chunk: bytes) -> list[bytes]:
        outputs: list[bytes] = []
        for line in self._lines.feed(chunk):
            self._process_line(line, outputs)
        return outputs

    def finalize(self) -> list[bytes]:
        outputs: list[bytes] = []
        for line in self._lines.flush():
            self._process_line(line, outputs)
        if not self.stopped:
            self._finish(outputs, None)
        return outputs

    async def complete(self) -> None:
        """Report the captured usage exactly once."""
        if self._usage_saved or self.usage is None or self._save_usage is None:
            return
        self._usage_saved = True
        try:
            await self._save_usage(self.usage)
        except Exception:
            logger.exception("Failed to save usage for translated Claude stream")


__all__ = ["ClaudeStreamTransformer"]
