"""
Claude messages <-> OpenAI chat completions translation.

`claude_request_to_openai` and `openai_response_to_claude` back the
claude-to-openai channel type. `openai_request_to_claude` is the inverse of
the request translation and keeps tool ids, names and arguments intact.
"""

from __future__ import annotations

import json
from typing import Any

# Sampling fields copied as-is from a Claude request.
_PASSTHROUGH_FIELDS = ("model", "stream", "max_tokens", "temperature", "top_p")

_FINISH_REASON_TO_CLAUDE = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
}


def map_finish_reason_to_claude(finish_reason: str | None) -> str | None:
    if finish_reason is None:
        return None
    return _FINISH_REASON_TO_CLAUDE.get(finish_reason)


def extract_system_text(system: Any) -> str | None:
    if isinstance(system, str):
        return system
    if isinstance(system, list):
        text = "".join(
            block["text"]
            for block in system
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        )
        return text or None
    return None


def extract_text_from_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""


def _image_block_to_openai(block: dict[str, Any]) -> dict[str, Any] | None:
    source = block.get("source")
    if not isinstance(source, dict):
        return None
    if source.get("type") == "base64" and isinstance(source.get("data"), str):
        media_type = source.get("media_type") or "image/png"
        url = f"data:{media_type};base64,{source['data']}"
    elif source.get("type") == "url" and isinstance(source.get("url"), str):
        url = source["url"]
    else:
        return None
    return {"type": "image_url", "image_url": {"url": url}}


def _tool_use_to_tool_call(block: dict[str, Any]) -> dict[str, Any]:
    try:
        arguments = json.dumps(block.get("input") or {}, ensure_ascii=False)
    except (TypeError, ValueError):
        arguments = "{}"
    return {
        "id": block.get("id") if isinstance(block.get("id"), str) else "",
        "type": "function",
        "function": {
            "name": block.get("name") if isinstance(block.get("name"), str) else "",
            "arguments": arguments,
        },
    }


def _tool_choice_to_openai(tool_choice: Any) -> Any:
    if not isinstance(tool_choice, dict):
        return None
    choice_type = tool_choice.get("type")
    if choice_type == "auto":
        return "auto"
    if choice_type == "any":
        return "required"
    if choice_type == "none":
        return "none"
    if choice_type == "tool" and tool_choice.get("name"):
        return {"type": "function", "function": {"name": tool_choice["name"]}}
    return None


def claude_request_to_openai(body: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a Claude /v1/messages body into a chat completions body.

    tool_result blocks become standalone `tool` messages placed ahead of the
    rest of their turn, which keeps them directly after the assistant
    message that issued the calls.
    """
    openai_body: dict[str, Any] = {
        key: body[key] for key in _PASSTHROUGH_FIELDS if body.get(key) is not None
    }

    stop_sequences = body.get("stop_sequences")
    if isinstance(stop_sequences, list) and stop_sequences:
        openai_body["stop"] = stop_sequences

    messages: list[dict[str, Any]] = []
    system_text = extract_system_text(body.get("system"))
    if system_text:
        messages.append({"role": "system", "content": system_text})

    for msg in body.get("messages") or []:
        if not isinstance(msg, dict):
            continue
        openai_msg: dict[str, Any] = {"role": msg.get("role")}
        content = msg.get("content")

        if isinstance(content, str):
            openai_msg["content"] = content
        elif isinstance(content, list):
            parts: list[dict[str, Any]] = []
            tool_calls: list[dict[str, Any]] = []
            for block in content:
                if not isinstance(block, dict):
                    continue
                block_type = block.get("type")
                if block_type == "text":
                    if isinstance(block.get("text"), str):
                        parts.append({"type": "text", "text": block["text"]})
                elif block_type == "image":
                    image_part = _image_block_to_openai(block)
                    if image_part is not None:
                        parts.append(image_part)
                elif block_type == "tool_use":
                    tool_calls.append(_tool_use_to_tool_call(block))
                elif block_type == "tool_result":
                    tool_use_id = block.get("tool_use_id")
                    messages.append(
                        {
                            "role": "tool",
                            "content": extract_text_from_content(block.get("content")),
                            "tool_call_id": tool_use_id if isinstance(tool_use_id, str) else "",
                        }
                    )

            if tool_calls:
                openai_msg["tool_calls"] = tool_calls
            if len(parts) == 1 and parts[0]["type"] == "text":
                openai_msg["content"] = parts[0]["text"]
            elif parts:
                openai_msg["content"] = parts

        # Skip turns that carried only tool results.
        if openai_msg.get("content") is not None or openai_msg.get("tool_calls"):
            messages.append(openai_msg)

    openai_body["messages"] = messages

    tools = body.get("tools")
    if isinstance(tools, list):
        openai_body["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": tool.get("name"),
                    "description": tool.get("description"),
                    "parameters": tool.get("input_schema"),
                },
            }
            for tool in tools
            if isinstance(tool, dict)
        ]

    tool_choice = _tool_choice_to_openai(body.get("tool_choice"))
    if tool_choice is not None:
        openai_body["tool_choice"] = tool_choice

    metadata = body.get("metadata")
    if isinstance(metadata, dict) and metadata.get("user_id"):
        openai_body["user"] = str(metadata["user_id"])

    return openai_body


def _parse_tool_arguments(arguments: Any) -> Any:
    if isinstance(arguments, str):
        try:
            return json.loads(arguments)
        except json.JSONDecodeError:
            return {}
    if isinstance(arguments, dict):
        return arguments
    return {}


def openai_response_to_claude(payload: dict[str, Any]) -> dict[str, Any]:
    choices = payload.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
    message = choice.get("message") if isinstance(choice.get("message"), dict) else {}

    content_blocks: list[dict[str, Any]] = []
    text = extract_text_from_content(message.get("content"))
    if text:
        content_blocks.append({"type": "text", "text": text})

    for tool_call in message.get("tool_calls") or []:
        if not isinstance(tool_call, dict):
            continue
        function = tool_call.get("function") if isinstance(tool_call.get("function"), dict) else {}
        content_blocks.append(
            {
                "type": "tool_use",
                "id": tool_call.get("id") if isinstance(tool_call.get("id"), str) else "",
                "name": function.get("name") if isinstance(function.get("name"), str) else "",
                "input": _parse_tool_arguments(function.get("arguments")),
            }
        )

    usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
    input_tokens = usage.get("prompt_tokens", usage.get("input_tokens")) or 0
    output_tokens = usage.get("completion_tokens", usage.get("output_tokens")) or 0

    return {
        "id": payload.get("id") or "",
        "type": "message",
        "role": "assistant",
        "model": payload.get("model") or "",
        "content": content_blocks,
        "stop_reason": map_finish_reason_to_claude(choice.get("finish_reason")),
        "stop_sequence": None,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


def _openai_content_to_claude_blocks(content: Any) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    blocks: list[dict[str, Any]] = []
    if isinstance(content, list):
        for part in content:
            if not isinstance(part, dict):
                continue
            if part.get("type") == "text" and isinstance(part.get("text"), str):
                blocks.append({"type": "text", "text": part["text"]})
            elif part.get("type") == "image_url":
                url = (part.get("image_url") or {}).get("url", "")
                if url.startswith("data:") and ";base64," in url:
                    media_type, data = url[5:].split(";base64,", 1)
                    source = {"type": "base64", "media_type": media_type, "data": data}
                else:
                    source = {"type": "url", "url": url}
                blocks.append({"type": "image", "source": source})
    return blocks


def openai_request_to_claude(body: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a chat completions body back into a Claude messages body.

    Consecutive `tool` messages are folded into one user turn of
    tool_result blocks.
    """
    claude_body: dict[str, Any] = {
        key: body[key] for key in _PASSTHROUGH_FIELDS if body.get(key) is not None
    }
    stop = body.get("stop")
    if isinstance(stop, str):
        claude_body["stop_sequences"] = [stop]
    elif isinstance(stop, list) and stop:
        claude_body["stop_sequences"] = stop

    system_parts: list[str] = []
    messages: list[dict[str, Any]] = []
    for msg in body.get("messages") or []:
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")
        if role == "system":
            system_parts.append(extract_text_from_content(msg.get("content")))
            continue

        if role == "tool":
            result_block = {
                "type": "tool_result",
                "tool_use_id": msg.get("tool_call_id") or "",
                "content": extract_text_from_content(msg.get("content")),
            }
            previous = messages[-1] if messages else None
            if (
                previous is not None
                and previous["role"] == "user"
                and previous.get("_tool_results")
            ):
                previous["content"].append(result_block)
            else:
                messages.append({"role": "user", "content": [result_block], "_tool_results": True})
            continue

        blocks = _openai_content_to_claude_blocks(msg.get("content"))
        for tool_call in msg.get("tool_calls") or []:
            if not isinstance(tool_call, dict):
                continue
            function = tool_call.get("function") or {}
            blocks.append(
                {
                    "type": "tool_use",
                    "id": tool_call.get("id") or "",
                    "name": function.get("name") or "",
                    "input": _parse_tool_arguments(function.get("arguments")),
                }
            )
        if isinstance(msg.get("content"), str) and not msg.get("tool_calls"):
            messages.append({"role": role, "content": msg["content"]})
        else:
            messages.append({"role": role, "content": blocks})

    for message in messages:
        message.pop("_tool_results", None)

    system_text = "\n".join(part for part in system_parts if part)
    if system_text:
        claude_body["system"] = system_text
    claude_body["messages"] = messages

    tools = body.get("tools")
    if isinstance(tools, list):
        claude_body["tools"] = [
            {
                "name": (tool.get("function") or {}).get("name"),
                "description": (tool.get("function") or {}).get("description"),
                "input_schema": (tool.get("function") or {}).get("parameters"),
            }
            for tool in tools
            if isinstance(tool, dict)
        ]
    return claude_body


__all__ = [
    "claude_request_to_openai",
    "extract_system_text",
    "extract_text_from_content",
    "map_finish_reason_to_claude",
    "openai_request_to_claude",
    "openai_response_to_claude",
]
