from .claude_openai import (
    claude_request_to_openai,
    extract_system_text,
    extract_text_from_content,
    map_finish_reason_to_claude,
    openai_request_to_claude,
    openai_response_to_claude,
)
from .stream import ClaudeStreamTransformer

__all__ = [
    "ClaudeStreamTransformer",
    "claude_request_to_openai",
    "extract_system_text",
    "extract_text_from_content",
    "map_finish_reason_to_claude",
    "openai_request_to_claude",
    "openai_response_to_claude",
]
