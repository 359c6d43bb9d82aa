from .normalizer import (
    compact_json,
    estimate_tokens_from_text,
    estimate_usage_from_bodies,
    extract_usage_from_response,
    normalize_usage,
)

__all__ = [
    "compact_json",
    "estimate_tokens_from_text",
    "estimate_usage_from_bodies",
    "extract_usage_from_response",
    "normalize_usage",
]
