"""
Turn provider usage payloads into the canonical `Usage` record.

Three shapes are understood:

- chat completions: prompt_tokens / completion_tokens / total_tokens, with
  optional prompt_tokens_details.cached_tokens;
- Claude messages: input_tokens / output_tokens, with cache reads reported
  separately as cache_read_input_tokens;
- responses API: input_tokens / output_tokens with
  input_tokens_details.cached_tokens.

When a provider reports nothing, `estimate_usage_from_bodies` falls back to
a bytes/4 heuristic so responses-style traffic is still billed.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from oneapi.schemas import Usage

_TOKEN_FIELDS = (
    "prompt_tokens",
    "completion_tokens",
    "total_tokens",
    "input_tokens",
    "output_tokens",
    "input_tokens_details",
    "prompt_tokens_details",
    "cache_read_input_tokens",
)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


def _first_int(raw: Mapping[str, Any], *names: str) -> int | None:
    for name in names:
        value = _as_int(raw.get(name))
        if value is not None:
            return value
    return None


def _details_cached(raw: Mapping[str, Any]) -> int | None:
    for name in ("input_tokens_details", "prompt_tokens_details"):
        details = raw.get(name)
        if isinstance(details, Mapping):
            cached = _as_int(details.get("cached_tokens"))
            if cached is not None:
                return cached
    return None


def normalize_usage(raw: Mapping[str, Any] | None) -> Usage | None:
    """
    Return canonical usage, or None when the payload carries no token counts.

    `prompt_tokens` in the result is the fresh (non-cached) input. Totals are
    recomputed as fresh + cached + completion whenever both sides are known.
    """
    if not isinstance(raw, Mapping):
        return None

    raw_input = _first_int(raw, "prompt_tokens", "input_tokens")
    completion = _first_int(raw, "completion_tokens", "output_tokens")
    reported_total = _as_int(raw.get("total_tokens"))
    if raw_input is None and completion is None and reported_total is None:
        return None

    cached = _details_cached(raw)
    if cached is not None:
        cached = max(cached, 0)
        fresh = max(0, raw_input - cached) if raw_input is not None and cached > 0 else raw_input
    else:
        # Claude's input_tokens already excludes cache reads.
        cached = max(_as_int(raw.get("cache_read_input_tokens")) or 0, 0)
        fresh = raw_input

    if fresh is not None and completion is not None:
        total = fresh + cached + completion
    else:
        total = reported_total

    return Usage(
        prompt_tokens=fresh,
        completion_tokens=completion,
        total_tokens=total,
        cached_tokens=cached if cached > 0 else None,
    )


def extract_usage_from_response(payload: Mapping[str, Any] | None) -> Usage | None:
    """Read usage from a response object, accepting token fields at the top level too."""
    if not isinstance(payload, Mapping):
        return None
    nested = payload.get("usage")
    merged: dict[str, Any] = {}
    for name in _TOKEN_FIELDS:
        if isinstance(nested, Mapping) and nested.get(name) is not None:
            merged[name] = nested[name]
        elif payload.get(name) is not None:
            merged[name] = payload[name]
    return normalize_usage(merged)


def estimate_tokens_from_text(text: str) -> int:
    """Roughly 4 UTF-8 bytes per token."""
    if not text:
        return 0
    return math.ceil(len(text.encode("utf-8")) / 4)


def compact_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def estimate_usage_from_bodies(
    request_body: Any,
    response_body: Any = None,
    streamed_text: str | None = None,
) -> Usage | None:
    prompt_text = compact_json(request_body) if request_body else ""
    if streamed_text:
        completion_text = streamed_text
    elif response_body:
        completion_text = compact_json(response_body)
    else:
        completion_text = ""

    prompt_tokens = estimate_tokens_from_text(prompt_text)
    completion_tokens = estimate_tokens_from_text(completion_text)
    if not prompt_tokens and not completion_tokens:
        return None
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


__all__ = [
    "compact_json",
    "estimate_tokens_from_text",
    "estimate_usage_from_bodies",
    "extract_usage_from_response",
    "normalize_usage",
]
