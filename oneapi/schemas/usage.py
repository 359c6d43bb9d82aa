from __future__ import annotations

from collections.abc import Awaitable, Callable

from pydantic import BaseModel


class Usage(BaseModel):
    """Canonical token accounting record handed to the quota accountant."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    cached_tokens: int | None = None


# Callback an adapter invokes at most once per request.
SaveUsage = Callable[[Usage], Awaitable[None]]


__all__ = ["SaveUsage", "Usage"]
