"""
Channel selection and dispatch for proxied requests.

The caller has already been authenticated (see `oneapi.auth`); everything
that can reject the request happens here before any upstream call.
"""

from __future__ import annotations

import json
import random
from collections.abc import Collection
from typing import Any

from fastapi.responses import Response

from oneapi.billing import QuotaAccountant
from oneapi.errors import (
    BadRequestError,
    DeploymentNotMappedError,
    NotFoundError,
    QuotaExceededError,
)
from oneapi.log_sanitizer import mask_api_key
from oneapi.logging_config import logger
from oneapi.provider import ProxyContext, get_adapter
from oneapi.routing import ChannelCandidate, choose_channel, eligible_channels
from oneapi.schemas import ApiToken, SaveUsage, Usage
from oneapi.storage import ConfigStore


def parse_request_body(raw_body: bytes) -> dict[str, Any]:
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadRequestError("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise BadRequestError("Invalid JSON body")
    return body


class ProxyRouter:
    def __init__(
        self,
        store: ConfigStore,
        *,
        allowed_types: Collection[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._allowed_types = allowed_types
        self._rng = rng
        self._accountant = QuotaAccountant(store)

    def _usage_callback(self, api_key: str, model: str, candidate: ChannelCandidate) -> SaveUsage:
        async def save_usage(usage: Usage) -> None:
            try:
                await self._accountant.process_usage(
                    api_key, model, candidate.key, candidate.channel.config, usage
                )
            except Exception:
                logger.exception(
                    "Failed to process usage for channel=%s model=%s", candidate.key, model
                )

        return save_usage

    async def route(self, ctx: ProxyContext, token: ApiToken, raw_body: bytes) -> Response:
        if token.quota_exhausted:
            logger.info(
                "Rejecting key=%s: quota exhausted (usage=%s, total_quota=%s)",
                mask_api_key(token.key),
                token.usage,
                token.data.total_quota,
            )
            raise QuotaExceededError(
                "Quota exceeded", usage=token.usage, total_quota=token.data.total_quota
            )

        channels = await self._store.get_channels(token.data.channel_keys or None)
        if not channels:
            raise NotFoundError("No available channels for this token")

        body = parse_request_body(raw_body)
        model = body.get("model")
        if not model or not isinstance(model, str):
            raise BadRequestError("Model is required")

        candidates = eligible_channels(channels, model, allowed_types=self._allowed_types)
        if not candidates:
            raise BadRequestError(f"Model not mapped: {model}. Please configure deployment_mapper.")

        selected = choose_channel(candidates, self._rng)
        config = selected.channel.config
        body["model"] = selected.deployment

        if not config.type:
            raise BadRequestError("Channel type invalid")
        adapter = get_adapter(config.type)
        if adapter is None:
            raise BadRequestError("Channel type not supported")

        logger.info(
            "Routing model=%s to channel=%s (type=%s, deployment=%s, candidates=%d)",
            model,
            selected.key,
            config.type,
            selected.deployment,
            len(candidates),
        )
        try:
            return await adapter.fetch(ctx, config, body, self._usage_callback(token.key, model, selected))
        except DeploymentNotMappedError as exc:
            raise BadRequestError(exc.message) from exc


__all__ = ["ProxyRouter", "parse_request_body"]
