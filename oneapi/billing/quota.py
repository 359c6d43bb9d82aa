from __future__ import annotations

from collections.abc import Mapping

from oneapi.log_sanitizer import mask_api_key
from oneapi.logging_config import logger
from oneapi.schemas import ChannelConfig, ModelPricing, Usage
from oneapi.storage import ConfigStore


def resolve_pricing(
    model: str,
    channel_config: ChannelConfig,
    global_pricing: Mapping[str, ModelPricing],
) -> ModelPricing | None:
    """Channel-level pricing for the model wins over the global table."""
    channel_pricing = channel_config.model_pricing or {}
    if model in channel_pricing:
        return channel_pricing[model]
    return global_pricing.get(model)


def compute_cost(usage: Usage, pricing: ModelPricing) -> float | None:
    """
    Quota units charged for one request, or None when token counts are missing.

    Cached tokens are charged at the cache price when one is configured and
    are otherwise free.
    """
    if usage.prompt_tokens is None or usage.completion_tokens is None:
        return None
    cost = usage.prompt_tokens * pricing.input + usage.completion_tokens * pricing.output
    if pricing.cache is not None and usage.cached_tokens:
        cost += usage.cached_tokens * pricing.cache
    return cost


class QuotaAccountant:
    def __init__(self, store: ConfigStore) -> None:
        self._store = store

    async def process_usage(
        self,
        api_key: str,
        model: str,
        channel_key: str,
        channel_config: ChannelConfig,
        usage: Usage,
    ) -> float | None:
        """
        Price one request's usage and debit it from the token.

        Returns the charged cost, or None when nothing was billed. Billing is
        best-effort: a missing price or a failed write is logged, never raised.
        """
        masked_key = mask_api_key(api_key)
        logger.info(
            "Usage for key=%s model=%s channel=%s: prompt=%s completion=%s cached=%s total=%s",
            masked_key,
            model,
            channel_key,
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.cached_tokens,
            usage.total_tokens,
        )

        pricing = resolve_pricing(model, channel_config, await self._store.get_global_pricing())
        if pricing is None:
            logger.warning(
                "No pricing configured for model=%s (channel=%s); skipping billing for key=%s",
                model,
                channel_key,
                masked_key,
            )
            return None

        cost = compute_cost(usage, pricing)
        if cost is None:
            logger.warning(
                "Incomplete usage for model=%s (channel=%s); skipping billing for key=%s",
                model,
                channel_key,
                masked_key,
            )
            return None

        if not await self._store.increment_token_usage(api_key, cost):
            logger.warning("Failed to record cost=%s for key=%s", cost, masked_key)
            return None

        logger.info("Charged cost=%s to key=%s (model=%s)", cost, masked_key, model)
        return cost


__all__ = ["QuotaAccountant", "compute_cost", "resolve_pricing"]
