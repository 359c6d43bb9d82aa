from __future__ import annotations

from oneapi.schemas import ApiToken, ModelInfo, ModelsResponse
from oneapi.storage import ConfigStore


async def list_models(store: ConfigStore, token: ApiToken) -> ModelsResponse:
    """
    Union of deployment-mapper keys over the channels the token can reach,
    de-duplicated and sorted. Wildcard patterns are listed as written.
    """
    channels = await store.get_channels(token.data.channel_keys or None)
    names = {name for channel in channels for name in channel.config.deployment_mapper}
    return ModelsResponse(data=[ModelInfo(id=name) for name in sorted(names)])


__all__ = ["list_models"]
