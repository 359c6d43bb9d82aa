from .channel import (
    RESPONSES_CHANNEL_TYPES,
    Channel,
    ChannelConfig,
    ChannelType,
    ModelPricing,
)
from .models import MODEL_CREATED_AT, ModelInfo, ModelsResponse
from .token import ApiToken, ApiTokenData
from .usage import SaveUsage, Usage

__all__ = [
    "ApiToken",
    "ApiTokenData",
    "Channel",
    "ChannelConfig",
    "ChannelType",
    "MODEL_CREATED_AT",
    "ModelInfo",
    "ModelPricing",
    "ModelsResponse",
    "RESPONSES_CHANNEL_TYPES",
    "SaveUsage",
    "Usage",
]
