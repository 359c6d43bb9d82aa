from .api_token import ApiTokenRecord
from .base import Base, TimestampMixin
from .channel import ChannelConfigRecord
from .setting import DB_VERSION_KEY, MODEL_PRICING_KEY, SettingRecord

__all__ = [
    "ApiTokenRecord",
    "Base",
    "ChannelConfigRecord",
    "DB_VERSION_KEY",
    "MODEL_PRICING_KEY",
    "SettingRecord",
    "TimestampMixin",
]
