from .config_store import CHANNEL_CACHE_KEY, ConfigStore

__all__ = ["CHANNEL_CACHE_KEY", "ConfigStore"]
