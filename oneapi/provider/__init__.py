from .base import ProviderAdapter, ProxyContext
from .registry import PROVIDER_REGISTRY, get_adapter, register_adapter
from .streaming import StreamTee, StreamUsageCollector

__all__ = [
    "PROVIDER_REGISTRY",
    "ProviderAdapter",
    "ProxyContext",
    "StreamTee",
    "StreamUsageCollector",
    "get_adapter",
    "register_adapter",
]
