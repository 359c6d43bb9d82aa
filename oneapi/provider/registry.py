"""
Channel type -> adapter registry.

New providers are added by registering another `ProviderAdapter`; routing
code never branches on channel type strings.
"""

from __future__ import annotations

from .azure_openai import AzureOpenAIAdapter
from .azure_openai_responses import AzureOpenAIResponsesAdapter
from .base import ProviderAdapter
from .claude import ClaudeAdapter
from .claude_to_openai import ClaudeToOpenAIAdapter
from .openai import OpenAIAdapter
from .openai_responses import OpenAIResponsesAdapter

PROVIDER_REGISTRY: dict[str, ProviderAdapter] = {}


def register_adapter(adapter: ProviderAdapter) -> None:
    PROVIDER_REGISTRY[adapter.channel_type.value] = adapter


def get_adapter(channel_type: str | None) -> ProviderAdapter | None:
    if not channel_type:
        return None
    return PROVIDER_REGISTRY.get(channel_type)


for _adapter in (
    OpenAIAdapter(),
    AzureOpenAIAdapter(),
    ClaudeAdapter(),
    ClaudeToOpenAIAdapter(),
    OpenAIResponsesAdapter(),
    AzureOpenAIResponsesAdapter(),
):
    register_adapter(_adapter)


__all__ = ["PROVIDER_REGISTRY", "get_adapter", "register_adapter"]
