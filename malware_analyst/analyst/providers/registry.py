"""
Provider Registry: maps provider kinds to their adapter classes.

To add a new provider:
1. Create the adapter (e.g., mistral.py) inheriting BaseProvider
2. Add a ProviderKind value and register the class here
3. The analysis service and API pick it up automatically
"""

from __future__ import annotations

from typing import Optional, Type

from malware_analyst.analyst.providers.anthropic_provider import AnthropicProvider
from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.providers.dashscope import DashScopeProvider
from malware_analyst.analyst.providers.gemini import GeminiProvider
from malware_analyst.analyst.providers.openai_compatible import OpenAICompatibleProvider
from malware_analyst.config import Settings
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import ProviderInfo


PROVIDER_REGISTRY: dict[ProviderKind, Type[BaseProvider]] = {
    ProviderKind.GEMINI: GeminiProvider,
    ProviderKind.DASHSCOPE: DashScopeProvider,
    ProviderKind.OPENAI_COMPATIBLE: OpenAICompatibleProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
}


def get_provider(kind: ProviderKind | str, settings: Optional[Settings] = None) -> BaseProvider:
    """Instantiate the adapter for a provider kind."""
    return PROVIDER_REGISTRY[ProviderKind(kind)](settings)


def available_providers(settings: Optional[Settings] = None) -> list[ProviderInfo]:
    """Describe every registered provider for the front end's model picker."""
    infos = []
    for kind in PROVIDER_REGISTRY:
        provider = get_provider(kind, settings)
        infos.append(ProviderInfo(
            kind=kind,
            default_model=provider.default_model,
            author_tag=provider.author_tag,
            requires_base_url=provider.requires_base_url,
        ))
    return infos
