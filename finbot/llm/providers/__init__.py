"""Provider registry. Instances are created lazily, one per provider name."""
from typing import Dict

from finbot.config import settings
from finbot.llm.errors import ProviderConfigError
from finbot.llm.providers.anthropic_provider import AnthropicProvider
from finbot.llm.providers.base import LLMProvider
from finbot.llm.providers.openai_provider import OpenAIProvider

_providers: Dict[str, LLMProvider] = {}


def get_provider(name: str) -> LLMProvider:
    """Get provider instance by name."""
    if name not in _providers:
        if name == "anthropic":
            _providers[name] = AnthropicProvider(
                api_key=settings.ANTHROPIC_API_KEY,
                timeout=settings.ANTHROPIC_TIMEOUT,
            )
        elif name == "openai":
            _providers[name] = OpenAIProvider(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT,
            )
        else:
            raise ProviderConfigError(f"Unknown LLM provider: {name}")
    return _providers[name]


__all__ = ["LLMProvider", "AnthropicProvider", "OpenAIProvider", "get_provider"]
