"""Model registry - which provider and wire format serve each model name."""
from dataclasses import dataclass
from typing import Dict, Optional

from finbot.llm.errors import ProviderConfigError


@dataclass(frozen=True)
class ModelConfig:
    provider: str  # "anthropic" | "openai"
    api_type: Optional[str] = None  # OpenAI only: "completions" | "responses"
    reasoning: Optional[str] = None  # "low" | "medium" | "high"


# Add new models here with their provider settings
MODEL_CONFIG: Dict[str, ModelConfig] = {
    # Anthropic
    "claude-sonnet-4-5": ModelConfig(provider="anthropic"),
    "claude-haiku-4-5": ModelConfig(provider="anthropic"),

    # OpenAI - Chat Completions API
    "gpt-5-nano": ModelConfig(provider="openai", api_type="completions", reasoning="low"),
    "gpt-4o": ModelConfig(provider="openai", api_type="completions"),

    # OpenAI - Responses API
    "gpt-5.1": ModelConfig(provider="openai", api_type="responses"),
}


def get_model_config(model_name: str) -> ModelConfig:
    """
    Get model configuration by name.

    Raises:
        ProviderConfigError: if the model is not registered
    """
    config = MODEL_CONFIG.get(model_name)
    if config is None:
        raise ProviderConfigError(
            f'Model "{model_name}" not found in config. Add it to MODEL_CONFIG in finbot/llm/config.py'
        )
    return config
