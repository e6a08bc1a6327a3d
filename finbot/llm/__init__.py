"""LLM module - provider-agnostic chat completion with primary/backup fallback.

- types: unified request/response and content part shapes
- providers: wire-format adapters (Anthropic Messages, OpenAI Completions/Responses)
- fallback: primary -> backup cascade used by the conversation loop
"""
from finbot.llm.types import (
    ContentPart,
    ImagePart,
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    TextPart,
    ToolResultPart,
    ToolSchema,
    ToolUsePart,
    WebSearchResultPart,
    WebSearchTool,
)
from finbot.llm.errors import ProviderError, ProviderConfigError

__all__ = [
    "ContentPart",
    "ImagePart",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "TextPart",
    "ToolResultPart",
    "ToolSchema",
    "ToolUsePart",
    "WebSearchResultPart",
    "WebSearchTool",
    "ProviderError",
    "ProviderConfigError",
]
