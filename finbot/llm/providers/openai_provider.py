"""OpenAI provider - Chat Completions and Responses APIs.

The wire format is chosen per model from MODEL_CONFIG. Both paths convert
SDK results with `model_dump()` and parse plain dicts, so the converters
below are pure functions.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from finbot.llm.config import get_model_config
from finbot.llm.errors import ProviderConfigError, ProviderError
from finbot.llm.providers.base import LLMProvider
from finbot.llm.types import (
    ImagePart,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    TextPart,
    ToolResultPart,
    ToolSchema,
    ToolUsePart,
    WebSearchTool,
    WebSearchResultPart,
)

logger = logging.getLogger(__name__)


def _image_url(part: ImagePart) -> str:
    return f"data:{part.media_type};base64,{part.data}"


def _load_arguments(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Tool call arguments are not valid JSON: {raw[:200]}")
        return {}
    return value if isinstance(value, dict) else {}


# ============================================================================
# CHAT COMPLETIONS (/v1/chat/completions)
# ============================================================================

def convert_messages_for_completions(request: LLMRequest) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    if request.system:
        messages.append({"role": "system", "content": request.system})

    for msg in request.messages:
        if isinstance(msg.content, str):
            messages.append({"role": msg.role, "content": msg.content})
            continue

        content_parts: List[Dict[str, Any]] = []
        tool_calls: List[Dict[str, Any]] = []
        tool_messages: List[Dict[str, Any]] = []

        for part in msg.content:
            if isinstance(part, TextPart):
                content_parts.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                content_parts.append({"type": "image_url", "image_url": {"url": _image_url(part)}})
            elif isinstance(part, ToolUsePart):
                tool_calls.append({
                    "id": part.id,
                    "type": "function",
                    "function": {"name": part.name, "arguments": json.dumps(part.input)},
                })
            elif isinstance(part, ToolResultPart):
                # Tool results are separate messages in the completions API
                tool_messages.append({
                    "role": "tool",
                    "tool_call_id": part.tool_use_id,
                    "content": part.content,
                })

        if content_parts or tool_calls:
            message: Dict[str, Any] = {"role": msg.role}
            if msg.role == "assistant":
                text = "\n\n".join(p["text"] for p in content_parts if p["type"] == "text")
                message["content"] = text or None
                if tool_calls:
                    message["tool_calls"] = tool_calls
            else:
                message["content"] = content_parts
            messages.append(message)

        messages.extend(tool_messages)

    return messages


def convert_tools_for_completions(tools: List[Any]) -> List[Dict[str, Any]]:
    result = []
    for tool in tools:
        if isinstance(tool, WebSearchTool):
            # Web search is not available on the completions API
            continue
        if isinstance(tool, ToolSchema):
            result.append({
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            })
    return result


def parse_completions_response(data: Dict[str, Any]) -> LLMResponse:
    content: List[Any] = []
    choices = data.get("choices") or []
    choice = choices[0] if choices else {}
    message = choice.get("message") or {}

    if message.get("content"):
        content.append(TextPart(text=message["content"]))

    for tool_call in message.get("tool_calls") or []:
        if tool_call.get("type") != "function":
            continue
        function = tool_call.get("function") or {}
        content.append(ToolUsePart(
            id=tool_call["id"],
            name=function.get("name", ""),
            input=_load_arguments(function.get("arguments")),
        ))

    usage = data.get("usage") or {}
    return LLMResponse(
        content=content,
        usage=LLMUsage(
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
        ),
        model=data.get("model") or "",
        stop_reason=choice.get("finish_reason"),
    )


# ============================================================================
# RESPONSES API (/v1/responses)
# ============================================================================

def convert_messages_for_responses(request: LLMRequest) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []

    for msg in request.messages:
        if isinstance(msg.content, str):
            items.append({"role": msg.role, "content": msg.content})
            continue

        text_type = "output_text" if msg.role == "assistant" else "input_text"
        content_parts: List[Dict[str, Any]] = []
        calls: List[Dict[str, Any]] = []

        for part in msg.content:
            if isinstance(part, TextPart):
                content_parts.append({"type": text_type, "text": part.text})
            elif isinstance(part, ImagePart):
                content_parts.append({"type": "input_image", "image_url": _image_url(part)})
            elif isinstance(part, ToolUsePart):
                calls.append({
                    "type": "function_call",
                    "call_id": part.id,
                    "name": part.name,
                    "arguments": json.dumps(part.input),
                })
            elif isinstance(part, ToolResultPart):
                calls.append({
                    "type": "function_call_output",
                    "call_id": part.tool_use_id,
                    "output": part.content,
                })

        if content_parts:
            items.append({"role": msg.role, "content": content_parts})
        items.extend(calls)

    return items


def convert_tools_for_responses(tools: List[Any]) -> List[Dict[str, Any]]:
    result = []
    for tool in tools:
        if isinstance(tool, WebSearchTool):
            result.append({"type": "web_search"})
        elif isinstance(tool, ToolSchema):
            result.append({
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            })
    return result


def parse_responses_response(data: Dict[str, Any]) -> LLMResponse:
    content: List[Any] = []
    search_results: List[WebSearchResultPart] = []
    seen_urls = set()
    web_search_requests = 0

    def add_source(title: Optional[str], url: Optional[str]) -> None:
        if url and url not in seen_urls:
            seen_urls.add(url)
            search_results.append(WebSearchResultPart(title=title or "", url=url))

    for item in data.get("output") or []:
        item_type = item.get("type")
        if item_type == "message":
            for block in item.get("content") or []:
                if block.get("type") != "output_text":
                    continue
                content.append(TextPart(text=block.get("text", "")))
                for annotation in block.get("annotations") or []:
                    if annotation.get("type") == "url_citation":
                        add_source(annotation.get("title"), annotation.get("url"))
        elif item_type == "function_call":
            content.append(ToolUsePart(
                id=item.get("call_id") or item.get("id"),
                name=item.get("name", ""),
                input=_load_arguments(item.get("arguments")),
            ))
        elif item_type == "web_search_call":
            web_search_requests += 1
            for result in item.get("results") or []:
                add_source(result.get("title"), result.get("url"))

    content.extend(search_results)
    usage = data.get("usage") or {}

    return LLMResponse(
        content=content,
        usage=LLMUsage(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
            web_search_requests=web_search_requests or None,
        ),
        model=data.get("model") or "",
        stop_reason=data.get("status"),
    )


class OpenAIProvider(LLMProvider):
    """OpenAI models over either the Chat Completions or the Responses API."""

    name = "openai"

    def __init__(self, api_key: str, timeout: float = 60.0, client: Optional[AsyncOpenAI] = None):
        super().__init__(api_key, timeout)
        self._client = client

    def get_client(self) -> AsyncOpenAI:
        if self._client is None:
            # Retries belong to the fallback cascade, not the SDK
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def _send(self, request: LLMRequest) -> LLMResponse:
        try:
            config = get_model_config(request.model)
        except ProviderConfigError as e:
            raise ProviderError(self.name, str(e)) from e
        try:
            if config.api_type == "completions":
                return await self._call_completions(request, config.reasoning)
            return await self._call_responses(request, config.reasoning)
        except APITimeoutError as e:
            raise ProviderError(self.name, "Request timed out", timed_out=True) from e
        except APIConnectionError as e:
            raise ProviderError(self.name, f"Connection failed: {e}", connection_failed=True) from e
        except APIStatusError as e:
            raise ProviderError(
                self.name,
                f"API error {e.status_code}",
                status=e.status_code,
                body=e.body,
            ) from e

    async def _call_completions(self, request: LLMRequest, reasoning: Optional[str]) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": convert_messages_for_completions(request),
            "max_completion_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if reasoning:
            kwargs["reasoning_effort"] = reasoning
        tools = convert_tools_for_completions(request.tools)
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self.get_client().chat.completions.create(**kwargs)
        return parse_completions_response(response.model_dump())

    async def _call_responses(self, request: LLMRequest, reasoning: Optional[str]) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": request.model,
            "input": convert_messages_for_responses(request),
            "max_output_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.system:
            kwargs["instructions"] = request.system
        if reasoning:
            kwargs["reasoning"] = {"effort": reasoning}
        tools = convert_tools_for_responses(request.tools)
        if tools:
            kwargs["tools"] = tools

        response = await self.get_client().responses.create(**kwargs)
        return parse_responses_response(response.model_dump())
