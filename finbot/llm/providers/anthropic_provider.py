"""Anthropic Messages API provider.

https://docs.anthropic.com/en/api/messages
"""
from typing import Any, Dict, List, Optional

import httpx

from finbot.llm.errors import ProviderError
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
    WebSearchResultPart,
    WebSearchTool,
)


ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
WEB_SEARCH_TOOL_TYPE = "web_search_20250305"


# ============================================================================
# REQUEST CONVERSION
# ============================================================================

def convert_part(part: Any) -> Optional[Dict[str, Any]]:
    """Unified content part -> Claude content block. Search results are not sent back."""
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": part.media_type, "data": part.data},
        }
    if isinstance(part, ToolUsePart):
        return {"type": "tool_use", "id": part.id, "name": part.name, "input": part.input}
    if isinstance(part, ToolResultPart):
        block = {"type": "tool_result", "tool_use_id": part.tool_use_id, "content": part.content}
        if part.is_error:
            block["is_error"] = True
        return block
    return None


def convert_messages(request: LLMRequest) -> List[Dict[str, Any]]:
    messages = []
    for msg in request.messages:
        if isinstance(msg.content, str):
            messages.append({"role": msg.role, "content": msg.content})
            continue
        blocks = [b for b in (convert_part(p) for p in msg.content) if b is not None]
        if blocks:
            messages.append({"role": msg.role, "content": blocks})
    return messages


def convert_tools(tools: List[Any]) -> List[Dict[str, Any]]:
    result = []
    for tool in tools:
        if isinstance(tool, WebSearchTool):
            result.append({"type": WEB_SEARCH_TOOL_TYPE, "name": "web_search", "max_uses": tool.max_uses})
        elif isinstance(tool, ToolSchema):
            result.append({
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            })
    return result


def build_payload(request: LLMRequest) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": request.model,
        "messages": convert_messages(request),
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "stream": False,
    }
    if request.system:
        payload["system"] = request.system
    if request.tools:
        payload["tools"] = convert_tools(request.tools)
    return payload


# ============================================================================
# RESPONSE CONVERSION
# ============================================================================

def parse_response(data: Dict[str, Any]) -> LLMResponse:
    content: List[Any] = []
    for block in data.get("content") or []:
        block_type = block.get("type")
        if block_type == "text":
            content.append(TextPart(text=block.get("text", "")))
        elif block_type == "tool_use":
            content.append(ToolUsePart(
                id=block["id"],
                name=block["name"],
                input=block.get("input") or {},
            ))
        elif block_type == "web_search_tool_result":
            results = block.get("content")
            if isinstance(results, list):
                for item in results:
                    if item.get("type") == "web_search_result":
                        content.append(WebSearchResultPart(
                            title=item.get("title") or "",
                            url=item.get("url") or "",
                        ))
        # server_tool_use blocks carry only the query; nothing to keep

    usage = data.get("usage") or {}
    server_tool_use = usage.get("server_tool_use") or {}

    return LLMResponse(
        content=content,
        usage=LLMUsage(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
            web_search_requests=server_tool_use.get("web_search_requests"),
        ),
        model=data.get("model") or "",
        stop_reason=data.get("stop_reason"),
    )


class AnthropicProvider(LLMProvider):
    """Claude models over the Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        timeout: float = 60.0,
        base_url: str = ANTHROPIC_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, timeout)
        self.base_url = base_url
        self._transport = transport

    async def _send(self, request: LLMRequest) -> LLMResponse:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                        "Content-Type": "application/json",
                    },
                    json=build_payload(request),
                )
        except httpx.TimeoutException as e:
            raise ProviderError(self.name, "Request timed out", timed_out=True) from e
        except httpx.TransportError as e:
            raise ProviderError(self.name, f"Connection failed: {e}", connection_failed=True) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise ProviderError(
                self.name,
                f"API error {response.status_code}",
                status=response.status_code,
                body=body,
            )

        return parse_response(response.json())
