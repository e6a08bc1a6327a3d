"""Unified LLM request/response types shared by every provider."""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


# ============================================================================
# CONTENT PARTS
# ============================================================================

class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Inline base64 image."""
    type: Literal["image"] = "image"
    media_type: str = Field(..., description="MIME type, e.g. image/jpeg")
    data: str = Field(..., description="Base64-encoded image bytes")


class ToolUsePart(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


class WebSearchResultPart(BaseModel):
    type: Literal["web_search_result"] = "web_search_result"
    title: str = ""
    url: str = ""


ContentPart = Annotated[
    Union[TextPart, ImagePart, ToolUsePart, ToolResultPart, WebSearchResultPart],
    Field(discriminator="type"),
]

# What a user turn may carry; tool and search parts only come from the model
UserContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class LLMMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: Union[str, List[ContentPart]]

    def parts(self) -> List[Any]:
        """Content as a part list (plain strings become one TextPart)."""
        if isinstance(self.content, str):
            return [TextPart(text=self.content)]
        return list(self.content)


# ============================================================================
# TOOLS
# ============================================================================

class ToolSchema(BaseModel):
    """Provider-agnostic function tool; each provider converts it to its wire format."""
    name: str
    description: str
    input_schema: Dict[str, Any]


class WebSearchTool(BaseModel):
    """Server-side web search, executed by the provider itself."""
    type: Literal["web_search"] = "web_search"
    name: Literal["web_search"] = "web_search"
    max_uses: int = 5


AnyTool = Union[ToolSchema, WebSearchTool]


# ============================================================================
# REQUEST / RESPONSE
# ============================================================================

class LLMRequest(BaseModel):
    model: str = ""
    system: Optional[str] = None
    messages: List[LLMMessage]
    tools: List[AnyTool] = Field(default_factory=list)
    max_tokens: int = 4096
    temperature: float = 1.0


class LLMUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    web_search_requests: Optional[int] = None


class LLMResponse(BaseModel):
    content: List[ContentPart] = Field(default_factory=list)
    usage: LLMUsage = Field(default_factory=LLMUsage)
    model: str = ""
    stop_reason: Optional[str] = None

    def tool_uses(self) -> List[ToolUsePart]:
        return [p for p in self.content if isinstance(p, ToolUsePart)]

    def text(self) -> str:
        return "\n\n".join(p.text for p in self.content if isinstance(p, TextPart) and p.text)

    def web_results(self) -> List[WebSearchResultPart]:
        return [p for p in self.content if isinstance(p, WebSearchResultPart)]

