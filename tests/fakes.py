"""Scripted stand-ins for providers and the error reporter."""
import asyncio
from typing import Any, Callable, List, Optional, Union

from finbot.llm.providers.base import LLMProvider
from finbot.llm.types import LLMRequest, LLMResponse, LLMUsage, TextPart, ToolUsePart


# ============================================================================
# FAKE PROVIDERS
# ============================================================================

Script = Union[LLMResponse, BaseException, Callable[[LLMRequest], LLMResponse]]


class FakeProvider(LLMProvider):
    """
    Scripted provider: each call pops the next entry.

    An entry is a response, an exception to raise, or a callable building
    a response from the request. Every request is kept for assertions.
    """

    def __init__(self, script: Optional[List[Script]] = None, name: str = "fake", timeout: float = 5.0, delay: float = 0.0):
        super().__init__(api_key="test-key", timeout=timeout)
        self.name = name
        self.script = list(script or [])
        self.delay = delay
        self.requests: List[LLMRequest] = []

    async def _send(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.script:
            raise AssertionError(f"{self.name}: unexpected call #{len(self.requests)}")
        entry = self.script.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return entry(request)
        return entry

    @property
    def calls(self) -> int:
        return len(self.requests)


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5, model: str = "") -> LLMResponse:
    return LLMResponse(
        content=[TextPart(text=text)],
        usage=LLMUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model=model,
        stop_reason="end_turn",
    )


def tool_response(*calls: Any, text: Optional[str] = None, model: str = "") -> LLMResponse:
    """Response asking for tools; each call is (id, name, input)."""
    content: List[Any] = []
    if text:
        content.append(TextPart(text=text))
    for tool_id, name, tool_input in calls:
        content.append(ToolUsePart(id=tool_id, name=name, input=tool_input))
    return LLMResponse(
        content=content,
        usage=LLMUsage(input_tokens=20, output_tokens=8),
        model=model,
        stop_reason="tool_use",
    )


def provider_factory(**providers: LLMProvider) -> Callable[[str], LLMProvider]:
    """Factory for FallbackCascade resolving names to the given fakes."""
    return lambda name: providers[name]


class RecordingReporter:
    """ErrorReporter stand-in that keeps every report."""

    def __init__(self):
        self.reports: List[tuple] = []

    def report(self, service: str, error: BaseException, context: Optional[str] = None) -> None:
        self.reports.append((service, error, context))

