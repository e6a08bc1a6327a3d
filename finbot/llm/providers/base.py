"""Abstract chat-completion provider."""
import asyncio
import logging
from abc import ABC, abstractmethod

from finbot.llm.errors import ProviderError
from finbot.llm.types import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)


class LLMProvider(ABC):
    """
    Base class for chat-completion backends.

    Subclasses translate the unified request into their wire format in
    `_send`. `call` enforces the hard timeout; a timeout surfaces as a
    transient ProviderError.
    """

    name: str = "base"

    def __init__(self, api_key: str, timeout: float):
        self.api_key = api_key
        self.timeout = timeout

    @abstractmethod
    async def _send(self, request: LLMRequest) -> LLMResponse:
        """Perform one request against the backend."""
        pass

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def call(self, request: LLMRequest) -> LLMResponse:
        if not self.is_configured():
            raise ProviderError(self.name, "API key is not configured")
        logger.info(f"{self.name} call: model={request.model} messages={len(request.messages)} tools={len(request.tools)}")
        try:
            return await asyncio.wait_for(self._send(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                self.name,
                f"No response within {self.timeout:g}s",
                timed_out=True,
            ) from e
