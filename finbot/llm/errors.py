"""Provider error taxonomy used by the fallback cascade."""
from typing import Any, Optional


# Anthropic signals overload with a non-standard status and error type
OVERLOAD_STATUS_CODES = {529}
OVERLOAD_ERROR_TYPES = {"overloaded_error", "api_error", "server_error"}


class ProviderConfigError(Exception):
    """Unknown provider or model name in configuration."""


class ProviderError(Exception):
    """
    A chat-completion call failed.

    HTTP status, provider error body and timeout are kept apart so the
    fallback cascade can decide whether the failure is transient.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        timed_out: bool = False,
        connection_failed: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.message = message
        self.status = status
        self.body = body
        self.timed_out = timed_out
        self.connection_failed = connection_failed

    @property
    def error_type(self) -> Optional[str]:
        if isinstance(self.body, dict):
            error = self.body.get("error")
            if isinstance(error, dict):
                return error.get("type")
        return None

    @property
    def transient(self) -> bool:
        """Server-side or network failure; worth one attempt on the backup model."""
        if self.timed_out or self.connection_failed:
            return True
        if self.status is not None and 500 <= self.status < 600:
            return True
        if self.status in OVERLOAD_STATUS_CODES:
            return True
        if self.status is None and self.error_type in OVERLOAD_ERROR_TYPES:
            return True
        return False

    def __str__(self) -> str:
        kind = "timeout" if self.timed_out else f"status={self.status}"
        return f"{self.provider} {kind}: {self.message}"
