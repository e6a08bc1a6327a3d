"""Fallback Cascade - primary model with one attempt on a backup model.

Only transient failures (5xx, provider overload, timeout, connection loss)
move on to the backup. Anything else propagates right away. There is no
retry loop: at most two provider calls per request.
"""
import logging
from typing import Callable, Optional

from finbot.config import settings
from finbot.llm.errors import ProviderError
from finbot.llm.providers import get_provider
from finbot.llm.providers.base import LLMProvider
from finbot.llm.types import LLMRequest, LLMResponse
from finbot.services.error_reporter import ErrorReporter, get_error_reporter

logger = logging.getLogger(__name__)


class FallbackCascade:
    """Primary -> backup routing for chat-completion calls."""

    def __init__(
        self,
        primary_provider: str,
        primary_model: str,
        backup_provider: Optional[str] = None,
        backup_model: Optional[str] = None,
        error_reporter: Optional[ErrorReporter] = None,
        provider_factory: Callable[[str], LLMProvider] = get_provider,
    ):
        self.primary_provider = primary_provider
        self.primary_model = primary_model
        self.backup_provider = backup_provider or None
        self.backup_model = backup_model or None
        self.error_reporter = error_reporter or get_error_reporter()
        self._provider_factory = provider_factory

    @classmethod
    def from_settings(cls, error_reporter: Optional[ErrorReporter] = None) -> "FallbackCascade":
        return cls(
            primary_provider=settings.MODEL_NORMAL_PROVIDER,
            primary_model=settings.MODEL_NORMAL,
            backup_provider=settings.MODEL_NORMAL_BACKUP_PROVIDER,
            backup_model=settings.MODEL_NORMAL_BACKUP,
            error_reporter=error_reporter,
        )

    @property
    def has_backup(self) -> bool:
        return bool(self.backup_provider and self.backup_model)

    async def call(self, request: LLMRequest) -> LLMResponse:
        """
        Call the primary model; on a transient failure call the backup once.

        Raises:
            ProviderError: the primary failure when it is permanent or no
                backup is configured, otherwise the backup failure
        """
        primary = self._provider_factory(self.primary_provider)
        try:
            response = await primary.call(request.model_copy(update={"model": self.primary_model}))
            return _with_model(response, self.primary_model)
        except ProviderError as primary_error:
            self.error_reporter.report(
                self.primary_provider,
                primary_error,
                f"Primary model {self.primary_model} failed",
            )
            if not (primary_error.transient and self.has_backup):
                raise

        logger.warning(
            f"Primary model {self.primary_model} failed with a transient error, "
            f"trying backup {self.backup_model}"
        )
        backup = self._provider_factory(self.backup_provider)
        try:
            response = await backup.call(request.model_copy(update={"model": self.backup_model}))
        except ProviderError as backup_error:
            self.error_reporter.report(
                self.backup_provider,
                backup_error,
                f"Backup model {self.backup_model} also failed",
            )
            raise
        logger.info(f"Received response from backup model {self.backup_model}")
        return _with_model(response, self.backup_model)


def _with_model(response: LLMResponse, model: str) -> LLMResponse:
    if not response.model:
        response.model = model
    return response
