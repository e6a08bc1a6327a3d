"""Usage/Telemetry Sink - token and web search consumption per user."""
import logging
from typing import Optional

from finbot.assistant.models import UsageKind, UsageRecord
from finbot.ledger.store import LedgerStore
from finbot.llm.types import LLMResponse
from finbot.services.error_reporter import ErrorReporter, get_error_reporter

logger = logging.getLogger(__name__)


class UsageSink:
    """Writes UsageRecord rows through the ledger store."""

    def __init__(self, store: LedgerStore, error_reporter: Optional[ErrorReporter] = None):
        self.store = store
        self.error_reporter = error_reporter or get_error_reporter()

    async def record(
        self,
        user_id: str,
        thread_id: Optional[str],
        kind: str,
        amount: int,
        model_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> UsageRecord:
        kind = UsageKind(kind).value
        return await self.store.create(
            UsageRecord,
            user_id=user_id,
            thread_id=thread_id,
            kind=kind,
            amount=amount,
            model_name=model_name,
            description=description,
        )

    async def record_response(self, user_id: str, thread_id: Optional[str], response: LLMResponse) -> None:
        """
        Prompt and completion tokens of one provider response, plus web searches if any.

        A failed write is reported and dropped; it never fails the turn.
        """
        usage = response.usage
        try:
            await self.record(user_id, thread_id, UsageKind.PROMPT, usage.input_tokens, response.model)
            await self.record(user_id, thread_id, UsageKind.COMPLETION, usage.output_tokens, response.model)
            if usage.web_search_requests:
                await self.record(user_id, thread_id, UsageKind.WEB_SEARCH, usage.web_search_requests, response.model)
        except Exception as e:
            self.error_reporter.report("usage", e, f"Usage not recorded for user {user_id}")
            return
        logger.debug(
            f"Usage for {user_id}: in={usage.input_tokens} out={usage.output_tokens} "
            f"search={usage.web_search_requests or 0} model={response.model}"
        )
