"""Conversation service - the core's boundary towards the chat transport.

Owns thread lifecycle, per-thread serialization of turns, history
reconstruction and persistence of the messages a turn produced.
"""
import logging
from typing import Any, List, Optional

from finbot.assistant.aggregator import TurnAggregator
from finbot.assistant.context import build_finance_context
from finbot.assistant.errors import LoopExceeded, ThreadNotFound
from finbot.assistant.locks import KeyedLocks
from finbot.assistant.loop import ToolCallingLoop, TurnResult
from finbot.assistant.models import AssistantType, Message, Thread
from finbot.assistant.prompt_builder import build_system_prompt
from finbot.assistant.tools import get_tool_schemas
from finbot.assistant.usage import UsageSink
from finbot.config import settings
from finbot.ledger.store import LedgerStore
from finbot.llm.errors import ProviderError
from finbot.llm.fallback import FallbackCascade
from finbot.llm.types import ImagePart, LLMMessage, TextPart
from finbot.services.error_reporter import ErrorReporter, get_error_reporter

logger = logging.getLogger(__name__)


FATAL_REPLY = "Sorry, something went wrong while preparing the answer. Please try again in a minute."


def to_llm_message(message: Message) -> LLMMessage:
    return LLMMessage.model_validate({"role": message.role, "content": message.content})


def dump_parts(message: LLMMessage) -> List[dict]:
    return [part.model_dump() for part in message.parts()]


def check_user_parts(parts: List[Any]) -> None:
    """Users send text and images; tool and search parts only come from the model."""
    for part in parts:
        if not isinstance(part, (TextPart, ImagePart)):
            raise ValueError(f"User turns accept text and image parts, got {getattr(part, 'type', type(part).__name__)}")


class ConversationService:
    """Creates threads and runs user turns through the tool-calling loop."""

    def __init__(
        self,
        store: LedgerStore,
        cascade: Optional[FallbackCascade] = None,
        usage_sink: Optional[UsageSink] = None,
        error_reporter: Optional[ErrorReporter] = None,
        max_rounds: Optional[int] = None,
        quiet_seconds: Optional[float] = None,
    ):
        self.store = store
        self.error_reporter = error_reporter or get_error_reporter()
        self.cascade = cascade or FallbackCascade.from_settings(self.error_reporter)
        self.usage_sink = usage_sink or UsageSink(store, self.error_reporter)
        self.loop = ToolCallingLoop(
            cascade=self.cascade,
            store=store,
            usage_sink=self.usage_sink,
            error_reporter=self.error_reporter,
            max_rounds=max_rounds,
        )
        self.thread_locks = KeyedLocks()
        self.aggregator = TurnAggregator(
            release=self.submit_user_turn,
            quiet_seconds=settings.MEDIA_GROUP_QUIET_SECONDS if quiet_seconds is None else quiet_seconds,
        )

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    async def create_thread(
        self,
        user_id: str,
        first_message: Optional[str] = None,
        web_search: bool = False,
        assistant_type: str = AssistantType.NORMAL.value,
    ) -> str:
        """Create a thread, optionally seeded with the opening user message. Returns the thread id."""
        assistant_type = AssistantType(assistant_type).value
        thread = await self.store.create(
            Thread,
            user_id=user_id,
            assistant_type=assistant_type,
            web_search_enabled=web_search,
        )
        if first_message:
            await self.store.create(
                Message,
                thread_id=thread.id,
                position=0,
                role="user",
                content=[TextPart(text=first_message).model_dump()],
            )
        logger.info(f"Created {assistant_type} thread {thread.id} for user {user_id}")
        return thread.id

    async def get_thread(self, thread_id: str) -> Thread:
        thread = await self.store.find_one(Thread, Thread.id == thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        return thread

    async def update_thread_options(
        self,
        thread_id: str,
        assistant_type: Optional[str] = None,
        web_search: Optional[bool] = None,
    ) -> Thread:
        """Switch assistant type or web search for an existing thread."""
        patch: dict = {}
        if assistant_type is not None:
            patch["assistant_type"] = AssistantType(assistant_type).value
        if web_search is not None:
            patch["web_search_enabled"] = web_search
        if not patch:
            return await self.get_thread(thread_id)
        async with self.thread_locks.hold(thread_id):
            thread = await self.store.update_by_id(Thread, thread_id, patch)
        if thread is None:
            raise ThreadNotFound(thread_id)
        return thread

    async def load_messages(self, thread_id: str) -> List[Message]:
        """Stored messages of a thread in conversation order."""
        return await self.store.find(
            Message,
            Message.thread_id == thread_id,
            order_by=(Message.position, Message.created_at),
        )

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def submit_user_turn(self, thread_id: str, user_parts: List[Any]) -> str:
        """
        Run a user turn and return the complete reply text.

        Fatal turn failures are reported and replaced with one fixed
        apology; no partial assistant text is returned.

        Raises:
            ThreadNotFound: the thread does not exist
            ValueError: a part is not text or image
        """
        check_user_parts(user_parts)
        try:
            result = await self.run_turn(thread_id, user_parts)
        except ThreadNotFound:
            raise
        except LoopExceeded as e:
            logger.error(f"Turn aborted by round limit on thread {thread_id}: {e}")
            return FATAL_REPLY
        except ProviderError as e:
            self.error_reporter.report("llm", e, f"Turn failed on thread {thread_id}")
            return FATAL_REPLY
        except Exception as e:
            logger.exception(f"Turn failed on thread {thread_id}")
            self.error_reporter.report("assistant", e, f"Turn failed on thread {thread_id}")
            return FATAL_REPLY
        return result.reply

    async def submit_part(self, thread_id: str, user_parts: List[Any], media_group_id: Optional[str] = None) -> Optional[str]:
        """Entry for transport events; grouped parts are debounced into one turn."""
        check_user_parts(user_parts)
        return await self.aggregator.submit_part(thread_id, user_parts, group_id=media_group_id)

    async def run_turn(self, thread_id: str, user_parts: List[Any]) -> TurnResult:
        """
        Run a turn under the thread lock and persist it on success.

        Raises:
            ThreadNotFound, ProviderError, LoopExceeded
        """
        async with self.thread_locks.hold(thread_id):
            thread = await self.get_thread(thread_id)
            stored = await self.load_messages(thread_id)

            user_message = LLMMessage(role="user", content=list(user_parts))
            history = [to_llm_message(m) for m in stored]

            finance_context = None
            if thread.assistant_type == AssistantType.FINANCE.value:
                finance_context = await build_finance_context(self.store, thread.user_id)

            result = await self.loop.run(
                user_id=thread.user_id,
                thread_id=thread.id,
                system=build_system_prompt(thread.assistant_type, finance_context),
                tools=get_tool_schemas(thread.assistant_type, thread.web_search_enabled),
                messages=history + [user_message],
            )

            await self._persist(thread.id, [user_message] + result.turn_messages)
            logger.info(
                f"Turn on thread {thread.id} done in {result.rounds} round(s), "
                f"{len(result.recorded)} transaction(s) recorded"
            )
            return result

    async def _persist(self, thread_id: str, messages: List[LLMMessage]) -> None:
        position = await self._next_position(thread_id)
        async with self.store.unit_of_work() as session:
            for offset, message in enumerate(messages):
                session.add(Message(
                    thread_id=thread_id,
                    position=position + offset,
                    role=message.role,
                    content=dump_parts(message),
                ))

    async def _next_position(self, thread_id: str) -> int:
        last = await self.store.find(
            Message,
            Message.thread_id == thread_id,
            order_by=(Message.position.desc(),),
            limit=1,
        )
        return last[0].position + 1 if last else 0


_conversation_service: Optional[ConversationService] = None


def get_conversation_service() -> ConversationService:
    """Get the process-wide conversation service."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(LedgerStore())
    return _conversation_service
