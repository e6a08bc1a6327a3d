"""Tool-Calling Conversation Loop.

Drives one turn to completion:

    SENDING -> (tool_use parts?) -> AWAITING_TOOLS -> SENDING -> ... -> DONE

Each round calls the fallback cascade, records usage, appends the
assistant content and, when the model asked for tools, runs every tool
call and appends all results as one user message. A tool failure becomes
an error tool result and never aborts the turn. Provider failures do.
The round limit guards against a model that never stops calling tools.
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from finbot.assistant.errors import DispatchError, LoopExceeded
from finbot.assistant.tools import DispatchResult, RecordedTransaction, ToolName, dispatch_tool
from finbot.assistant.usage import UsageSink
from finbot.config import settings
from finbot.ledger.store import LedgerStore
from finbot.llm.fallback import FallbackCascade
from finbot.llm.types import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    ToolResultPart,
    ToolUsePart,
    WebSearchResultPart,
)
from finbot.services.error_reporter import ErrorReporter, get_error_reporter

logger = logging.getLogger(__name__)


MAX_CITATIONS = 3
EMPTY_REPLY = "I wasn't able to generate a response. Please try again."

Dispatcher = Callable[[LedgerStore, str, str, Dict[str, Any]], Awaitable[DispatchResult]]


class LoopPhase(str, Enum):
    SENDING = "sending"
    AWAITING_TOOLS = "awaiting_tools"
    DONE = "done"


@dataclass(frozen=True)
class LoopState:
    """Immutable snapshot threaded through the loop transitions."""
    phase: LoopPhase
    messages: Tuple[LLMMessage, ...]
    rounds: int = 0
    turn_messages: Tuple[LLMMessage, ...] = ()
    recorded: Tuple[RecordedTransaction, ...] = ()
    search_results: Tuple[WebSearchResultPart, ...] = ()
    pending_tools: Tuple[ToolUsePart, ...] = ()
    last_response: Optional[LLMResponse] = None

    def with_message(self, message: LLMMessage) -> "LoopState":
        return replace(
            self,
            messages=self.messages + (message,),
            turn_messages=self.turn_messages + (message,),
        )


@dataclass
class TurnResult:
    """Final outcome of a completed turn."""
    reply: str
    turn_messages: List[LLMMessage] = field(default_factory=list)
    recorded: List[RecordedTransaction] = field(default_factory=list)
    rounds: int = 0
    model: str = ""


def format_recorded_summary(recorded: Tuple[RecordedTransaction, ...]) -> str:
    lines = ["**Recorded transactions:**"]
    for index, txn in enumerate(recorded, start=1):
        lines.append(
            f"{index}. {txn.description}: {txn.amount:.2f} {txn.currency} "
            f"({txn.transaction_type}, {txn.day}, ID {txn.readable_id})"
        )
    return "\n".join(lines)


def format_citations(results: Tuple[WebSearchResultPart, ...]) -> str:
    lines = ["**Sources:**"]
    seen = set()
    for result in results:
        if not result.url or result.url in seen:
            continue
        seen.add(result.url)
        lines.append(f"{len(seen)}. [{result.title or result.url}]({result.url})")
        if len(seen) == MAX_CITATIONS:
            break
    return "\n".join(lines) if len(lines) > 1 else ""


def compose_reply(state: LoopState) -> str:
    """Narrative text, preceded by the transaction summary and the sources."""
    text = state.last_response.text() if state.last_response else ""
    sections = []
    if state.search_results:
        citations = format_citations(state.search_results)
        if citations:
            sections.append(citations)
    if len(state.recorded) > 1:
        sections.append(format_recorded_summary(state.recorded))
    if text:
        sections.append(text)
    return "\n\n".join(sections) or EMPTY_REPLY


class ToolCallingLoop:
    """Runs provider rounds and tool dispatch until the model answers in text."""

    def __init__(
        self,
        cascade: FallbackCascade,
        store: LedgerStore,
        usage_sink: UsageSink,
        error_reporter: Optional[ErrorReporter] = None,
        dispatcher: Dispatcher = dispatch_tool,
        max_rounds: Optional[int] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.cascade = cascade
        self.store = store
        self.usage_sink = usage_sink
        self.error_reporter = error_reporter or get_error_reporter()
        self.dispatcher = dispatcher
        self.max_rounds = max_rounds or settings.MAX_TOOL_ROUNDS
        self.max_tokens = max_tokens or settings.MAX_OUTPUT_TOKENS
        self.temperature = settings.TEMPERATURE if temperature is None else temperature

    async def run(
        self,
        *,
        user_id: str,
        thread_id: Optional[str],
        system: str,
        tools: List[Any],
        messages: List[LLMMessage],
    ) -> TurnResult:
        """
        Run one turn.

        Raises:
            ProviderError: the cascade failed (after any fallback)
            LoopExceeded: the model was still calling tools after max_rounds
        """
        state = LoopState(phase=LoopPhase.SENDING, messages=tuple(messages))

        while state.phase != LoopPhase.DONE:
            if state.phase == LoopPhase.SENDING:
                state = await self._send(state, user_id, thread_id, system, tools)
            elif state.phase == LoopPhase.AWAITING_TOOLS:
                state = await self._run_tools(state, user_id)

        return TurnResult(
            reply=compose_reply(state),
            turn_messages=list(state.turn_messages),
            recorded=list(state.recorded),
            rounds=state.rounds,
            model=state.last_response.model if state.last_response else "",
        )

    async def _send(
        self,
        state: LoopState,
        user_id: str,
        thread_id: Optional[str],
        system: str,
        tools: List[Any],
    ) -> LoopState:
        if state.rounds >= self.max_rounds:
            error = LoopExceeded(self.max_rounds)
            logger.error(f"LoopExceeded: thread={thread_id} user={user_id} rounds={state.rounds}")
            self.error_reporter.report("loop", error, f"Thread {thread_id} exceeded the tool round limit")
            raise error

        request = LLMRequest(
            system=system,
            messages=list(state.messages),
            tools=tools,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        response = await self.cascade.call(request)
        await self.usage_sink.record_response(user_id, thread_id, response)

        state = replace(
            state,
            rounds=state.rounds + 1,
            last_response=response,
            search_results=state.search_results + tuple(response.web_results()),
        )
        if response.content:
            state = state.with_message(LLMMessage(role="assistant", content=list(response.content)))

        tool_uses = response.tool_uses()
        if not tool_uses:
            return replace(state, phase=LoopPhase.DONE, pending_tools=())
        return replace(state, phase=LoopPhase.AWAITING_TOOLS, pending_tools=tuple(tool_uses))

    async def _run_tools(self, state: LoopState, user_id: str) -> LoopState:
        results: List[ToolResultPart] = []
        recorded: List[RecordedTransaction] = []

        for tool_use in state.pending_tools:
            part, transaction = await self._execute(tool_use, user_id)
            results.append(part)
            if transaction is not None:
                recorded.append(transaction)

        state = state.with_message(LLMMessage(role="user", content=results))
        return replace(
            state,
            phase=LoopPhase.SENDING,
            pending_tools=(),
            recorded=state.recorded + tuple(recorded),
        )

    async def _execute(
        self,
        tool_use: ToolUsePart,
        user_id: str,
    ) -> Tuple[ToolResultPart, Optional[RecordedTransaction]]:
        """One tool call. Failures become error results correlated by tool_use id."""
        try:
            result = await self.dispatcher(self.store, user_id, tool_use.name, tool_use.input)
        except DispatchError as e:
            logger.warning(f"Tool {tool_use.name} failed: {e}")
            return ToolResultPart(tool_use_id=tool_use.id, content=str(e), is_error=True), None
        except Exception as e:
            logger.exception(f"Tool {tool_use.name} raised")
            self.error_reporter.report("tools", e, f"Tool {tool_use.name} raised")
            return ToolResultPart(tool_use_id=tool_use.id, content=f"Tool failed: {e}", is_error=True), None

        recorded = result.recorded if tool_use.name == ToolName.TRACK_EXPENSE.value else None
        return ToolResultPart(tool_use_id=tool_use.id, content=result.content), recorded
