"""Assistant Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from finbot.assistant.models import AssistantType
from finbot.llm.types import UserContentPart


# ============================================================================
# THREADS
# ============================================================================

class ThreadCreate(BaseModel):
    """Request to start a new thread."""
    user_id: str = Field(..., description="Owner of the thread")
    first_message: Optional[str] = Field(None, description="Optional opening user message")
    web_search: bool = Field(False, description="Enable provider web search")
    assistant_type: AssistantType = Field(AssistantType.NORMAL, description="normal | finance")


class ThreadUpdate(BaseModel):
    """Change thread options mid-conversation."""
    web_search: Optional[bool] = None
    assistant_type: Optional[AssistantType] = None


class ThreadResponse(BaseModel):
    thread_id: str
    user_id: str
    assistant_type: AssistantType
    web_search_enabled: bool


# ============================================================================
# TURNS
# ============================================================================

class TurnRequest(BaseModel):
    """One user turn: text and/or images."""
    parts: List[UserContentPart] = Field(..., min_length=1, description="User content parts")
    media_group_id: Optional[str] = Field(None, description="Shared id of parts sent together")


class TurnResponse(BaseModel):
    reply: Optional[str] = Field(None, description="Complete assistant reply; None while a media group is buffering")
    buffered: bool = Field(False, description="True when the parts joined a pending media group")


class MessageOut(BaseModel):
    id: str
    role: str
    content: List[Dict[str, Any]]
    created_at: Optional[datetime] = None


# ============================================================================
# CONTEXT PAYLOAD (internal use)
# ============================================================================

class AccountSummary(BaseModel):
    account_id: int
    name: str
    account_type: str
    currency: str
    balance: str
    is_default: bool = False


class TransactionSummary(BaseModel):
    transaction_id: int
    date: str
    transaction_type: str
    amount: str
    currency: str
    account_name: str
    description: str


class BudgetSummary(BaseModel):
    budget_id: int
    currency: str
    total_amount: str
    start_date: str
    end_date: str
    available_today: str
    base_daily: str
    rollover: str
    spent_today: str


class FinanceContext(BaseModel):
    """Ledger snapshot injected into the finance system prompt."""
    user_id: str
    today: str
    accounts: List[AccountSummary] = Field(default_factory=list)
    recent_transactions: List[TransactionSummary] = Field(default_factory=list)
    budgets: List[BudgetSummary] = Field(default_factory=list)
