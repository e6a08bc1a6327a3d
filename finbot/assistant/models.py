"""Assistant database models - threads, messages and usage records."""
from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from finbot.database import Base, generate_id


JSONType = JSON().with_variant(JSONB(), "postgresql")


class AssistantType(str, Enum):
    NORMAL = "normal"
    FINANCE = "finance"


class UsageKind(str, Enum):
    PROMPT = "prompt"
    COMPLETION = "completion"
    WEB_SEARCH = "web_search"
    REFERRAL_BONUS = "referral_bonus"
    REFERRAL_WELCOME = "referral_welcome"
    ADMIN_GRANT = "admin_grant"


class Thread(Base):
    """
    One ongoing assistant session.

    assistant_type selects the system prompt and tool set; web_search_enabled
    adds the provider's web search tool. Threads are never deleted by the core.
    """
    __tablename__ = "threads"

    id = Column(String, primary_key=True, default=lambda: generate_id("thread"))
    user_id = Column(String, nullable=False, index=True)

    assistant_type = Column(String, nullable=False, default=AssistantType.NORMAL.value)
    web_search_enabled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Message(Base):
    """
    A stored message of a thread.

    content is a list of content parts (text, image, tool_use, tool_result,
    web_search_result). position orders messages inside the thread; several
    messages written by one turn share a created_at.
    """
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: generate_id("msg"))
    thread_id = Column(String, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    role = Column(String, nullable=False)  # "user" | "assistant"
    content = Column(JSONType, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UsageRecord(Base):
    """Token / web-search consumption, one row per recorded amount."""
    __tablename__ = "usage_records"

    id = Column(String, primary_key=True, default=lambda: generate_id("usage"))
    user_id = Column(String, nullable=False, index=True)
    thread_id = Column(String, nullable=True)

    kind = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    model_name = Column(String, nullable=True)
    description = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
