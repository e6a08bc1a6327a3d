"""Shared test fixtures for the finbot backend."""
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from finbot.assistant import models as assistant_models  # noqa: F401
from finbot.database import Base
from finbot.ledger import models as ledger_models  # noqa: F401
from finbot.ledger.store import LedgerStore

from fakes import RecordingReporter


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
async def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    """Ledger store bound to the in-memory database."""
    return LedgerStore(async_sessionmaker(engine, expire_on_commit=False))


# ============================================================================
# FAKES
# ============================================================================

@pytest.fixture
def reporter():
    return RecordingReporter()
