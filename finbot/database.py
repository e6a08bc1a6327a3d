"""Database engine, session factory, declarative base and storage ids."""
import secrets

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from finbot.config import settings


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


def generate_id(prefix: str) -> str:
    """Storage id such as txn_3f9a1c0b2d4e. Users only ever see readable_id."""
    return f"{prefix}_{secrets.token_hex(6)}"


async def init_models() -> None:
    """Create all tables. Used for local development and SQLite deployments."""
    # Import models so they register on Base.metadata
    from finbot.ledger import models as _ledger_models  # noqa: F401
    from finbot.assistant import models as _assistant_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
