"""Ledger Store - record access used by the assistant core.

Every operation opens its own short-lived session, so independent
conversation turns can hit the store concurrently. Driver and SQL failures
surface as StoreUnavailable; a missing record is never an error.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finbot.database import Base, async_session_maker
from finbot.ledger.models import SEQUENCED_MODELS, SequenceCounter

logger = logging.getLogger(__name__)

# Attempts for the first insert of a counter row when two writers race
COUNTER_INSERT_ATTEMPTS = 3


class StoreUnavailable(Exception):
    """The backing database could not serve the request."""


class LedgerStore:
    """Async record store over SQLAlchemy models."""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        self._session_maker = session_maker or async_session_maker

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Ledger store failure: {e}")
            raise StoreUnavailable(str(e)) from e

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Session for writes that must land together.

        Commits once when the block exits; any exception rolls every
        write back before it propagates (driver errors as StoreUnavailable).
        """
        async with self._session() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        model: Type[Base],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> List[Any]:
        """Return all records of `model` matching every criterion."""
        stmt = select(model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_one(self, model: Type[Base], *criteria: Any) -> Optional[Any]:
        """Return the first matching record or None."""
        async with self._session() as session:
            result = await session.execute(select(model).where(*criteria).limit(1))
            return result.scalars().first()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, model: Type[Base], **values: Any) -> Any:
        """Insert a record and return it with server defaults loaded."""
        async with self._session() as session:
            record = model(**values)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def update_by_id(
        self,
        model: Type[Base],
        record_id: str,
        patch: Dict[str, Any],
    ) -> Optional[Any]:
        """
        Apply `patch` to the record with storage id `record_id`.

        Patch values may be SQL expressions (e.g. Account.balance - 5) which
        are evaluated by the database in the UPDATE statement.
        """
        async with self._session() as session:
            record = await session.get(model, record_id)
            if record is None:
                return None
            for field, value in patch.items():
                setattr(record, field, value)
            await session.commit()
            await session.refresh(record)
            return record

    async def delete_by_id(self, model: Type[Base], record_id: str) -> Optional[Any]:
        """Delete a record by storage id and return it, or None if absent."""
        async with self._session() as session:
            record = await session.get(model, record_id)
            if record is None:
                return None
            await session.delete(record)
            await session.commit()
            return record

    # ------------------------------------------------------------------
    # Sequential business IDs
    # ------------------------------------------------------------------

    async def next_sequential_id(self, record_type: str) -> int:
        """
        Atomically issue the next readable ID for a record type.

        The counter row is incremented in a single UPDATE ... RETURNING
        statement. On first use the row is seeded from the highest
        readable_id already stored for that record type.
        """
        model = SEQUENCED_MODELS.get(record_type)
        if model is None:
            raise ValueError(f"Unknown sequenced record type: {record_type}")

        for _ in range(COUNTER_INSERT_ATTEMPTS):
            async with self._session() as session:
                result = await session.execute(
                    update(SequenceCounter)
                    .where(SequenceCounter.name == record_type)
                    .values(value=SequenceCounter.value + 1)
                    .returning(SequenceCounter.value)
                )
                value = result.scalar_one_or_none()
                if value is not None:
                    await session.commit()
                    return value

                current_max = await session.scalar(select(func.max(model.readable_id)))
                value = (current_max or 0) + 1
                session.add(SequenceCounter(name=record_type, value=value))
                try:
                    await session.commit()
                    return value
                except IntegrityError:
                    # Another writer seeded the row first; increment theirs
                    await session.rollback()

        raise StoreUnavailable(f"Could not allocate a sequential id for {record_type}")
