"""
Unit of Work for multi-step writes.

Slotting execution and wave generation must be all-or-nothing: either every
row of the operation is committed or none is.

Usage:
    uow = UnitOfWork(db)
    waves = await uow.run_atomic(lambda session: create_waves(session, batches))
"""
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """Runs a coroutine function inside one database transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def run_atomic(self, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """
        Run fn(session) and commit. Any exception rolls back everything
        fn wrote and is re-raised.
        """
        try:
            result = await fn(self.db)
            await self.db.commit()
            return result
        except Exception:
            await self.db.rollback()
            logger.exception("Atomic unit of work rolled back")
            raise
