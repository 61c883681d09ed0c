"""
SQLAlchemy Unit of Work
=======================

One ``AsyncSession`` per unit of work; every repository of the workflow
shares it, so a review's request update and ticket reopen commit together.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_workflow.core import RepositoryException
from helpdesk_workflow.reopen.infrastructure.repositories import (
    SQLAlchemyReopenRequestRepository,
)
from helpdesk_workflow.shared.application import IUnitOfWork
from helpdesk_workflow.shared.infrastructure.logging import get_logger, log_latency
from helpdesk_workflow.tickets.infrastructure.repositories import (
    SQLAlchemyActivityLogRepository,
    SQLAlchemyTicketRepository,
)

logger = get_logger(__name__)


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over one database transaction.

    Usage:
        uow_factory = lambda: SQLAlchemyUnitOfWork(get_session_maker())
        async with uow_factory() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id)
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def begin(self) -> None:
        self._session = self._session_maker()
        self.tickets = SQLAlchemyTicketRepository(self._session)
        self.reopen_requests = SQLAlchemyReopenRequestRepository(self._session)
        self.activity_log = SQLAlchemyActivityLogRepository(self._session)

    async def commit(self) -> None:
        try:
            with log_latency(logger, "uow_commit"):
                await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error("Commit failed", extra={"error": str(e)})
            raise RepositoryException("Failed to commit workflow changes", {"error": str(e)}) from e
        finally:
            await self._close()

    async def rollback(self) -> None:
        try:
            await self._session.rollback()
        finally:
            await self._close()

    async def _close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
