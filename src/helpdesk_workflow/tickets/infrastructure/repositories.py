"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of the ticket, activity log and user directory
contracts using SQLAlchemy.

Updates are conditional: ``UPDATE ... WHERE id = :id AND version = :expected``.
A statement that matched no row means the ticket changed (or vanished)
since it was read.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk_workflow.config import Priority, TicketStatus, UserRole
from helpdesk_workflow.core import (
    ConcurrentModificationException,
    RepositoryException,
    ResourceNotFoundException,
)
from helpdesk_workflow.infrastructure.database import as_utc
from helpdesk_workflow.shared.application import (
    IActivityLogRepository, ITicketRepository, IUserDirectory, User
)
from helpdesk_workflow.tickets.domain import ActivityLogEntry, Ticket
from helpdesk_workflow.tickets.infrastructure.models import (
    ActivityLogModel, TicketModel, UserModel
)

_IMMUTABLE_COLUMNS = frozenset({"id", "ticket_number", "created_at", "version"})


def column_values(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Enums are stored by value."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in patch.items()}


def ticket_to_domain(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        ticket_number=model.ticket_number,
        title=model.title,
        description=model.description,
        status=TicketStatus(model.status),
        priority=Priority(model.priority),
        category=model.category,
        requester_id=model.requester_id,
        created_at=as_utc(model.created_at),
        updated_at=as_utc(model.updated_at),
        assignee_id=model.assignee_id,
        resolution_notes=model.resolution_notes,
        first_response_at=as_utc(model.first_response_at),
        resolved_at=as_utc(model.resolved_at),
        closed_at=as_utc(model.closed_at),
        reopened_at=as_utc(model.reopened_at),
        version=model.version,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Works on the session of the surrounding unit of work.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_model(self, ticket_id: str) -> Optional[TicketModel]:
        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        model = await self._get_model(ticket_id)
        return ticket_to_domain(model) if model else None

    async def add(self, ticket: Ticket) -> Ticket:
        """Insert a ticket (ticket creation itself lives outside the workflow)."""
        model = TicketModel(**column_values({
            "id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "title": ticket.title,
            "description": ticket.description,
            "status": ticket.status,
            "priority": ticket.priority,
            "category": ticket.category,
            "requester_id": ticket.requester_id,
            "assignee_id": ticket.assignee_id,
            "resolution_notes": ticket.resolution_notes,
            "created_at": ticket.created_at,
            "updated_at": ticket.updated_at,
            "first_response_at": ticket.first_response_at,
            "resolved_at": ticket.resolved_at,
            "closed_at": ticket.closed_at,
            "reopened_at": ticket.reopened_at,
            "version": ticket.version,
        }))
        self._session.add(model)
        await self._session.flush()
        return ticket_to_domain(model)

    async def update(
        self,
        ticket_id: str,
        patch: Dict[str, Any],
        expected_version: int
    ) -> Ticket:
        values = column_values(
            {k: v for k, v in patch.items() if k not in _IMMUTABLE_COLUMNS}
        )
        values["version"] = expected_version + 1

        stmt = (
            update(TicketModel)
            .where(and_(TicketModel.id == ticket_id, TicketModel.version == expected_version))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            if await self._get_model(ticket_id) is None:
                raise ResourceNotFoundException("Ticket", ticket_id)
            raise ConcurrentModificationException("Ticket", ticket_id, expected_version)

        model = await self._get_model(ticket_id)
        return ticket_to_domain(model)

    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets with filters."""
        stmt = select(TicketModel)

        conditions = []
        if "status" in filters:
            status = filters["status"]
            if isinstance(status, (list, tuple, set, frozenset)):
                conditions.append(TicketModel.status.in_([TicketStatus(s).value for s in status]))
            else:
                conditions.append(TicketModel.status == TicketStatus(status).value)

        if "priority" in filters:
            conditions.append(TicketModel.priority == Priority(filters["priority"]).value)

        if "assignee_id" in filters:
            conditions.append(TicketModel.assignee_id == filters["assignee_id"])

        if "requester_id" in filters:
            conditions.append(TicketModel.requester_id == filters["requester_id"])

        if "category" in filters:
            conditions.append(TicketModel.category == filters["category"])

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(TicketModel.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [ticket_to_domain(m) for m in result.scalars().all()]


class SQLAlchemyActivityLogRepository(IActivityLogRepository):
    """Append-only activity log on the unit of work's session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(
        self,
        ticket_id: str,
        actor_id: str,
        text: str,
        internal: bool = False
    ) -> ActivityLogEntry:
        model = ActivityLogModel(
            ticket_id=ticket_id,
            actor_id=actor_id,
            text=text,
            internal=internal,
        )
        self._session.add(model)
        await self._session.flush()
        return self._to_domain(model)

    async def list_for_ticket(self, ticket_id: str) -> List[ActivityLogEntry]:
        stmt = (
            select(ActivityLogModel)
            .where(ActivityLogModel.ticket_id == ticket_id)
            .order_by(ActivityLogModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: ActivityLogModel) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=model.id,
            ticket_id=model.ticket_id,
            actor_id=model.actor_id,
            text=model.text,
            internal=model.internal,
            created_at=as_utc(model.created_at),
        )


class SQLAlchemyUserDirectory(IUserDirectory):
    """
    User lookups against the ``users`` mirror table.

    Each call uses its own short session; identity reads never join the
    workflow transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_user(self, user_id: str) -> Optional[User]:
        stmt = select(UserModel).where(
            and_(UserModel.id == user_id, UserModel.active.is_(True))
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                model = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to look up user", {"user_id": user_id, "error": str(e)}
            ) from e
        return self._to_domain(model) if model else None

    async def list_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        stmt = (
            select(UserModel)
            .where(and_(
                UserModel.role.in_([UserRole(r).value for r in roles]),
                UserModel.active.is_(True),
            ))
            .order_by(UserModel.id)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                models = result.scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryException(
                "Failed to list users", {"roles": [UserRole(r).value for r in roles], "error": str(e)}
            ) from e
        return [self._to_domain(m) for m in models]

    @staticmethod
    def _to_domain(model: UserModel) -> User:
        return User(
            id=model.id,
            role=UserRole(model.role),
            full_name=model.full_name,
            email=model.email,
        )
