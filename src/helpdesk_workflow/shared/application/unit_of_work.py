"""
Persistence Contracts
=====================

Repository interfaces and the unit of work that groups them.

Following Dependency Inversion, application services depend on these
abstractions; SQLAlchemy (or an in-memory double in tests) implements them.

Writes are conditional on the version read earlier. A repository raises
``ConcurrentModificationException`` when the stored version moved on, and
``ResourceNotFoundException`` when the row is gone.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from helpdesk_workflow.reopen.domain.entities import ReopenRequest
    from helpdesk_workflow.tickets.domain.entities import ActivityLogEntry, Ticket


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Optional["Ticket"]:
        """Get ticket by id."""

    @abstractmethod
    async def update(
        self,
        ticket_id: str,
        patch: Dict[str, Any],
        expected_version: int
    ) -> "Ticket":
        """Apply ``patch`` if the stored version equals ``expected_version``."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List["Ticket"]:
        """List tickets with filters (``status`` accepts a value or a list)."""


class IReopenRequestRepository(ABC):
    """Interface for reopen request data access."""

    @abstractmethod
    async def get_by_id(self, request_id: str) -> Optional["ReopenRequest"]:
        """Get reopen request by id."""

    @abstractmethod
    async def get_pending_for_ticket(self, ticket_id: str) -> Optional["ReopenRequest"]:
        """Get the pending request of a ticket, if any."""

    @abstractmethod
    async def insert(self, request: "ReopenRequest") -> "ReopenRequest":
        """Insert a new request; conflicts with another pending request raise."""

    @abstractmethod
    async def update(
        self,
        request_id: str,
        patch: Dict[str, Any],
        expected_version: int
    ) -> "ReopenRequest":
        """Apply ``patch`` if the stored version equals ``expected_version``."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List["ReopenRequest"]:
        """List requests newest first (filters: ticket_id, status, requester_id)."""


class IActivityLogRepository(ABC):
    """Interface for the append-only ticket activity log."""

    @abstractmethod
    async def append(
        self,
        ticket_id: str,
        actor_id: str,
        text: str,
        internal: bool = False
    ) -> "ActivityLogEntry":
        """Append an entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List["ActivityLogEntry"]:
        """Entries of a ticket, oldest first."""


class IUnitOfWork(ABC):
    """
    One transaction over the workflow tables.

    Usage:
        async with uow_factory() as uow:
            ticket = await uow.tickets.get_by_id(ticket_id)
            ...

    Commits when the block exits cleanly and rolls back when it raises
    (including cancellation on timeout).
    """

    tickets: ITicketRepository
    reopen_requests: IReopenRequestRepository
    activity_log: IActivityLogRepository

    async def __aenter__(self) -> "IUnitOfWork":
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    @abstractmethod
    async def begin(self) -> None:
        """Open the transaction and bind the repositories."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every write made in the transaction."""
