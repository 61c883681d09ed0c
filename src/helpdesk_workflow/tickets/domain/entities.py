"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

These entities carry no infrastructure concerns. Repositories map ORM
rows to and from them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from helpdesk_workflow.config import Priority, TicketStatus, TERMINAL_STATUSES


@dataclass
class Ticket:
    """
    Ticket entity representing a unit of customer support work.

    ``version`` is the optimistic-concurrency token; every successful
    write bumps it by one.
    """

    # Core attributes
    id: str
    ticket_number: str
    title: str
    description: str
    status: TicketStatus
    priority: Priority
    category: str
    requester_id: str

    # Timestamps
    created_at: datetime
    updated_at: datetime

    assignee_id: Optional[str] = None
    resolution_notes: Optional[str] = None

    # Lifecycle tracking
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    reopened_at: Optional[datetime] = None

    version: int = 0

    def __post_init__(self):
        """Validate ticket on initialization."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")

        if self.resolved_at and self.resolved_at < self.created_at:
            raise ValueError("resolved_at cannot be before created_at")

        if self.status in TERMINAL_STATUSES and self.resolved_at is None:
            raise ValueError("resolved or closed tickets must carry resolved_at")

    @property
    def is_terminal(self) -> bool:
        """Check if ticket has been resolved or closed."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_resolution_pending(self) -> bool:
        """True while the resolution clock is running (never resolved, or reopened since)."""
        if self.resolved_at is None:
            return True
        return self.reopened_at is not None and self.reopened_at > self.resolved_at

    def is_assigned_to(self, user_id: str) -> bool:
        return self.assignee_id is not None and self.assignee_id == user_id


@dataclass(frozen=True)
class ActivityLogEntry:
    """Immutable audit entry appended to a ticket's activity log."""

    ticket_id: str
    actor_id: str
    text: str
    internal: bool = False
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
