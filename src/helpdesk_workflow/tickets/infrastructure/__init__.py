"""
Ticket Infrastructure Layer
===========================

- Models: SQLAlchemy ORM models (tickets, activity log, users)
- Repositories: conditional-update ticket repository, activity log, user directory
"""

from helpdesk_workflow.tickets.infrastructure.models import (
    TicketModel,
    ActivityLogModel,
    UserModel,
)
from helpdesk_workflow.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyActivityLogRepository,
    SQLAlchemyUserDirectory,
)

__all__ = [
    "TicketModel",
    "ActivityLogModel",
    "UserModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyActivityLogRepository",
    "SQLAlchemyUserDirectory",
]
