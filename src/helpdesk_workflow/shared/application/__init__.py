"""
Shared Application Contracts
============================

Collaborator interfaces every workflow context depends on:
- Persistence: repositories and the unit of work
- Identity: read-only actor lookups
"""

from helpdesk_workflow.shared.application.identity import (
    User,
    SYSTEM_USER,
    IUserDirectory,
)
from helpdesk_workflow.shared.application.unit_of_work import (
    ITicketRepository,
    IReopenRequestRepository,
    IActivityLogRepository,
    IUnitOfWork,
)

__all__ = [
    "User",
    "SYSTEM_USER",
    "IUserDirectory",
    "ITicketRepository",
    "IReopenRequestRepository",
    "IActivityLogRepository",
    "IUnitOfWork",
]
