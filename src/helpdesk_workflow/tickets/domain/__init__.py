"""
Ticket Domain Layer
===================

Contains:
- Entities: Ticket, User, ActivityLogEntry
- State machine: the declared table of legal status edges

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk_workflow.shared.application.identity import User, SYSTEM_USER
from helpdesk_workflow.tickets.domain.entities import Ticket, ActivityLogEntry
from helpdesk_workflow.tickets.domain.state_machine import (
    Edge,
    DIRECT_EDGES,
    REOPEN_EDGES,
    find_edge,
    allowed_targets,
    actor_may_take,
)

__all__ = [
    # Entities
    "Ticket",
    "User",
    "ActivityLogEntry",
    "SYSTEM_USER",
    # State machine
    "Edge",
    "DIRECT_EDGES",
    "REOPEN_EDGES",
    "find_edge",
    "allowed_targets",
    "actor_may_take",
]
