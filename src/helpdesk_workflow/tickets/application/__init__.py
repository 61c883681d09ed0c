"""
Ticket Application Layer
========================

Contains:
- Services: StatusTransitionEngine
- DTOs: TransitionMetadata, TicketResponse
"""

from helpdesk_workflow.tickets.application.dto import TransitionMetadata, TicketResponse
from helpdesk_workflow.tickets.application.services import (
    StatusTransitionEngine,
    status_label,
)

__all__ = [
    "TransitionMetadata",
    "TicketResponse",
    "StatusTransitionEngine",
    "status_label",
]
