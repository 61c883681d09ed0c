"""
Ticket Application DTOs
=======================

Pydantic models for transition input and ticket output.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk_workflow.tickets.domain import Ticket


class TransitionMetadata(BaseModel):
    """Optional payload of a status transition."""
    resolution_notes: Optional[str] = Field(None, description="Required when resolving")
    comment: Optional[str] = Field(None, description="Extra text for the activity log")

    @field_validator("resolution_notes", "comment")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class TicketResponse(BaseModel):
    """Ticket as handed to the web layer."""
    id: str
    ticket_number: str
    title: str
    status: str
    priority: str
    category: str
    requester_id: str
    assignee_id: Optional[str] = None
    resolution_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    reopened_at: Optional[datetime] = None
    version: int

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketResponse":
        return cls(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            title=ticket.title,
            status=ticket.status.value,
            priority=ticket.priority.value,
            category=ticket.category,
            requester_id=ticket.requester_id,
            assignee_id=ticket.assignee_id,
            resolution_notes=ticket.resolution_notes,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            first_response_at=ticket.first_response_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            reopened_at=ticket.reopened_at,
            version=ticket.version,
        )
