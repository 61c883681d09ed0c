"""
Reopen Request DTOs
===================
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from helpdesk_workflow.reopen.domain import ReopenRequest


class ReopenRequestCreate(BaseModel):
    """Payload for asking a ticket to be reopened."""
    ticket_id: str
    reason: str = Field(..., min_length=1, max_length=2000)


class ReopenReview(BaseModel):
    """Reviewer decision on a pending request."""
    decision: Literal["approved", "rejected"]
    comment: Optional[str] = Field(None, max_length=2000)


class ReopenRequestResponse(BaseModel):
    """Reopen request as handed to the web layer."""
    id: str
    ticket_id: str
    requester_id: str
    reason: str
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    reviewer_comment: Optional[str] = None

    @classmethod
    def from_domain(cls, request: ReopenRequest) -> "ReopenRequestResponse":
        return cls(
            id=request.id,
            ticket_id=request.ticket_id,
            requester_id=request.requester_id,
            reason=request.reason,
            status=request.status.value,
            created_at=request.created_at,
            reviewed_at=request.reviewed_at,
            reviewer_id=request.reviewer_id,
            reviewer_comment=request.reviewer_comment,
        )
