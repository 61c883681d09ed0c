"""
Reopen Request Domain Entities
==============================

A proposal to bring a resolved or closed ticket back to an active state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from helpdesk_workflow.config import ReopenStatus


@dataclass
class ReopenRequest:
    """
    Reopen request entity.

    Reviewed exactly once: after leaving ``pending`` no field changes again.
    ``version`` is the optimistic-concurrency token.
    """

    ticket_id: str
    requester_id: str
    reason: str
    status: ReopenStatus = ReopenStatus.PENDING
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    reviewer_comment: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        if not self.reason or not self.reason.strip():
            raise ValueError("reason cannot be empty")

        if self.status != ReopenStatus.PENDING and self.reviewed_at is None:
            raise ValueError("reviewed requests must carry reviewed_at")

    @property
    def is_pending(self) -> bool:
        return self.status == ReopenStatus.PENDING

