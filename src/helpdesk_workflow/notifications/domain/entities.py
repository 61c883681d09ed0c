"""
Notification Domain Entities
============================

In-app notification addressed to exactly one recipient.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from helpdesk_workflow.config import NotificationType, NotificationPriority


@dataclass
class Notification:
    """
    Notification entity.

    Created only by the dispatcher; afterwards the recipient may flip
    ``read`` and nothing else changes.
    """

    recipient_id: str
    type: NotificationType
    title: str
    message: str
    ticket_id: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    read: bool = False
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def mark_read(self) -> None:
        self.read = True

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "ticket_id": self.ticket_id,
            "priority": self.priority.value,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class NotificationIntent:
    """
    A notification a workflow operation wants sent once it has committed.

    Services collect these inside their unit of work and hand them to the
    dispatcher afterwards, so nothing is announced for a rolled-back change.
    """

    recipient_id: Optional[str]
    type: NotificationType
    title: str
    message: str
    ticket_id: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
