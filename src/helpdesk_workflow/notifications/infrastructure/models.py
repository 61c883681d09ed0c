"""
Notification Infrastructure Models
==================================
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk_workflow.config import NotificationPriority, NotificationType
from helpdesk_workflow.infrastructure.database import Base


class NotificationModel(Base):
    """
    Database model for Notification entity.

    Maps to the 'notifications' table.
    """
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    recipient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    type: Mapped[NotificationType] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    # No foreign key: notifications outlive tickets in the audit trail
    ticket_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    priority: Mapped[NotificationPriority] = mapped_column(
        String(20), nullable=False, default=NotificationPriority.MEDIUM
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
    )
