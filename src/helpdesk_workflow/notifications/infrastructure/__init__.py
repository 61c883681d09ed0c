"""
Notification Infrastructure Layer
=================================
"""

from helpdesk_workflow.notifications.infrastructure.models import NotificationModel
from helpdesk_workflow.notifications.infrastructure.repositories import (
    SQLAlchemyNotificationRepository,
)

__all__ = ["NotificationModel", "SQLAlchemyNotificationRepository"]
