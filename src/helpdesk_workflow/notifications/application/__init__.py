"""
Notification Application Layer
==============================
"""

from helpdesk_workflow.notifications.application.services import (
    NotificationDispatcher,
    INotificationRepository,
)

__all__ = [
    "NotificationDispatcher",
    "INotificationRepository",
]
