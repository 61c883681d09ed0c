"""
Notification Domain Layer
=========================
"""

from helpdesk_workflow.notifications.domain.entities import (
    Notification,
    NotificationIntent,
)

__all__ = ["Notification", "NotificationIntent"]
