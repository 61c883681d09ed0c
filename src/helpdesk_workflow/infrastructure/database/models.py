"""
Model Registry
==============

Importing this module registers every ORM model on ``Base.metadata``.
"""

from helpdesk_workflow.notifications.infrastructure.models import NotificationModel
from helpdesk_workflow.reopen.infrastructure.models import ReopenRequestModel
from helpdesk_workflow.tickets.infrastructure.models import (
    ActivityLogModel,
    TicketModel,
    UserModel,
)

__all__ = [
    "NotificationModel",
    "ReopenRequestModel",
    "ActivityLogModel",
    "TicketModel",
    "UserModel",
]
