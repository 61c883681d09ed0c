"""
Reopen Request Infrastructure Layer
===================================
"""

from helpdesk_workflow.reopen.infrastructure.models import ReopenRequestModel
from helpdesk_workflow.reopen.infrastructure.repositories import (
    SQLAlchemyReopenRequestRepository,
)

__all__ = ["ReopenRequestModel", "SQLAlchemyReopenRequestRepository"]
