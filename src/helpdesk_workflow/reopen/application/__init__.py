"""
Reopen Request Application Layer
================================
"""

from helpdesk_workflow.reopen.application.dto import (
    ReopenRequestCreate,
    ReopenReview,
    ReopenRequestResponse,
)
from helpdesk_workflow.reopen.application.services import ReopenRequestWorkflow

__all__ = [
    "ReopenRequestCreate",
    "ReopenReview",
    "ReopenRequestResponse",
    "ReopenRequestWorkflow",
]
