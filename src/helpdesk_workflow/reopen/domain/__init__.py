"""
Reopen Request Domain Layer
===========================
"""

from helpdesk_workflow.reopen.domain.entities import ReopenRequest

__all__ = ["ReopenRequest"]
