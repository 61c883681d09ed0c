"""
Assignment Application Layer
============================
"""

from helpdesk_workflow.assignment.application.services import AssignmentManager

__all__ = ["AssignmentManager"]
