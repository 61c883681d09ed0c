"""
Helpdesk Workflow
=================

Ticket lifecycle core for a helpdesk.

Bounded contexts:
- tickets: status state machine (StatusTransitionEngine)
- sla: deadlines, breach status, compliance and warning sweep
- assignment: self-assign, transfer, unassign
- reopen: reopen request approval workflow
- notifications: best-effort in-app notifications

Entry point: ``helpdesk_workflow.bootstrap.HelpdeskWorkflow``.
"""

__version__ = "1.0.0"
