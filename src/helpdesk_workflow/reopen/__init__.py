"""
Reopen Request Module
=====================

Bounded Context for the reopen approval workflow.

Responsibilities:
- Accept one pending reopen request per resolved/closed ticket
- Let agents and admins approve or reject it exactly once
- Reopen the ticket in the same transaction as an approval
- Tell the requester about the decision
"""

__version__ = "1.0.0"
