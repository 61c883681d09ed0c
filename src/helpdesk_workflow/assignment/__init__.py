"""
Assignment Module
=================

Bounded Context for ticket ownership.

Responsibilities:
- Let an agent take an unassigned active ticket
- Transfer a ticket between agents (admin or current assignee)
- Let an admin clear the assignee without touching the status
- Tell the new and previous assignee about the change
"""

__version__ = "1.0.0"
