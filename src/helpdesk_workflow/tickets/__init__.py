"""
Ticket Lifecycle Module
=======================

Bounded Context for the ticket status state machine.

Responsibilities:
- Declare the legal status edges once and enforce them for every caller
- Stamp lifecycle timestamps and keep the SLA clocks consistent
- Append activity-log entries for every transition
- Announce transitions to the requester and assignee
- Close resolved tickets after the visibility window
"""

__version__ = "1.0.0"
