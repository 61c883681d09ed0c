"""
Shared Kernel Module
====================

Shared infrastructure and contracts used across all workflow contexts
(tickets, sla, assignment, reopen, notifications).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel holds only generic contracts (unit of work, change events)
  and infrastructure (logging)

DO NOT add status, SLA or review rules to the shared kernel.
"""

__version__ = "1.0.0"
