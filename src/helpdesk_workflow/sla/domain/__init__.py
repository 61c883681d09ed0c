"""
SLA Domain Layer
================

Domain layer for SLA deadline tracking.

Contains:
- Entities: SLAMetrics (derived clock snapshot)
- Value Objects: SLAPolicy, SLATarget, SLADeadlines
- Domain Services: SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk_workflow.sla.domain.entities import SLAMetrics
from helpdesk_workflow.sla.domain.value_objects import (
    SLACalculator,
    SLAPolicy,
    SLATarget,
    SLADeadlines,
    DEFAULT_TARGETS,
)

__all__ = [
    # Entities
    "SLAMetrics",
    # Value Objects & Services
    "SLACalculator",
    "SLAPolicy",
    "SLATarget",
    "SLADeadlines",
    "DEFAULT_TARGETS",
]
