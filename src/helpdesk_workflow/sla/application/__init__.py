"""
SLA Application Layer
======================

Contains:
- Services: SLADeadlineTracker (pure), SLAEscalationService (warning sweep)
- DTOs: Pydantic response models
- Policy provider interface
"""

from helpdesk_workflow.sla.application.dto import (
    SLAStatusResponse,
    TicketSLAResponse,
    ComplianceSummary,
)
from helpdesk_workflow.sla.application.services import (
    SLADeadlineTracker,
    SLAEscalationService,
    ISLAPolicyProvider,
    StaticPolicyProvider,
)

__all__ = [
    # DTOs
    "SLAStatusResponse",
    "TicketSLAResponse",
    "ComplianceSummary",
    # Services
    "SLADeadlineTracker",
    "SLAEscalationService",
    # Policy
    "ISLAPolicyProvider",
    "StaticPolicyProvider",
]
