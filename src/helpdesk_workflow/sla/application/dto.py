"""
SLA Application DTOs
=====================

Pydantic response models for SLA data handed to the web layer.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from helpdesk_workflow.sla.domain import SLAMetrics

SLAStateStr = Literal["on_track", "at_risk", "breached", "met"]


class SLAStatusResponse(BaseModel):
    """Status of a single SLA clock."""
    deadline: datetime = Field(..., description="SLA deadline")
    remaining_seconds: float = Field(..., description="Time remaining (0 if breached/met)")
    percentage_remaining: float = Field(..., description="Percentage of the window remaining")
    is_breached: bool = Field(..., description="Whether the clock overran its deadline")
    state: SLAStateStr = Field(..., description="Current clock state")
    met_at: Optional[datetime] = Field(None, description="When the milestone happened")


class TicketSLAResponse(BaseModel):
    """Both SLA clocks of a ticket."""
    ticket_id: str
    response_sla: SLAStatusResponse
    resolution_sla: SLAStatusResponse
    overall_state: SLAStateStr
    next_deadline: datetime

    @classmethod
    def from_metrics(cls, metrics: SLAMetrics) -> "TicketSLAResponse":
        return cls(
            ticket_id=metrics.ticket_id,
            response_sla=SLAStatusResponse(
                deadline=metrics.response_deadline,
                remaining_seconds=metrics.response_remaining_seconds,
                percentage_remaining=metrics.response_percentage_remaining,
                is_breached=metrics.response_is_breached,
                state=metrics.response_state.value,
                met_at=metrics.response_met_at,
            ),
            resolution_sla=SLAStatusResponse(
                deadline=metrics.resolution_deadline,
                remaining_seconds=metrics.resolution_remaining_seconds,
                percentage_remaining=metrics.resolution_percentage_remaining,
                is_breached=metrics.resolution_is_breached,
                state=metrics.resolution_state.value,
                met_at=metrics.resolution_met_at,
            ),
            overall_state=metrics.most_urgent_state.value,
            next_deadline=metrics.next_deadline,
        )


class ComplianceSummary(BaseModel):
    """Reporting summary over a set of tickets."""
    total_tickets: int
    resolved_tickets: int
    breached_count: int
    at_risk_count: int
    compliance_rate: float = Field(..., description="Percentage of resolutions within deadline")

    @classmethod
    def build(cls, metrics: List[SLAMetrics], resolved_tickets: int, compliance_rate: float):
        return cls(
            total_tickets=len(metrics),
            resolved_tickets=resolved_tickets,
            breached_count=sum(1 for m in metrics if m.is_any_breached),
            at_risk_count=sum(1 for m in metrics if m.most_urgent_state.value == "at_risk"),
            compliance_rate=compliance_rate,
        )
