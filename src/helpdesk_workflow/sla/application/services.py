"""
SLA Application Services
=========================

``SLADeadlineTracker`` is a pure function of ticket fields and the policy
table: it never reads or writes persistence, so it is safe to call
repeatedly and from reporting code.

``SLAEscalationService`` is the on-demand warning sweep. The caller decides
when to run it; this package owns no scheduler.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from helpdesk_workflow.config import (
    Settings, SLAState, SLAType, TicketStatus, NotificationType,
    NotificationPriority, ACTIVE_STATUSES, get_settings
)
from helpdesk_workflow.core.concurrency import bounded
from helpdesk_workflow.notifications.application import NotificationDispatcher
from helpdesk_workflow.shared.application import IUnitOfWork
from helpdesk_workflow.shared.infrastructure.logging import get_logger
from helpdesk_workflow.sla.application.dto import ComplianceSummary
from helpdesk_workflow.sla.domain import (
    SLACalculator, SLADeadlines, SLAMetrics, SLAPolicy
)
from helpdesk_workflow.tickets.domain import Ticket

logger = get_logger(__name__)


# ========== Policy Provider Interface ==========

class ISLAPolicyProvider(ABC):
    """Interface for SLA policy access."""

    @abstractmethod
    def get_policy(self) -> SLAPolicy:
        """Get current SLA policy."""


class StaticPolicyProvider(ISLAPolicyProvider):
    """Policy provider over a fixed policy object."""

    def __init__(self, policy: Optional[SLAPolicy] = None):
        self._policy = policy or SLAPolicy()

    def get_policy(self) -> SLAPolicy:
        return self._policy


# ========== Deadline Tracker ==========

class SLADeadlineTracker:
    """
    Computes deadlines, breach status and compliance for tickets.

    Both clocks start at ``created_at``. The response clock is relieved once
    the ticket first leaves ``open``; the resolution clock once it is
    resolved (a reopen restarts tracking until the next resolution).
    """

    def __init__(
        self,
        policy_provider: ISLAPolicyProvider,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._policy_provider = policy_provider
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def compute_deadlines(self, ticket: Ticket) -> SLADeadlines:
        target = self._policy_provider.get_policy().get_target(
            ticket.priority, ticket.category
        )
        return SLADeadlines(
            ticket_id=ticket.id,
            response_deadline=SLACalculator.calculate_deadline(
                ticket.created_at, target.response_hours
            ),
            resolution_deadline=SLACalculator.calculate_deadline(
                ticket.created_at, target.resolution_hours
            ),
        )

    def is_breached(
        self,
        ticket: Ticket,
        as_of: Optional[datetime] = None,
        sla_type: Optional[SLAType] = None
    ) -> bool:
        """
        Check whether a clock overran its deadline.

        The milestone time is compared when it has happened, otherwise
        ``as_of`` (default: now). With no ``sla_type`` either clock counts.
        """
        as_of = as_of or self._clock()
        deadlines = self.compute_deadlines(ticket)

        response = SLACalculator.is_breached(
            deadlines.response_deadline, as_of, self._response_met_at(ticket)
        ) and not self._response_relieved_without_timestamp(ticket)
        resolution = SLACalculator.is_breached(
            deadlines.resolution_deadline, as_of, self._resolution_met_at(ticket)
        )

        if sla_type == SLAType.RESPONSE:
            return response
        if sla_type == SLAType.RESOLUTION:
            return resolution
        return response or resolution

    def metrics(self, ticket: Ticket, as_of: Optional[datetime] = None) -> SLAMetrics:
        """Full clock snapshot of a ticket."""
        as_of = as_of or self._clock()
        deadlines = self.compute_deadlines(ticket)
        threshold = self._settings.sla_warning_threshold_percent

        response_met_at = self._response_met_at(ticket)
        if self._response_relieved_without_timestamp(ticket):
            response_state = SLAState.MET
            response_remaining, response_pct, response_breached = 0.0, 0.0, False
        else:
            response_remaining, response_pct, response_breached = (
                SLACalculator.calculate_remaining_metrics(
                    ticket.created_at, deadlines.response_deadline, as_of, response_met_at
                )
            )
            response_state = SLACalculator.calculate_status(
                ticket.created_at, deadlines.response_deadline, as_of,
                response_met_at, threshold
            )

        resolution_met_at = self._resolution_met_at(ticket)
        resolution_remaining, resolution_pct, resolution_breached = (
            SLACalculator.calculate_remaining_metrics(
                ticket.created_at, deadlines.resolution_deadline, as_of, resolution_met_at
            )
        )
        resolution_state = SLACalculator.calculate_status(
            ticket.created_at, deadlines.resolution_deadline, as_of,
            resolution_met_at, threshold
        )

        return SLAMetrics(
            ticket_id=ticket.id,
            response_deadline=deadlines.response_deadline,
            response_remaining_seconds=response_remaining,
            response_percentage_remaining=response_pct,
            response_is_breached=response_breached,
            response_state=response_state,
            response_met_at=response_met_at,
            resolution_deadline=deadlines.resolution_deadline,
            resolution_remaining_seconds=resolution_remaining,
            resolution_percentage_remaining=resolution_pct,
            resolution_is_breached=resolution_breached,
            resolution_state=resolution_state,
            resolution_met_at=resolution_met_at,
        )

    def compliance_rate(self, tickets: Iterable[Ticket]) -> float:
        """
        Percentage of resolved tickets resolved within their deadline.

        Tickets never resolved are ignored; with none resolved the rate is 100.
        """
        resolved = [t for t in tickets if t.resolved_at is not None]
        if not resolved:
            return 100.0

        met = sum(
            1 for t in resolved
            if t.resolved_at <= self.compute_deadlines(t).resolution_deadline
        )
        return round(met / len(resolved) * 100, 2)

    def compliance_summary(
        self,
        tickets: Iterable[Ticket],
        as_of: Optional[datetime] = None
    ) -> ComplianceSummary:
        """Reporting view over ``tickets``; reads only."""
        tickets = list(tickets)
        as_of = as_of or self._clock()
        return ComplianceSummary.build(
            [self.metrics(t, as_of) for t in tickets],
            resolved_tickets=sum(1 for t in tickets if t.resolved_at is not None),
            compliance_rate=self.compliance_rate(tickets),
        )

    def lifecycle_stamps(
        self,
        ticket: Ticket,
        target: TicketStatus,
        now: datetime,
        via_reopen: bool = False
    ) -> Dict[str, Any]:
        """
        Timestamp changes that freeze or restart the clocks for a transition.

        Returned as a patch for the ticket repository.
        """
        stamps: Dict[str, Any] = {}

        if via_reopen:
            stamps["closed_at"] = None
            stamps["resolution_notes"] = None
            stamps["reopened_at"] = now
            return stamps

        if (ticket.status == TicketStatus.OPEN and target != TicketStatus.OPEN
                and ticket.first_response_at is None):
            stamps["first_response_at"] = now

        if target == TicketStatus.RESOLVED:
            stamps["resolved_at"] = now
            stamps["closed_at"] = None
        elif target == TicketStatus.CLOSED:
            stamps["closed_at"] = now

        return stamps

    @staticmethod
    def _response_met_at(ticket: Ticket) -> Optional[datetime]:
        return ticket.first_response_at

    @staticmethod
    def _response_relieved_without_timestamp(ticket: Ticket) -> bool:
        # Rows that left "open" before first_response_at was tracked
        return ticket.first_response_at is None and ticket.status != TicketStatus.OPEN

    @staticmethod
    def _resolution_met_at(ticket: Ticket) -> Optional[datetime]:
        return None if ticket.is_resolution_pending else ticket.resolved_at


# ========== Warning Sweep ==========

class SLAEscalationService:
    """
    Evaluates active tickets and notifies on clocks entering at_risk or breached.

    Each (ticket, clock) alerts once per state change: re-running the sweep
    does not repeat a warning that was already sent.
    """

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        tracker: SLADeadlineTracker,
        dispatcher: NotificationDispatcher,
        slack_client: Optional[Any] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._uow_factory = uow_factory
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._slack = slack_client
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_states: Dict[Tuple[str, SLAType], SLAState] = {}

    async def check_warnings(
        self,
        tickets: Optional[List[Ticket]] = None,
        as_of: Optional[datetime] = None
    ) -> dict:
        """
        Evaluate tickets (default: every active ticket) and send alerts.

        Returns:
            Summary of evaluation results
        """
        as_of = as_of or self._clock()
        full_sweep = tickets is None
        if full_sweep:
            tickets = await self._load_active_tickets()

        warnings = 0
        breaches = 0
        sent = 0

        active_ids = set()
        for ticket in tickets:
            if ticket.status not in ACTIVE_STATUSES:
                self._forget(ticket.id)
                continue
            active_ids.add(ticket.id)

            metrics = self._tracker.metrics(ticket, as_of)
            for sla_type, state in (
                (SLAType.RESPONSE, metrics.response_state),
                (SLAType.RESOLUTION, metrics.resolution_state),
            ):
                key = (ticket.id, sla_type)
                previous = self._last_states.get(key)
                self._last_states[key] = state

                if not SLACalculator.should_alert(state, previous):
                    continue

                if state == SLAState.BREACHED:
                    breaches += 1
                    sent += await self._notify_breach(ticket, sla_type)
                else:
                    warnings += 1
                    sent += await self._notify_warning(ticket, sla_type)

        if full_sweep:
            # Tickets that left the active set drop their alert history
            for ticket_id in {key[0] for key in self._last_states} - active_ids:
                self._forget(ticket_id)

        logger.info(
            "SLA check completed",
            extra={
                "tickets_evaluated": len(tickets),
                "warnings": warnings,
                "breaches": breaches,
                "notifications_sent": sent,
            }
        )
        return {
            "tickets_evaluated": len(tickets),
            "warnings": warnings,
            "breaches": breaches,
            "notifications_sent": sent,
        }

    def _forget(self, ticket_id: str) -> None:
        for sla_type in (SLAType.RESPONSE, SLAType.RESOLUTION):
            self._last_states.pop((ticket_id, sla_type), None)

    async def _load_active_tickets(self) -> List[Ticket]:
        async def load() -> List[Ticket]:
            async with self._uow_factory() as uow:
                return await uow.tickets.list(
                    {"status": list(ACTIVE_STATUSES)}, limit=10_000
                )

        return await bounded(load(), self._settings.operation_timeout_seconds, "persistence")

    async def _notify_warning(self, ticket: Ticket, sla_type: SLAType) -> int:
        sent = 0
        clock_name = "Response time" if sla_type == SLAType.RESPONSE else "Resolution time"

        if ticket.assignee_id:
            if await self._dispatcher.notify_best_effort(
                ticket.assignee_id,
                NotificationType.SLA_WARNING,
                "SLA Warning",
                f"Ticket {ticket.ticket_number} is approaching its SLA deadline. "
                f"{clock_name} warning.",
                ticket_id=ticket.id,
                priority=NotificationPriority.HIGH,
            ):
                sent += 1
        elif sla_type == SLAType.RESOLUTION:
            if await self._dispatcher.notify_best_effort(
                ticket.requester_id,
                NotificationType.SLA_WARNING,
                "Update on Your Ticket",
                f"Your ticket {ticket.ticket_number} is being prioritized "
                "to meet our service commitment.",
                ticket_id=ticket.id,
                priority=NotificationPriority.MEDIUM,
            ):
                sent += 1
        return sent

    async def _notify_breach(self, ticket: Ticket, sla_type: SLAType) -> int:
        sent = 0
        if ticket.assignee_id and await self._dispatcher.notify_best_effort(
            ticket.assignee_id,
            NotificationType.SLA_BREACH,
            "SLA Breached",
            f"Ticket {ticket.ticket_number} missed its {sla_type.value} deadline.",
            ticket_id=ticket.id,
            priority=NotificationPriority.URGENT,
        ):
            sent += 1

        if self._slack is not None:
            await self._slack.send_breach(ticket, sla_type)
        return sent
